class FrondaError(Exception):
    """
    Base class for errors raised by fronda itself. Errors raised by fetch functions are never wrapped.
    """


class NoActivePassError(FrondaError):
    """
    Exception raised when a declaration is recorded before any traversal pass has begun.
    """


class CacheOverwriteError(FrondaError):
    """
    Exception raised when a key that already holds a result is written again within the same resolution.
    """


class ResolutionModeError(FrondaError):
    """
    Exception raised when an entry point is used with a state created for the other mode.
    """


class ResolutionStateError(FrondaError):
    """
    Exception raised when a state that has already been resolved is resolved again.
    """


class NotAwaitableFetchError(FrondaError):
    """
    Exception raised when a fetch function returns something that cannot be awaited.
    """


class BindingStateError(FrondaError):
    """
    Exception raised when a binding receives a lifecycle event that is invalid in its current phase.
    """


class NotAsyncCallableError(FrondaError):
    """
    Exception raised when a callback that must be a coroutine function is not one.
    """
