from typing import Any, Awaitable, Protocol, TypeVar

T = TypeVar("T", covariant=True)


class FetchCallable(Protocol[T]):
    def __call__(self, context: Any) -> Awaitable[T]: ...


class AwaitableCallback(Protocol):
    def __call__(self, *args: Any, **kwargs: Any) -> Awaitable[Any]: ...
