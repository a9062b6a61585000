from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar, Union

from fronda._internal.protocols import FetchCallable

V = TypeVar("V")


@dataclass(slots=True, frozen=True)
class Declaration:
    """
    A request made by a node during traversal: the data identified by `key`, produced by `fetch`.
    """

    key: str
    fetch: FetchCallable


@dataclass(slots=True, frozen=True)
class Ok(Generic[V]):
    value: V

    @property
    def is_error(self) -> bool:
        return False


@dataclass(slots=True, frozen=True)
class Err:
    """
    The cached outcome of a fetch that raised. Holds the original exception so it can be logged,
    but never stands in for data.
    """

    error: BaseException

    @property
    def is_error(self) -> bool:
        return True


Result = Union[Ok[Any], Err]


@dataclass(slots=True, frozen=True)
class PassOutcome:
    """
    Summary of one discovery pass, as partitioned and executed by the pass runner.

    :param pass_index: The pass these declarations were collected in.
    :param all_keys: Every declared key, in discovery order, duplicates included.
    :param new: Keys whose fetch ran during this pass.
    :param duplicate: Keys declared more than once in this pass, mapped to the number of extra occurrences.
    :param cached: Keys that were already in the cache before this pass.
    :param error_cached: Subset of `cached` whose cached entry is an `Err`.
    :param errors: Keys whose fetch failed during this pass, mapped to the exception.
    """

    pass_index: int
    all_keys: tuple[str, ...] = ()
    new: tuple[str, ...] = ()
    duplicate: dict[str, int] = field(default_factory=dict)
    cached: frozenset[str] = frozenset()
    error_cached: frozenset[str] = frozenset()
    errors: dict[str, BaseException] = field(default_factory=dict)

    @property
    def has_new(self) -> bool:
        return len(self.new) > 0

    @property
    def counts(self) -> dict[str, int]:
        return {
            "total": len(self.all_keys),
            "new": len(self.new),
            "duplicate": sum(self.duplicate.values()),
            "cached": len(self.cached),
            "error_cached": len(self.error_cached),
            "errors": len(self.errors),
        }

    def kind_of(self, key: str, seen_before: bool) -> str:
        """
        Classifies one occurrence of `key` for the trace log.
        """
        if key in self.duplicate and seen_before:
            return "duplicate"
        if key in self.cached:
            return "error in previous pass" if key in self.error_cached else "cached"
        if key in self.errors:
            return "error"
        return "new"


@dataclass(slots=True, frozen=True)
class ResolutionResult(Generic[V]):
    """
    What a server resolution hands back to its caller.

    :param rendered: The output of the final traversal.
    :param cache: Snapshot of the cache. Successful keys map to their value, failed keys to their `Err`.
    :param num_passes: Number of traversals performed, final one included.
    :param error_keys: Keys whose fetch failed.
    :param trace: The human readable trace, when logging is enabled.
    """

    rendered: V
    cache: dict[str, Any]
    num_passes: int
    error_keys: tuple[str, ...] = ()
    trace: Optional[str] = None

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(self.cache)


@dataclass(slots=True, frozen=True)
class HydrationResult(Generic[V]):
    """
    What a client render hands back, from `hydrate` or a later `mount`: the output and the bindings it attached.
    """

    rendered: V
    bindings: tuple[Any, ...] = ()
