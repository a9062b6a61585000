import asyncio
import inspect
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Hashable, Optional, TypeVar

from fronda._internal import AwaitableCallback, Declaration, FetchCallable, Ok, logger
from fronda.errors import BindingStateError, NotAsyncCallableError
from fronda.state import ResolutionState

T = TypeVar("T")


class Phase(str, Enum):
    UNINITIALIZED = "uninitialized"
    SERVER_RESOLVED = "server_resolved"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class LoadStatus:
    pending: bool
    done: bool
    error: bool
    server_resolved: bool


class LoadResult(Generic[T]):
    """
    What a node reads back from its binding while rendering. A view over the live binding: `data`
    and `status` always reflect its current phase, and `set_data` writes through to it.
    """

    __slots__ = ("_binding",)

    def __init__(self, binding: "Binding[T]"):
        self._binding = binding

    def __repr__(self) -> str:
        return f"LoadResult(key={self._binding.key}, data={self.data!r}, status={self.status})"

    @property
    def data(self) -> Optional[T]:
        return self._binding.data

    @property
    def status(self) -> LoadStatus:
        return self._binding.status

    def set_data(self, updater: Callable[[Optional[T]], Optional[T]]):
        self._binding.set_data(updater)


class Binding(Generic[T]):
    """
    Connects one node to the data identified by `key`. The binding is built while the node renders:
    - On the server, it reads whatever the cache already holds and declares the fetch for the current pass.
    - On the client's first render, it reads the data the server resolved and does not fetch.
    - On any later client mount, it starts pending and fetches once when `on_attach` is awaited.

    Phases: UNINITIALIZED -> LOADING -> LOADED | FAILED, or SERVER_RESOLVED when the server cache
    already settled the key (LOADED or FAILED are then reported through the status flags).

    :param state: The resolution state of the current request or session.
    :param key: The key naming the data. Nodes declaring the same key share one fetch.
    :param fetch: The coroutine function producing the data. Called with the state's context.
    :param no_server_render: Optional; skip server resolution and always load on the client.
    :param on_settle: Optional; a tuple (callback, fixed_kwargs) awaited after a client fetch settles.
    """

    def __init__(
        self,
        state: ResolutionState,
        key: str,
        fetch: FetchCallable[T],
        no_server_render: bool = False,
        on_settle: Optional[tuple[AwaitableCallback, Optional[dict[str, Any]]]] = None,
    ):
        self.key: str = key
        self.fetch: FetchCallable[T] = fetch
        self.on_settle = on_settle
        self.exception: Optional[BaseException] = None

        self._state = state
        self._no_server_render: bool = (
            no_server_render or state.config.no_server_render
        )
        self._data: Optional[T] = None
        self._error: bool = False
        self._phase: Phase = Phase.UNINITIALIZED

        # * Inner flags
        self._attached: bool = False
        self._detached: bool = False

        self._server_resolved: bool = (
            not self._no_server_render
            and state.is_first_render
            and (state.is_server or state.has_result(key))
        )
        if self._server_resolved and state.has_result(key):
            result = state.get_result(key)
            self._phase = Phase.SERVER_RESOLVED
            self._error = result.is_error
            self._data = result.value if isinstance(result, Ok) else None

        if state.is_server:
            if not self._no_server_render:
                state.record_declaration(Declaration(key=key, fetch=fetch))
        else:
            state.track_binding(self)

    def __repr__(self) -> str:
        return f"Binding(key={self.key}, phase={self._phase.value})"

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def data(self) -> Optional[T]:
        return self._data

    @property
    def status(self) -> LoadStatus:
        settled = self._phase in (Phase.SERVER_RESOLVED, Phase.LOADED, Phase.FAILED)
        return LoadStatus(
            pending=not settled,
            done=settled,
            error=self._error,
            server_resolved=self._server_resolved,
        )

    @property
    def result(self) -> LoadResult[T]:
        return LoadResult(self)

    def set_data(self, updater: Callable[[Optional[T]], Optional[T]]):
        """
        Replaces the local data with `updater(data)`. Nothing is fetched.
        """
        self._data = updater(self._data)

    def _log(self, message: str):
        if self._state.logging:
            logger.info(f"[{self.key}] {message}")

    async def _run_callback(
        self,
        prop: tuple[AwaitableCallback, Optional[dict[str, Any]]],
    ):
        callback, fixed_kwargs = prop
        if not inspect.iscoroutinefunction(callback):
            raise NotAsyncCallableError("Callback must be a coroutine function")
        runtime_kwargs = dict(fixed_kwargs or {})
        runtime_kwargs["binding"] = self
        return await callback(**runtime_kwargs)

    def _start_fetch(self, inflight: Optional[dict[str, asyncio.Future]]) -> Awaitable[T]:
        if inflight is None:
            return self.fetch(self._state.context)
        # ? REASON: bindings of one key attached together share a single fetch
        if self.key not in inflight:
            inflight[self.key] = asyncio.ensure_future(self.fetch(self._state.context))
        return inflight[self.key]

    async def _load(self, inflight: Optional[dict[str, asyncio.Future]] = None):
        """
        Runs the fetch for this mount and settles the binding with its outcome.
        """
        self._phase = Phase.LOADING
        self._log("running fetch")
        start_time = time.time()
        try:
            data = await self._start_fetch(inflight)
        except Exception as e:
            # ? REASON: a detached node no longer owns any state to update
            if self._detached:
                return
            self.exception = e
            self._error = True
            self._phase = Phase.FAILED
            self._log(f"fetch errored in {(time.time() - start_time) * 1000:.0f}ms")
            logger.debug(f"[{self.key}] client fetch failed: {e!r}")
        else:
            if self._detached:
                return
            self._data = data
            self._error = False
            self._phase = Phase.LOADED
            self._log(f"fetch ran in {(time.time() - start_time) * 1000:.0f}ms")

        if self.on_settle:
            await self._run_callback(self.on_settle)

    async def on_attach(self, inflight: Optional[dict[str, asyncio.Future]] = None):
        """
        Signals that the node has mounted. Fetches at most once per mount, and never for server-resolved data.

        :param inflight: Optional; fetches already started by other bindings, by key. Shared when the key matches.
        """
        if self._detached:
            raise BindingStateError(
                f"{self} was detached. Use `on_reattach` to mount it again."
            )
        if self._attached:
            return
        self._attached = True

        if self._state.is_server:
            return
        if self._server_resolved:
            self._log("server resolved")
            return
        await self._load(inflight)

    async def on_reattach(self):
        """
        Signals a new, independent mount of the same node. Once the first client render is over,
        the data is fetched again; the previous data stays readable until the new fetch settles.
        """
        self._detached = False
        self._attached = False
        if not self._state.is_first_render or self._no_server_render:
            self._server_resolved = False
            self._phase = Phase.UNINITIALIZED
            self._error = False
            self.exception = None
        await self.on_attach()

    def on_detach(self):
        """
        Signals that the node has unmounted. A fetch settling afterwards is ignored.
        """
        self._detached = True


def bind(
    state: ResolutionState,
    key: str,
    fetch: FetchCallable[T],
    no_server_render: bool = False,
    on_settle: Optional[tuple[AwaitableCallback, Optional[dict[str, Any]]]] = None,
    node: Optional[Hashable] = None,
) -> LoadResult[T]:
    """
    Declares `fetch` under `key` for the node being rendered and returns a view of what is known about it.
    On the client, the node keeps one live binding across renders. The binding is created on the node's first
    render and mounted by the next `attach`. Later renders find it again by key and call order, or by `node`.

    >>> async def load_todos(context):
    ...     return await context.todos.list()
    >>> def render_todos(state):
    ...     todos = bind(state, "todos", load_todos)
    ...     if todos.status.pending:
    ...         return "loading..."
    ...     return ", ".join(todos.data)

    :param node: Optional; an explicit identity for the node, for trees whose call order changes between renders.
    """
    if state.is_server:
        return Binding(
            state, key, fetch, no_server_render=no_server_render, on_settle=on_settle
        ).result

    identity = state.binding_identity(key, node)
    binding = state.find_binding(identity)
    if binding is None:
        binding = Binding(
            state, key, fetch, no_server_render=no_server_render, on_settle=on_settle
        )
        state.register_binding(identity, binding)
    return binding.result
