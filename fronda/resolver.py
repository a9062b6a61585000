import asyncio
import inspect
import time
from typing import Any, Callable, Generic, Optional, TypeVar

from fronda._internal import (
    HydrationResult,
    PassOutcome,
    ResolutionResult,
    indent,
    logger,
)
from fronda.errors import ResolutionModeError, ResolutionStateError
from fronda.runner import PassRunner
from fronda.state import ResolutionState
from fronda.trace import TraceLog

R = TypeVar("R")

FINAL_PASS_ARG = "is_final_pass"


def accepts_final_pass(render: Callable[..., Any]) -> bool:
    """
    Whether `render` can receive the `is_final_pass` keyword.
    """
    try:
        parameters = inspect.signature(render).parameters.values()
    except (TypeError, ValueError):
        return True
    return any(
        parameter.name == FINAL_PASS_ARG
        or parameter.kind is inspect.Parameter.VAR_KEYWORD
        for parameter in parameters
    )


class ServerResolver(Generic[R]):
    """
    Drives repeated traversals of a tree until every piece of data it asks for is loaded. Rules:
    - Each discovery pass renders the tree, then runs the fetches declared during that render.
    - Another discovery pass follows whenever the previous one ran new fetches, since freshly
      loaded data can make conditional subtrees appear.
    - Once a pass runs nothing new, the tree is rendered one last time with `is_final_pass=True`.
      Declarations made during that final render are discarded.
    - Fetch errors are cached and never stop the loop. Errors raised by `render` propagate.

    NOTE: when `render` takes no `is_final_pass` argument it cannot tell the final pass apart, so the
    output of the pass that reached the fixed point is returned and no extra render is made.

    :param render: The traversal function. Returns the rendered output.
    :param state: A server `ResolutionState`, used for exactly one resolution.
    """

    def __init__(self, render: Callable[..., R], state: ResolutionState):
        if not state.is_server:
            raise ResolutionModeError(
                f"{state} is a client state and cannot be resolved on the server."
            )
        if state.is_resolved:
            raise ResolutionStateError(f"{state} has already been resolved.")

        self._render = render
        self._state = state
        self._runner = PassRunner(state)
        self._trace: Optional[TraceLog] = TraceLog(state.uuid) if state.logging else None
        self._max_passes: Optional[int] = state.config.max_passes
        self._wants_final_pass: bool = accepts_final_pass(render)

    @property
    def name(self) -> str:
        return self._state.uuid

    def _call_render(self, is_final_pass: bool) -> R:
        if self._wants_final_pass:
            return self._render(**{FINAL_PASS_ARG: is_final_pass})
        return self._render()

    async def _discovery_pass(self) -> tuple[R, PassOutcome]:
        self._state.begin_pass()
        logger.debug(f"{indent(1)}Rendering discovery pass {self._state.pass_index}...")
        rendered = self._call_render(is_final_pass=False)
        outcome = await self._runner.run()
        if self._trace:
            self._trace.add_pass(outcome)
        return rendered, outcome

    def _final_pass(self) -> R:
        pass_index = self._state.begin_pass()
        logger.debug(f"{indent(1)}Rendering final pass {pass_index}...")
        rendered = self._call_render(is_final_pass=True)
        # ? REASON: nothing declared during the final render is ever executed
        self._state.declarations_by_pass[pass_index] = []
        if self._trace:
            self._trace.add_final_pass(pass_index)
        return rendered

    async def _resolve(self) -> R:
        discovery_passes = 0
        while True:
            rendered, outcome = await self._discovery_pass()
            discovery_passes += 1
            if not outcome.has_new:
                break
            if self._max_passes is not None and discovery_passes >= self._max_passes:
                logger.warning(
                    f"{indent(1)}\033[91m\033[4mWarning\033[0m {self.name} reached max_passes={self._max_passes} "
                    "with fetches still being discovered. Forcing the final pass."
                )
                if self._trace:
                    self._trace.add_guard_stop(self._max_passes)
                return self._final_pass()

        if self._wants_final_pass:
            return self._final_pass()
        return rendered

    async def run(self) -> ResolutionResult[R]:
        """
        Runs discovery passes until a fixed point is reached, then the final pass.
        """
        self._state.mark_resolved()
        logger.info(f"\033[4m\033[90mResolving {self.name}...\033[0m")
        start_time = time.time()

        try:
            rendered = await self._resolve()
        except Exception as e:
            if self._trace:
                logger.info(TraceLog.render_failure(self.name, e))
            raise

        cache = self._state.snapshot()
        error_keys = self._state.error_keys
        trace = None
        if self._trace:
            trace = self._trace.render(tuple(cache), self._state.num_passes, error_keys)
            logger.info(trace)

        logger.info(
            f"\033[4m\033[90m{self.name} resolved in {self._state.num_passes} passes, "
            f"{time.time() - start_time:.2f} seconds.\033[0m"
        )
        return ResolutionResult(
            rendered=rendered,
            cache=cache,
            num_passes=self._state.num_passes,
            error_keys=error_keys,
            trace=trace,
        )


async def resolve(render: Callable[..., R], state: ResolutionState) -> ResolutionResult[R]:
    """
    Convenience function to resolve `render` on the server with `state`.

    >>> state = ResolutionState.server(context=api)
    >>> result = await resolve(lambda is_final_pass: render_page(state), state)
    >>> client_state = ResolutionState.client(server_data=result.cache, context=api)
    """
    return await ServerResolver(render, state).run()


def _render_once(render: Callable[..., R]) -> R:
    if accepts_final_pass(render):
        return render(**{FINAL_PASS_ARG: True})
    return render()


async def attach(state: ResolutionState) -> tuple[Any, ...]:
    """
    Mounts every client binding created since the last call. Bindings of the same key share one fetch,
    and every mount is awaited even when another one fails; the first failure is then raised.
    """
    if state.is_server:
        raise ResolutionModeError(f"{state} is a server state and has nothing to attach.")

    bindings = state.drain_bindings()
    if not bindings:
        return ()
    logger.debug(f"Attaching {len(bindings)} binding(s) for {state}...")
    inflight: dict[str, asyncio.Future] = {}
    outcomes = await asyncio.gather(
        *[binding.on_attach(inflight=inflight) for binding in bindings],
        return_exceptions=True,
    )
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome
    return tuple(bindings)


async def hydrate(render: Callable[..., R], state: ResolutionState) -> HydrationResult[R]:
    """
    Performs the first client render from server-resolved data. Every binding created during that
    render is attached, which fetches whatever the server did not resolve, and the first-render flag
    is flipped so that later mounts load on their own.
    """
    if state.is_server:
        raise ResolutionModeError(f"{state} is a server state and cannot be hydrated.")
    if not state.is_first_render:
        raise ResolutionStateError(f"{state} has already been hydrated.")

    state.begin_render()
    rendered = _render_once(render)
    state.end_render()
    try:
        bindings = await attach(state)
    finally:
        state.mark_first_render_done()
    return HydrationResult(rendered=rendered, bindings=bindings)


async def mount(render: Callable[..., R], state: ResolutionState) -> HydrationResult[R]:
    """
    Renders the tree again on the client after hydration. Nodes already rendered keep their live bindings
    without fetching again, while new nodes are attached and load. Bindings of nodes that were not
    rendered this time are detached.

    >>> await hydrate(page, state)
    >>> result = await mount(page, state)  # new nodes have loaded
    >>> result = await mount(page, state)  # renders their data
    """
    if state.is_server:
        raise ResolutionModeError(f"{state} is a server state and cannot be mounted.")
    if state.is_first_render:
        raise ResolutionStateError(f"{state} must be hydrated before it is mounted again.")

    state.begin_render()
    rendered = _render_once(render)
    for binding in state.end_render():
        binding.on_detach()
    bindings = await attach(state)
    return HydrationResult(rendered=rendered, bindings=bindings)
