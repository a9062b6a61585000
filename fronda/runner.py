import asyncio
import inspect
import time

from fronda._internal import Declaration, Err, Ok, PassOutcome, Result, indent, logger
from fronda.errors import NotAwaitableFetchError
from fronda.state import ResolutionState


class PassRunner:
    """
    Executes the declarations collected during one traversal pass. Rules:
    - Declarations are partitioned in discovery order into cached, duplicate and new.
    - Only the first occurrence of an uncached key is new; later occurrences are dropped.
    - All new fetches run concurrently and are awaited together.
    - A failing fetch becomes an `Err` for its own key and never affects its siblings.

    NOTE: the runner assumes that one key always names the same data within a lifecycle, so the
    first-seen fetch for a key wins even when another node declares a different function for it.

    :param state: The resolution state that owns the registry and the cache.
    """

    def __init__(self, state: ResolutionState):
        self._state = state

    def partition(
        self, declarations: list[Declaration]
    ) -> tuple[list[Declaration], dict[str, int], set[str], set[str]]:
        """
        Splits the declarations of a pass into new ones, duplicates, cached keys and error-cached keys.
        """
        new: list[Declaration] = []
        duplicate: dict[str, int] = {}
        cached: set[str] = set()
        error_cached: set[str] = set()
        seen: set[str] = set()

        for declaration in declarations:
            key = declaration.key
            if self._state.has_result(key):
                cached.add(key)
                if self._state.get_result(key).is_error:
                    error_cached.add(key)
            elif key in seen:
                duplicate[key] = duplicate.get(key, 0) + 1
            else:
                seen.add(key)
                new.append(declaration)

        return new, duplicate, cached, error_cached

    async def _guarded_fetch(self, declaration: Declaration) -> Result:
        """
        Runs one fetch and captures whatever it raises as an `Err`.
        """
        try:
            awaitable = declaration.fetch(self._state.context)
            if not inspect.isawaitable(awaitable):
                raise NotAwaitableFetchError(
                    f"Fetch for '{declaration.key}' returned {type(awaitable).__name__}, expected an awaitable."
                )
            return Ok(await awaitable)
        except Exception as e:
            return Err(e)

    async def run(self) -> PassOutcome:
        """
        Runs every new declaration of the current pass and writes the results into the cache.
        """
        pass_index = self._state.pass_index
        declarations = list(self._state.current_declarations)
        new, duplicate, cached, error_cached = self.partition(declarations)

        logger.debug(
            f"{indent(1)}Pass {pass_index}: {len(declarations)} declared, {len(new)} new, "
            f"{len(cached)} cached, {sum(duplicate.values())} duplicate"
        )

        start_time = time.time()
        results: list[Result] = await asyncio.gather(
            *[self._guarded_fetch(declaration) for declaration in new]
        )

        errors: dict[str, BaseException] = {}
        for declaration, result in zip(new, results):
            self._state.store_result(declaration.key, result)
            if isinstance(result, Err):
                errors[declaration.key] = result.error
                # ? REASON: fetch errors are always reported, whether tracing is on or not
                logger.error(
                    f"{indent(1)}\033[4;31mError\033[0m on fetch [{declaration.key}], pass {pass_index}: {result.error}",
                    exc_info=result.error,
                )

        if new:
            logger.info(
                f"{indent(1)}\033[92m\033[4mCompleted\033[0m pass {pass_index}: {len(new)} fetch(es) in {time.time() - start_time:.2f} seconds"
            )

        return PassOutcome(
            pass_index=pass_index,
            all_keys=tuple(declaration.key for declaration in declarations),
            new=tuple(declaration.key for declaration in new),
            duplicate=duplicate,
            cached=frozenset(cached),
            error_cached=frozenset(error_cached),
            errors=errors,
        )


async def run_pass(state: ResolutionState) -> PassOutcome:
    """
    Convenience function to run the current pass of `state`.
    """
    return await PassRunner(state).run()

