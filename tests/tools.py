import asyncio
import logging
import random
from collections import Counter
from typing import Any, Optional

from pydantic import BaseModel, Field

from fronda import ResolutionState, bind
from fronda._internal import FetchCallable, logger


class Todo(BaseModel):
    """
    A todo as served by the mock service.
    """

    id: int = Field(..., description="The id of the todo.")
    title: str = Field(..., description="What needs doing.")
    done: bool = Field(False, description="Whether it has been done.")


class Boom(Exception):
    """
    Raised by fetches that are meant to fail.
    """


def random_latency() -> float:
    """
    Some latency for mock calls, small enough not to slow tests down but enough to interleave fetches.
    """
    return random.uniform(0.001, 0.01)


class MockService:
    """
    Hands out fetch functions and counts how many times each key was actually fetched.
    """

    def __init__(self):
        self.calls: Counter[str] = Counter()
        self.contexts: list[Any] = []

    def fetcher(
        self,
        key: str,
        value: Any = None,
        fail: Optional[BaseException] = None,
        delay: Optional[float] = None,
    ) -> FetchCallable:
        async def fetch(context: Any) -> Any:
            self.calls[key] += 1
            self.contexts.append(context)
            await asyncio.sleep(random_latency() if delay is None else delay)
            if fail is not None:
                raise fail
            return value

        return fetch


class CountingRender:
    """
    Wraps a render function taking the final-pass flag and records every call.
    """

    def __init__(self, render):
        self._render = render
        self.flags: list[bool] = []

    def __call__(self, is_final_pass: bool = False):
        self.flags.append(is_final_pass)
        return self._render(is_final_pass)

    @property
    def count(self) -> int:
        return len(self.flags)


class FlaglessRender:
    """
    Wraps a render function that takes no arguments and records every call.
    """

    def __init__(self, render):
        self._render = render
        self.count = 0

    def __call__(self):
        self.count += 1
        return self._render()


class LogCapture(logging.Handler):
    """
    Collects the records emitted by the fronda logger, which does not propagate to the root logger.
    """

    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord):
        self.records.append(record)

    def __enter__(self) -> "LogCapture":
        logger.addHandler(self)
        return self

    def __exit__(self, *exc_info):
        logger.removeHandler(self)

    def at(self, level: int) -> list[logging.LogRecord]:
        return [record for record in self.records if record.levelno == level]


# Components
def todo_item(state: ResolutionState, service: MockService, todo_id: int) -> str:
    todo = bind(
        state,
        f"todo:{todo_id}",
        service.fetcher(f"todo:{todo_id}", Todo(id=todo_id, title=f"todo {todo_id}")),
    )
    if todo.status.error:
        return f"<todo {todo_id} failed>"
    if todo.status.pending:
        return f"<todo {todo_id} loading>"
    return f"<todo {todo.data.id}: {todo.data.title}>"


def todo_list(state: ResolutionState, service: MockService, ids: list[int]) -> str:
    """
    The list is only known once loaded, so its items appear one pass later.
    """
    listing = bind(state, "todos", service.fetcher("todos", ids))
    if not listing.status.done or listing.status.error:
        return "<todos loading>"
    return "<todos>" + "".join(todo_item(state, service, i) for i in listing.data) + "</todos>"


def chain(state: ResolutionState, service: MockService, depth: int, level: int = 0) -> str:
    """
    A chain where each level only renders once the level above has loaded.
    """
    if level >= depth:
        return ""
    node = bind(state, f"level:{level}", service.fetcher(f"level:{level}", level))
    if not node.status.done:
        return f"[{level}...]"
    return f"[{node.data}" + chain(state, service, depth, level + 1) + "]"
