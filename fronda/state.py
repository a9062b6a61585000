from collections import Counter
from enum import Enum
from typing import Any, Hashable, Optional
from uuid import uuid4

from fronda._internal import Declaration, Err, Ok, Result, logger
from fronda.config import ResolverConfig
from fronda.errors import CacheOverwriteError, NoActivePassError


class Mode(str, Enum):
    SERVER = "server"
    CLIENT = "client"


class ResolutionState:
    """
    Holds everything one resolution lifecycle needs: the declarations collected per pass, the result
    cache, the first-render flag and the live bindings of client nodes. Create one per server request or per
    client session, through `ResolutionState.server` or `ResolutionState.client`.

    :param mode: Whether this state drives a server resolution or a client session.
    :param context: Optional; an opaque value handed unchanged to every fetch function.
    :param server_data: Optional; cached data produced by a server resolution (client mode only).
    :param config: Optional; a `ResolverConfig`. Mutually exclusive with keyword options.
    :param uuid: Optional; an identifier used in log lines.
    """

    def __init__(
        self,
        mode: Mode,
        context: Any = None,
        server_data: Optional[dict[str, Any]] = None,
        config: Optional[ResolverConfig] = None,
        uuid: Optional[str] = None,
        **options: Any,
    ):
        if config is not None and options:
            raise ValueError(
                "Pass either a 'config' or keyword options to ResolutionState, not both."
            )
        if server_data and mode is Mode.SERVER:
            raise ValueError("'server_data' can only be given to a client state.")

        self.uuid: str = uuid or str(uuid4())
        self.mode: Mode = mode
        self.context: Any = context
        self.config: ResolverConfig = config or ResolverConfig(**options)

        # * Registry
        self.pass_index: int = -1
        self.declarations_by_pass: list[list[Declaration]] = []

        # * Cache
        self.cache: dict[str, Result] = {
            key: self._as_result(value) for key, value in (server_data or {}).items()
        }

        # * Inner flags
        self._is_first_render: bool = True
        self._resolved: bool = False
        self._attach_queue: list[Any] = []

        # * Client bindings
        self._bindings: dict[tuple, Any] = {}
        self._occurrences: Counter[str] = Counter()
        self._rendered: set[tuple] = set()

    def __repr__(self) -> str:
        return f"ResolutionState(uuid={self.uuid}, mode={self.mode.value}, pass={self.pass_index})"

    @classmethod
    def server(
        cls,
        context: Any = None,
        config: Optional[ResolverConfig] = None,
        uuid: Optional[str] = None,
        **options: Any,
    ) -> "ResolutionState":
        return cls(Mode.SERVER, context=context, config=config, uuid=uuid, **options)

    @classmethod
    def client(
        cls,
        server_data: Optional[dict[str, Any]] = None,
        context: Any = None,
        config: Optional[ResolverConfig] = None,
        uuid: Optional[str] = None,
        **options: Any,
    ) -> "ResolutionState":
        return cls(
            Mode.CLIENT,
            context=context,
            server_data=server_data,
            config=config,
            uuid=uuid,
            **options,
        )

    @staticmethod
    def _as_result(value: Any) -> Result:
        if isinstance(value, (Ok, Err)):
            return value
        return Ok(value)

    @property
    def logging(self) -> bool:
        return self.config.logging

    @property
    def is_server(self) -> bool:
        return self.mode is Mode.SERVER

    @property
    def is_first_render(self) -> bool:
        return self._is_first_render

    @property
    def num_passes(self) -> int:
        return self.pass_index + 1

    @property
    def error_keys(self) -> tuple[str, ...]:
        return tuple(key for key, result in self.cache.items() if result.is_error)

    # * Registry

    def begin_pass(self) -> int:
        """
        Opens a new traversal pass and returns its index.
        """
        self.pass_index += 1
        self.declarations_by_pass.append([])
        return self.pass_index

    def record_declaration(self, declaration: Declaration):
        """
        Appends a declaration to the pass currently being traversed.
        """
        if self.pass_index < 0:
            raise NoActivePassError(
                f"{self} received a declaration for '{declaration.key}' before any pass began."
            )
        self.declarations_by_pass[self.pass_index].append(declaration)

    @property
    def current_declarations(self) -> list[Declaration]:
        if self.pass_index < 0:
            return []
        return self.declarations_by_pass[self.pass_index]

    # * Cache

    def has_result(self, key: str) -> bool:
        return key in self.cache

    def get_result(self, key: str) -> Optional[Result]:
        return self.cache.get(key)

    def get_data(self, key: str) -> Any:
        """
        Returns the cached value for `key`, or None when it is missing or errored.
        """
        result = self.cache.get(key)
        if isinstance(result, Ok):
            return result.value
        return None

    def store_result(self, key: str, result: Result):
        """
        Writes the settled result of a fetch. A key is written at most once per lifecycle.
        """
        if key in self.cache:
            raise CacheOverwriteError(f"{self} already holds a result for '{key}'.")
        self.cache[key] = result

    def snapshot(self) -> dict[str, Any]:
        """
        Returns a copy of the cache in the shape handed to `ResolutionState.client`.
        """
        return {
            key: result if isinstance(result, Err) else result.value
            for key, result in self.cache.items()
        }

    # * Lifecycle

    def track_binding(self, binding: Any):
        """
        Queues a client binding until the next `attach` mounts it.
        """
        if not self.is_server:
            self._attach_queue.append(binding)

    def drain_bindings(self) -> list[Any]:
        bindings, self._attach_queue = self._attach_queue, []
        return bindings

    def begin_render(self):
        """
        Starts a new client render. Nodes are matched to their live bindings by key and call order
        from here on, so the n-th node binding a key finds the binding it had in the previous render.
        """
        self._occurrences.clear()
        self._rendered = set()

    def binding_identity(self, key: str, node: Optional[Hashable] = None) -> tuple:
        """
        Returns the identity of the node binding `key` right now, and marks it as rendered.

        :param key: The key being bound.
        :param node: Optional; an explicit identity for the node. Defaults to the call order of `key`.
        """
        if node is None:
            identity = (key, "order", self._occurrences[key])
            self._occurrences[key] += 1
        else:
            identity = (key, "node", node)
        self._rendered.add(identity)
        return identity

    def find_binding(self, identity: tuple) -> Optional[Any]:
        return self._bindings.get(identity)

    def register_binding(self, identity: tuple, binding: Any):
        self._bindings[identity] = binding

    def end_render(self) -> list[Any]:
        """
        Closes a client render and returns the bindings of nodes it no longer rendered. They are
        forgotten, so rendering such a node again starts a new mount.
        """
        stale = [
            binding
            for identity, binding in self._bindings.items()
            if identity not in self._rendered
        ]
        self._bindings = {
            identity: binding
            for identity, binding in self._bindings.items()
            if identity in self._rendered
        }
        self._attach_queue = [
            binding for binding in self._attach_queue if binding not in stale
        ]
        return stale

    def mark_resolved(self):
        self._resolved = True

    @property
    def is_resolved(self) -> bool:
        return self._resolved

    def mark_first_render_done(self):
        """
        Flips the first-render flag for good and drops the server cache, since bindings now own their data.
        """
        if not self._is_first_render:
            return
        self._is_first_render = False
        self.cache = {}
        logger.debug(f"{self} first render done, server cache released.")
