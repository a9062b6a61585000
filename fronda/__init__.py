from ._internal import Err, Ok, PassOutcome, ResolutionResult
from .binding import Binding, LoadResult, LoadStatus, Phase, bind
from .config import ResolverConfig
from .resolver import ServerResolver, attach, hydrate, mount, resolve
from .runner import PassRunner
from .state import Mode, ResolutionState

__all__ = [
    "Binding",
    "Err",
    "LoadResult",
    "LoadStatus",
    "Mode",
    "Ok",
    "PassOutcome",
    "PassRunner",
    "Phase",
    "ResolutionResult",
    "ResolutionState",
    "ResolverConfig",
    "ServerResolver",
    "attach",
    "bind",
    "hydrate",
    "mount",
    "resolve",
]
