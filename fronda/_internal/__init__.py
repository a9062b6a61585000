from fronda._internal.logger import logger, indent
from fronda._internal.dataclasses import (
    Declaration,
    Err,
    HydrationResult,
    Ok,
    PassOutcome,
    ResolutionResult,
    Result,
)
from fronda._internal.protocols import AwaitableCallback, FetchCallable

__all__ = [
    "logger",
    "indent",
    "Declaration",
    "Err",
    "HydrationResult",
    "Ok",
    "PassOutcome",
    "ResolutionResult",
    "Result",
    "AwaitableCallback",
    "FetchCallable",
]
