from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ResolverConfig(BaseModel):
    """
    Settings shared by every pass and binding of one resolution lifecycle. Immutable once built.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    logging: bool = Field(
        False,
        description="Whether to assemble a per-pass trace and log client-side binding events.",
    )
    max_passes: Optional[int] = Field(
        None,
        ge=1,
        description="Maximum number of discovery passes before the final pass is forced. None means unbounded.",
    )
    no_server_render: bool = Field(
        False,
        description="Whether every binding skips server resolution and loads on the client instead.",
    )
