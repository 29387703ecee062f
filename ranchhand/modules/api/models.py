"""
Ranchhand wire models.

These models define the structure of every payload exchanged with the
control server over the cluster channel.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, StrictStr

# Enums


class InboundEvent(str, Enum):
    """Events pushed by the control server."""

    CMD = "cmd"
    UNINSTALL = "uninstall"


class OutboundEvent(str, Enum):
    """Events pushed by the agent."""

    INFO = "info"
    OUTPUT = "output"


# Inbound Models


class CommandRequest(BaseModel):
    """Command pushed by the control server on the `cmd` event."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    command: StrictStr = Field(..., description="Executable to run")
    arguments: StrictStr = Field(
        ..., description="Whitespace-delimited argument list, no quoting support"
    )
    uuid: StrictStr = Field(..., description="Opaque correlation id echoed in the response")


# Outbound Models


class CommandResponse(BaseModel):
    """Result of a command, pushed on the `output` event."""

    command: str
    arguments: str
    output: str
    uuid: str

    @classmethod
    def for_request(cls, request: CommandRequest, output: str) -> "CommandResponse":
        """Build the response correlated to `request`."""
        return cls(
            command=request.command,
            arguments=request.arguments,
            output=output,
            uuid=request.uuid,
        )


class NodeSummary(BaseModel):
    """Minimal view of one cluster node."""

    name: str
    status: str = Field(default="", description="Node phase, empty when unreported")


class ClusterInfo(BaseModel):
    """Inventory pushed once per session on the `info` event."""

    nodes: List[NodeSummary] = Field(default_factory=list)
