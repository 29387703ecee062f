"""
API Module - Black Box Interface

Purpose: Wire payload definitions for the cluster channel
Interface: Pydantic models for inbound and outbound events
Hidden: Validation rules
"""

from .models import (
    ClusterInfo,
    CommandRequest,
    CommandResponse,
    InboundEvent,
    NodeSummary,
    OutboundEvent,
)

__all__ = [
    "ClusterInfo",
    "CommandRequest",
    "CommandResponse",
    "InboundEvent",
    "NodeSummary",
    "OutboundEvent",
]
