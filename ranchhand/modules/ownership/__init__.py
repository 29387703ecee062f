"""
Ownership Module - Black Box Interface

Purpose: Tie auxiliary resources to the agent deployment for cascading deletion
Interface: OwnershipBinder.bind_ownership(kind, name), OwnershipBinder.bind_all(resources)
Hidden: Owner UID resolution, owner reference patching

Best-effort: failures are reported per resource and never raised.
"""

from .ownership import BindingOutcome, OwnershipBinder

__all__ = ["BindingOutcome", "OwnershipBinder"]
