"""
Session Module - Black Box Interface

Purpose: Own the control session lifecycle
Interface: SessionController.run(), SessionController.uninstall()
Hidden: Connect/join sequencing, join handshake, teardown

States: disconnected -> connected -> joined -> terminated
"""

from .session import SessionController, SessionState

__all__ = ["SessionController", "SessionState"]
