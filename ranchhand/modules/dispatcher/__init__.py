"""
Dispatcher Module - Black Box Interface

Purpose: Turn inbound channel events into local actions and outbound results
Interface: EventDispatcher.dispatch(event, payload), EventDispatcher.attach(channel)
Hidden: Payload validation, command queueing, response correlation
"""

from .dispatcher import EventDispatcher

__all__ = ["EventDispatcher"]
