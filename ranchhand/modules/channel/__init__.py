"""
Channel Module - Black Box Interface

Purpose: Persistent realtime connection to the control server
Interface: PhoenixSocket.connect(), PhoenixSocket.channel(topic),
           PhoenixChannel.join(), PhoenixChannel.on(event, handler),
           PhoenixChannel.push(event, payload, on_ack)
Hidden: Wire framing, reply correlation, heartbeats, reader thread

Can be replaced with any transport offering the OutboundSink push interface.
"""

from .channel import (
    Message,
    OutboundSink,
    PhoenixChannel,
    PhoenixSocket,
    build_socket_url,
    decode_message,
    encode_message,
)

__all__ = [
    "Message",
    "OutboundSink",
    "PhoenixChannel",
    "PhoenixSocket",
    "build_socket_url",
    "decode_message",
    "encode_message",
]
