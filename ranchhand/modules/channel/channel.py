"""
Phoenix channel transport.

Implements the client side of the Phoenix socket protocol (v2 JSON
serializer) on top of the websockets library. Messages on the wire are
five-element arrays:

    [join_ref, ref, topic, event, payload]

A reader thread receives frames, resolves replies to pending pushes by
`ref` and delivers every other event to the handlers registered on the
matching channel. A heartbeat thread keeps the server-side socket alive and
expires pushes the server never answered.
Both are daemon threads; there is no reconnect logic.
"""

import itertools
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import connect

from ranchhand.errors import ChannelError, JoinError

logger = logging.getLogger("ranchhand.channel")

PROTOCOL_VERSION = "2.0.0"
PHOENIX_TOPIC = "phoenix"

# Control events defined by the Phoenix protocol
PHX_JOIN = "phx_join"
PHX_REPLY = "phx_reply"
PHX_ERROR = "phx_error"
PHX_CLOSE = "phx_close"
HEARTBEAT = "heartbeat"

AckCallback = Callable[[Any], None]
EventHandler = Callable[[Any], None]


class OutboundSink(Protocol):
    """Anything the agent can push named events into."""

    def push(self, event: str, payload: Dict[str, Any], on_ack: Optional[AckCallback] = None) -> None:
        ...


@dataclass(frozen=True)
class Message:
    """One decoded Phoenix frame."""

    join_ref: Optional[str]
    ref: Optional[str]
    topic: str
    event: str
    payload: Any


def encode_message(message: Message) -> str:
    """Serialize a message to its wire form."""
    return json.dumps(
        [message.join_ref, message.ref, message.topic, message.event, message.payload]
    )


def decode_message(raw) -> Message:
    """
    Parse a wire frame.

    Raises:
        ValueError: If the frame is not a five-element JSON array
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    data = json.loads(raw)
    if not isinstance(data, list) or len(data) != 5:
        raise ValueError(f"Malformed frame: {raw!r}")

    join_ref, ref, topic, event, payload = data
    if not isinstance(topic, str) or not isinstance(event, str):
        raise ValueError(f"Malformed frame: {raw!r}")
    return Message(join_ref, ref, topic, event, payload)


def build_socket_url(endpoint_url: str) -> str:
    """Websocket URL for a Phoenix socket endpoint."""
    parts = urlsplit(endpoint_url)
    path = parts.path.rstrip("/")
    if not path.endswith("/websocket"):
        path = f"{path}/websocket"

    query = [(k, v) for k, v in parse_qsl(parts.query) if k != "vsn"]
    query.append(("vsn", PROTOCOL_VERSION))
    return urlunsplit((parts.scheme, parts.netloc, path, urlencode(query), parts.fragment))


class PhoenixSocket:
    """Single websocket connection multiplexing Phoenix channels."""

    def __init__(
        self,
        endpoint_url: str,
        heartbeat_interval: float = 30.0,
        open_timeout: float = 10.0,
        push_timeout: float = 10.0,
        on_close: Optional[Callable[[], None]] = None,
        connect_fn: Callable = connect,
    ):
        """
        Initialize the socket.

        Args:
            endpoint_url: Phoenix socket endpoint (ws:// or wss://)
            heartbeat_interval: Seconds between heartbeats
            open_timeout: Seconds allowed for the websocket handshake
            push_timeout: Seconds a pushed message waits for its reply before
                the reply callback is dropped
            on_close: Called once from the reader thread when the connection ends
            connect_fn: Websocket connect function, replaceable in tests
        """
        self.url = build_socket_url(endpoint_url)
        self.heartbeat_interval = heartbeat_interval
        self.open_timeout = open_timeout
        self.push_timeout = push_timeout
        self.on_close = on_close
        self._connect_fn = connect_fn

        self._ws = None
        self._send_lock = threading.Lock()
        self._ref_lock = threading.Lock()
        self._refs = itertools.count(1)
        self._pending: Dict[str, Tuple[Callable[[Any], None], float]] = {}
        self._pending_lock = threading.Lock()
        self._channels: Dict[str, "PhoenixChannel"] = {}
        self._closed = threading.Event()

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and not self._closed.is_set()

    def connect(self) -> None:
        """
        Open the websocket and start the reader and heartbeat threads.

        Raises:
            ChannelError: If the connection cannot be established
        """
        logger.info(f"Connecting to WebSocket at {self.url}")
        try:
            self._ws = self._connect_fn(self.url, open_timeout=self.open_timeout)
        except (OSError, TimeoutError, WebSocketException) as e:
            raise ChannelError(f"Failed to connect to socket: {e}") from e

        threading.Thread(target=self._read_loop, name="phx-reader", daemon=True).start()
        threading.Thread(target=self._heartbeat_loop, name="phx-heartbeat", daemon=True).start()
        logger.info("Successfully connected to WebSocket")

    def channel(self, topic: str, params: Optional[Dict[str, Any]] = None) -> "PhoenixChannel":
        """Create the channel for `topic` on this socket."""
        if topic in self._channels:
            raise ChannelError("A channel for this topic already exists")
        channel = PhoenixChannel(self, topic, params)
        self._channels[topic] = channel
        return channel

    def next_ref(self) -> str:
        with self._ref_lock:
            return str(next(self._refs))

    def send(self, message: Message, on_reply: Optional[Callable[[Any], None]] = None) -> None:
        """
        Write a message to the socket.

        Args:
            message: Message to send
            on_reply: Called with the reply payload when the server answers
                this message's ref

        Raises:
            ChannelError: If the socket is not connected or the write fails
        """
        if not self.is_connected:
            raise ChannelError("Socket is not connected")

        if on_reply is not None and message.ref is not None:
            self.expire_pending()
            with self._pending_lock:
                self._pending[message.ref] = (on_reply, time.monotonic() + self.push_timeout)

        try:
            with self._send_lock:
                self._ws.send(encode_message(message))
        except (OSError, WebSocketException) as e:
            if message.ref is not None:
                self.cancel(message.ref)
            raise ChannelError(f"Failed to send {message.event}: {e}") from e

    def close(self) -> None:
        """Close the websocket; safe to call more than once."""
        self._closed.set()
        if self._ws is not None:
            try:
                self._ws.close()
            except (OSError, WebSocketException) as e:
                logger.debug(f"Error closing socket: {e}")

    def cancel(self, ref: str) -> None:
        """Forget the reply callback registered for `ref`."""
        with self._pending_lock:
            self._pending.pop(ref, None)

    def expire_pending(self) -> int:
        """
        Drop reply callbacks whose push timeout has passed.

        Returns:
            Number of callbacks dropped
        """
        now = time.monotonic()
        with self._pending_lock:
            expired = [ref for ref, (_, deadline) in self._pending.items() if deadline <= now]
            for ref in expired:
                del self._pending[ref]

        if expired:
            logger.warning(f"No reply within {self.push_timeout}s for {len(expired)} pushed message(s)")
        return len(expired)

    def _read_loop(self) -> None:
        try:
            for raw in self._ws:
                try:
                    message = decode_message(raw)
                except ValueError as e:
                    logger.error(f"Failed to parse frame: {e}")
                    continue

                try:
                    self._route(message)
                except Exception as e:
                    logger.exception(f"Error processing event {message.event}: {e}")
        except ConnectionClosed as e:
            logger.warning(f"WebSocket connection closed: {e}")
        finally:
            was_closing = self._closed.is_set()
            self._closed.set()
            with self._pending_lock:
                self._pending.clear()
            if not was_closing and self.on_close is not None:
                self.on_close()

    def _route(self, message: Message) -> None:
        if message.event == PHX_REPLY and message.ref is not None:
            with self._pending_lock:
                entry = self._pending.pop(message.ref, None)
            if entry is not None:
                callback, _ = entry
                callback(message.payload)
                return

        if message.topic == PHOENIX_TOPIC:
            return

        channel = self._channels.get(message.topic)
        if channel is None:
            logger.debug(f"Dropping {message.event} for unknown channel")
            return
        channel.trigger(message.event, message.payload)

    def _heartbeat_loop(self) -> None:
        while not self._closed.wait(self.heartbeat_interval):
            self.expire_pending()
            try:
                self.send(Message(None, self.next_ref(), PHOENIX_TOPIC, HEARTBEAT, {}))
            except ChannelError as e:
                logger.warning(f"Heartbeat failed: {e}")
                return


class PhoenixChannel:
    """A joined topic on a PhoenixSocket; the agent's outbound sink."""

    def __init__(self, socket: PhoenixSocket, topic: str, params: Optional[Dict[str, Any]] = None):
        self.socket = socket
        self.topic = topic
        self.params = params or {}
        self.join_ref: Optional[str] = None
        self.on_close: Optional[Callable[[str], None]] = None
        self._handlers: Dict[str, EventHandler] = {}

    @property
    def joined(self) -> bool:
        return self.join_ref is not None

    def on(self, event: str, handler: EventHandler) -> None:
        """Register the handler for an inbound event, replacing any previous one."""
        self._handlers[event] = handler

    def join(self, timeout: float = 10.0) -> Any:
        """
        Join the topic and wait for the server's reply.

        Returns:
            The `response` part of the join reply

        Raises:
            JoinError: If the server refuses, or does not reply within `timeout`
            ChannelError: If the channel was already joined or the send fails
        """
        if self.joined:
            raise ChannelError("Channel already joined")

        join_ref = self.socket.next_ref()
        replied = threading.Event()
        reply: Dict[str, Any] = {}

        def on_reply(payload: Any) -> None:
            reply["payload"] = payload
            replied.set()

        self.socket.send(Message(join_ref, join_ref, self.topic, PHX_JOIN, self.params), on_reply)

        if not replied.wait(timeout):
            self.socket.cancel(join_ref)
            raise JoinError(f"Join timed out after {timeout}s")

        payload = reply["payload"] if isinstance(reply["payload"], dict) else {}
        if payload.get("status") != "ok":
            raise JoinError(f"Join refused: {payload.get('response')}")

        self.join_ref = join_ref
        return payload.get("response")

    def push(self, event: str, payload: Dict[str, Any], on_ack: Optional[AckCallback] = None) -> None:
        """
        Push an event to the server without waiting for the reply.

        The acknowledgement, if one arrives, is handed to `on_ack`; an error
        reply is only logged.

        Raises:
            ChannelError: If the channel is not joined or the send fails
        """
        if not self.joined:
            raise ChannelError(f"Cannot push {event} before join")

        def on_reply(reply: Any) -> None:
            status = reply.get("status") if isinstance(reply, dict) else None
            if status == "ok":
                if on_ack is not None:
                    on_ack(reply.get("response"))
            else:
                logger.warning(f"Push {event} not acknowledged: {reply}")

        self.socket.send(Message(self.join_ref, self.socket.next_ref(), self.topic, event, payload), on_reply)

    def trigger(self, event: str, payload: Any) -> None:
        """
        Deliver an inbound event to its handler.

        A server-side `phx_error` or `phx_close` leaves the channel unjoined
        and is reported to `on_close` with the event name.
        """
        if event in (PHX_ERROR, PHX_CLOSE):
            if event == PHX_ERROR:
                logger.error(f"Channel error from server: {payload}")
            else:
                logger.warning("Channel closed by server")
            self.join_ref = None
            if self.on_close is not None:
                self.on_close(event)
            return

        handler = self._handlers.get(event)
        if handler is None:
            logger.debug(f"No handler for event {event}")
            return
        handler(payload)
