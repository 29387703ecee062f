"""
Event dispatcher.

Routes inbound channel events to handlers through a dispatch table and
pushes command results back on the `output` event.

In queued mode (the default) `cmd` events are handed to a single processor
thread through a bounded queue, so commands run one at a time in arrival
order while the transport keeps servicing heartbeats and replies. In inline
mode the command runs on the delivery thread and blocks later events until
it finishes.
"""

import logging
from functools import partial
from queue import Full, Queue
from threading import Thread
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from ranchhand.errors import ChannelError
from ranchhand.modules.api import CommandRequest, CommandResponse, InboundEvent, OutboundEvent
from ranchhand.modules.channel import OutboundSink
from ranchhand.modules.executor import CommandExecutor

logger = logging.getLogger("ranchhand.dispatcher")

_STOP = object()

Handler = Callable[[Any], None]


class EventDispatcher:
    """Dispatch table from inbound event names to handlers."""

    def __init__(
        self,
        sink: OutboundSink,
        executor: CommandExecutor,
        on_uninstall: Callable[[], None],
        queued: bool = True,
        queue_size: int = 64,
    ):
        """
        Initialize dispatcher.

        Args:
            sink: Outbound channel for `output` events
            executor: Command executor
            on_uninstall: Teardown callback invoked on `uninstall`
            queued: Run commands on a processor thread instead of inline
            queue_size: Maximum number of commands waiting to run
        """
        self.sink = sink
        self.executor = executor
        self.on_uninstall = on_uninstall
        self.queued = queued

        self.command_queue: Queue = Queue(maxsize=queue_size)
        self._processor: Optional[Thread] = None

        self._handlers: Dict[str, Handler] = {
            InboundEvent.CMD.value: self._on_command_event,
            InboundEvent.UNINSTALL.value: self._on_uninstall_event,
        }

    @property
    def events(self):
        """Names of the events this dispatcher handles."""
        return list(self._handlers)

    def register(self, event: str, handler: Handler) -> None:
        """Add or replace the handler for `event`."""
        self._handlers[event] = handler

    def attach(self, channel) -> None:
        """Register every handler of the dispatch table on `channel`."""
        for event in self._handlers:
            channel.on(event, partial(self.dispatch, event))

    def dispatch(self, event: str, payload: Any) -> None:
        """Route one inbound event; unknown events are ignored."""
        handler = self._handlers.get(event)
        if handler is None:
            logger.debug(f"Ignoring unhandled event: {event}")
            return
        handler(payload)

    def start(self) -> None:
        """Start the command processor thread in queued mode."""
        if not self.queued or self._processor is not None:
            return
        self._processor = Thread(target=self._process_commands, name="command-processor", daemon=True)
        self._processor.start()
        logger.info(f"Command processor started (queue size {self.command_queue.maxsize})")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the processor after the commands already queued have run."""
        if self._processor is None:
            return
        self.command_queue.put(_STOP)
        self._processor.join(timeout)
        self._processor = None

    def decode_command(self, payload: Any) -> Optional[CommandRequest]:
        """
        Decode a `cmd` payload.

        Returns:
            The request, or None if the payload does not have the expected
            shape (the event is then dropped without a response)
        """
        if not isinstance(payload, dict):
            logger.error("Invalid payload format")
            return None

        try:
            return CommandRequest.model_validate(payload)
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
            logger.error(f"Invalid command payload, dropping (bad fields: {fields or 'unknown'})")
            return None

    def handle_command(self, request: CommandRequest) -> CommandResponse:
        """Execute a command and push its correlated response."""
        logger.info(f"Received command {request.uuid}: {request.command}")

        result = self.executor.execute(request.command, request.arguments)
        if result.failed:
            logger.error(f"Error executing command {request.uuid}")

        response = CommandResponse.for_request(request, result.output)
        self._push_output(response)
        return response

    def _push_output(self, response: CommandResponse) -> None:
        try:
            self.sink.push(
                OutboundEvent.OUTPUT.value,
                response.model_dump(),
                on_ack=lambda ack: logger.info(f"Command output sent successfully: {ack}"),
            )
        except ChannelError as e:
            logger.error(f"Failed to send command output for {response.uuid}: {e}")

    def _on_command_event(self, payload: Any) -> None:
        request = self.decode_command(payload)
        if request is None:
            return

        if not self.queued:
            self.handle_command(request)
            return

        try:
            self.command_queue.put_nowait(request)
        except Full:
            logger.error(f"Command queue full, dropping command {request.uuid}")

    def _on_uninstall_event(self, payload: Any) -> None:
        logger.info("Received uninstall request")
        self.on_uninstall()

    def _process_commands(self) -> None:
        """
        Process commands from the queue.

        Runs in a separate thread to avoid blocking the channel reader.
        """
        while True:
            request = self.command_queue.get()
            if request is _STOP:
                break

            try:
                self.handle_command(request)
            except Exception as e:
                logger.error(f"Error processing command {request.uuid}: {e}")
