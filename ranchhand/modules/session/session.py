import logging
import threading
from enum import Enum
from typing import List, Optional

from ranchhand.config import AgentConfig
from ranchhand.errors import ChannelError, ClusterAPIError, FatalStartupError, SessionError
from ranchhand.modules.channel import PhoenixChannel, PhoenixSocket
from ranchhand.modules.cluster import ClusterAPI
from ranchhand.modules.dispatcher import EventDispatcher
from ranchhand.modules.executor import CommandExecutor
from ranchhand.modules.inventory import InventoryReporter
from ranchhand.modules.ownership import BindingOutcome, OwnershipBinder

logger = logging.getLogger("ranchhand.session")


class SessionState(str, Enum):
    """Lifecycle of the control session."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    JOINED = "joined"
    TERMINATED = "terminated"


class SessionController:
    def __init__(
        self,
        config: AgentConfig,
        socket: PhoenixSocket,
        cluster_api: ClusterAPI,
        executor: Optional[CommandExecutor] = None,
    ):
        """
        Initialize session controller.

        Args:
            config: Agent configuration
            socket: Unconnected transport to the control server
            cluster_api: Cluster capability shared by inventory, ownership and teardown
            executor: Command executor (a default one is created when omitted)
        """
        self.config = config
        self.socket = socket
        self.socket.on_close = self._on_transport_closed
        self.cluster_api = cluster_api

        self.inventory = InventoryReporter(cluster_api)
        self.binder = OwnershipBinder(cluster_api, config.deployment_name)
        self.executor = executor or CommandExecutor()

        self.state = SessionState.DISCONNECTED
        self.channel: Optional[PhoenixChannel] = None
        self.dispatcher: Optional[EventDispatcher] = None
        self.binding_outcomes: List[BindingOutcome] = []

        self._state_lock = threading.Lock()
        self._done = threading.Event()
        self._exit_code = 0

    @property
    def exit_code(self) -> int:
        return self._exit_code

    def connect(self) -> None:
        """
        Connect the transport.

        Raises:
            FatalStartupError: If the control server cannot be reached
        """
        if self.state != SessionState.DISCONNECTED:
            raise SessionError(f"Cannot connect from state {self.state.value}")

        try:
            self.socket.connect()
        except ChannelError as e:
            raise FatalStartupError(str(e)) from e
        self.state = SessionState.CONNECTED

    def join(self) -> None:
        """
        Join the cluster channel, then run the handshake and start dispatch.

        The handshake sends inventory once and binds managed resources, in
        that order, before any inbound event is handled.

        Raises:
            FatalStartupError: If the join is refused or times out
            SessionError: If called twice or before connect()
        """
        if self.state != SessionState.CONNECTED:
            raise SessionError(f"Cannot join from state {self.state.value}")

        channel_config = self.config.channel
        logger.info(f"Joining channel for cluster {channel_config.cluster_id}")
        channel = self.socket.channel(channel_config.topic)
        try:
            response = channel.join(timeout=channel_config.join_timeout)
        except ChannelError as e:
            raise FatalStartupError(f"Failed to join channel: {e}") from e

        self.channel = channel
        self.state = SessionState.JOINED
        self.channel.on_close = self._on_channel_closed
        logger.info(f"Joined channel for cluster {channel_config.cluster_id}: {response}")

        self._handshake()
        self._start_dispatch()

    def _handshake(self) -> None:
        self.inventory.report(self.channel)
        self.binding_outcomes = self.binder.bind_all(self.config.managed_resources)

    def _start_dispatch(self) -> None:
        self.dispatcher = EventDispatcher(
            sink=self.channel,
            executor=self.executor,
            on_uninstall=self.uninstall,
            queued=self.config.dispatch.queued,
            queue_size=self.config.dispatch.queue_size,
        )
        self.dispatcher.start()
        self.dispatcher.attach(self.channel)
        logger.info(f"Main loop started ({self.config.dispatch.mode} dispatch). Waiting for events...")

    def run(self) -> int:
        """
        Connect, join and block until the session ends.

        Returns:
            Process exit status: 0 after uninstall, 1 if the connection was
            lost or the server closed the channel

        Raises:
            FatalStartupError: If connect or join fails
        """
        self.connect()
        self.join()
        self._done.wait()
        self.socket.close()
        return self._exit_code

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the session to end; True if it did."""
        return self._done.wait(timeout)

    def uninstall(self) -> None:
        """
        Delete the agent deployment and end the session.

        Deletion is best-effort: the session ends with exit status 0 whether
        or not it succeeds. Resources bound at join time are then removed by
        the cluster; unbound ones are left behind.
        """
        with self._state_lock:
            if self.state == SessionState.TERMINATED:
                return
            self.state = SessionState.TERMINATED

        deployment = self.config.deployment_name
        logger.info(f"Uninstalling: deleting Deployment/{deployment}")
        try:
            self.cluster_api.delete_resource("Deployment", deployment)
            logger.info(f"Deleted Deployment/{deployment}")
        except ClusterAPIError as e:
            logger.error(f"Failed to delete Deployment/{deployment}: {e}")
        finally:
            self._finish(0)

    def _on_transport_closed(self) -> None:
        self._abort("Connection to control server lost")

    def _on_channel_closed(self, event: str) -> None:
        self._abort(f"Cluster channel ended by server ({event})")

    def _abort(self, reason: str) -> None:
        with self._state_lock:
            if self.state == SessionState.TERMINATED:
                return
            self.state = SessionState.TERMINATED

        logger.error(reason)
        self._finish(1)

    def _finish(self, exit_code: int) -> None:
        self._exit_code = exit_code
        self._done.set()
