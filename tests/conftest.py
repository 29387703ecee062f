"""
Shared pytest fixtures for Ranchhand tests.

This module provides common fixtures including:
- ProcessMocker: Mock subprocess calls with canned responses
- RecordingSink: Outbound sink that records pushed events
- FakeClusterAPI: In-memory cluster capability
- FakeWebSocket: Scriptable websocket for transport tests
"""

import json
import os
import queue
import sys
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple, Union
from unittest.mock import MagicMock, patch

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ranchhand.config import AgentConfig, ChannelConfig, DispatchConfig, ManagedResource
from ranchhand.errors import ClusterAPIError


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll `predicate` until it holds or `timeout` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


# =============================================================================
# Process Mocking Infrastructure
# =============================================================================

@dataclass
class ProcessResponse:
    """Represents a mocked child process outcome."""
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0
    raises: Optional[BaseException] = None

    def to_completed_process(self) -> MagicMock:
        """Convert to a subprocess.CompletedProcess-like mock."""
        result = MagicMock()
        result.stdout = self.stdout
        result.stderr = self.stderr
        result.returncode = self.returncode
        return result


@dataclass
class ProcessCall:
    """Record of a process launch made during testing."""
    argv: List[str]
    full_command_str: str
    matched_pattern: Optional[str] = None
    kwargs: Dict[str, Any] = field(default_factory=dict)


class ProcessMocker:
    """
    Mock subprocess.run with pattern-matched responses.

    Usage:
        def test_uptime(process_mocker):
            process_mocker.register("uptime", ProcessResponse(stdout="up 3 days\\n"))
            result = CommandExecutor().execute("uptime", "")
            assert process_mocker.was_called_with("uptime")
    """

    def __init__(self):
        self._responses: List[Tuple[Union[str, Pattern], ProcessResponse]] = []
        self._call_history: List[ProcessCall] = []
        self._default_response = ProcessResponse(
            stderr="mock not configured for this command",
            returncode=127,
        )

    def register(self, pattern: Union[str, Pattern], response: ProcessResponse) -> "ProcessMocker":
        """Register a response for command lines matching the pattern (substring or regex)."""
        self._responses.append((pattern, response))
        return self

    def set_default_response(self, response: ProcessResponse) -> "ProcessMocker":
        """Set the default response for unmatched commands."""
        self._default_response = response
        return self

    def mock_run(self, argv: List[str], **kwargs) -> MagicMock:
        """Side effect replacing subprocess.run."""
        cmd_str = " ".join(argv)
        matched_pattern = None
        response = self._default_response

        for pattern, resp in self._responses:
            if isinstance(pattern, str):
                if pattern in cmd_str:
                    matched_pattern, response = pattern, resp
                    break
            elif pattern.search(cmd_str):
                matched_pattern, response = pattern.pattern, resp
                break

        self._call_history.append(ProcessCall(list(argv), cmd_str, matched_pattern, dict(kwargs)))

        if response.raises is not None:
            raise response.raises
        return response.to_completed_process()

    @property
    def calls(self) -> List[ProcessCall]:
        return self._call_history

    @property
    def call_count(self) -> int:
        return len(self._call_history)

    def was_called_with(self, pattern: str) -> bool:
        """Check if any call contained the given pattern."""
        return any(pattern in call.full_command_str for call in self._call_history)


@pytest.fixture
def process_mocker():
    """ProcessMocker with subprocess.run patched for the duration of the test."""
    mocker = ProcessMocker()
    with patch("subprocess.run", side_effect=mocker.mock_run):
        yield mocker


# =============================================================================
# Outbound Sink and Cluster Fakes
# =============================================================================

class RecordingSink:
    """Outbound sink that records pushes and acknowledges them immediately."""

    def __init__(self, error: Optional[Exception] = None, ack_response: Any = None):
        self.error = error
        self.ack_response = ack_response if ack_response is not None else {}
        self.pushes: List[Tuple[str, Dict[str, Any]]] = []

    def push(self, event: str, payload: Dict[str, Any], on_ack=None) -> None:
        if self.error is not None:
            raise self.error
        self.pushes.append((event, payload))
        if on_ack is not None:
            on_ack(self.ack_response)

    def events(self, name: str) -> List[Dict[str, Any]]:
        return [payload for event, payload in self.pushes if event == name]


class FakeClusterAPI:
    """In-memory ClusterAPI recording every call."""

    def __init__(self, nodes: Optional[List[Dict[str, str]]] = None, uids: Optional[Dict] = None):
        self.nodes = nodes or []
        self.uids: Dict[Tuple[str, str], str] = dict(uids or {})
        self.owner_refs: Dict[Tuple[str, str], List[Any]] = defaultdict(list)
        self.deleted: List[Tuple[str, str]] = []
        self.calls: List[Tuple] = []
        self.failures: Dict[Any, Exception] = {}

    def fail(self, operation: str, error: Optional[Exception] = None, kind: Optional[str] = None):
        """Make `operation` (optionally only for `kind`) raise."""
        key = (operation, kind) if kind else operation
        self.failures[key] = error or ClusterAPIError(f"{operation} failed")
        return self

    def _maybe_fail(self, operation: str, kind: Optional[str] = None) -> None:
        error = self.failures.get((operation, kind)) or self.failures.get(operation)
        if error is not None:
            raise error

    def list_nodes(self):
        self.calls.append(("list_nodes",))
        self._maybe_fail("list_nodes")
        return [dict(node) for node in self.nodes]

    def get_resource_uid(self, kind, name):
        self.calls.append(("get_resource_uid", kind, name))
        self._maybe_fail("get_resource_uid", kind)
        if (kind, name) not in self.uids:
            raise ClusterAPIError(f"Failed to read {kind}/{name}: 404 Not Found")
        return self.uids[(kind, name)]

    def patch_owner_reference(self, kind, name, owner):
        self.calls.append(("patch_owner_reference", kind, name))
        self._maybe_fail("patch_owner_reference", kind)
        refs = self.owner_refs[(kind, name)]
        if any(ref.uid == owner.uid for ref in refs):
            return False
        refs.append(owner)
        return True

    def delete_resource(self, kind, name):
        self.calls.append(("delete_resource", kind, name))
        self._maybe_fail("delete_resource", kind)
        self.deleted.append((kind, name))


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def cluster_api():
    """Cluster with three nodes and a resolvable agent deployment."""
    return FakeClusterAPI(
        nodes=[
            {"name": "node-a", "status": "Running"},
            {"name": "node-b", "status": "Running"},
            {"name": "node-c", "status": "Unknown"},
        ],
        uids={("Deployment", "ranchhand-agent"): "0b7c6f4e-deployment-uid"},
    )


@pytest.fixture
def managed_resources():
    return [
        ManagedResource("ServiceAccount", "ranchhand-agent"),
        ManagedResource("ClusterRole", "ranchhand-agent"),
        ManagedResource("ClusterRoleBinding", "ranchhand-agent"),
        ManagedResource("Secret", "ranchhand-credentials"),
    ]


@pytest.fixture
def agent_config(managed_resources):
    return AgentConfig(
        channel=ChannelConfig(
            endpoint_url="ws://control.test/socket/kubernetes/cluster",
            cluster_id="test-cluster",
            secret="s3cr3t-value",
            join_timeout=1.0,
            heartbeat_interval=30.0,
        ),
        dispatch=DispatchConfig(mode="inline", queue_size=8),
        namespace="ranchhand",
        deployment_name="ranchhand-agent",
        managed_resources=managed_resources,
    )


# =============================================================================
# WebSocket Mocking Infrastructure
# =============================================================================

def phoenix_server(join_status: str = "ok", ack_pushes: bool = True) -> Callable[[list], List[list]]:
    """
    Responder emulating a Phoenix server: replies to joins and pushes.

    Heartbeats are acknowledged as well, matching real servers.
    """

    def respond(frame: list) -> List[list]:
        join_ref, ref, topic, event, _payload = frame
        if event == "phx_join":
            return [[join_ref, ref, topic, "phx_reply", {"status": join_status, "response": {}}]]
        if ack_pushes and ref is not None:
            return [[join_ref, ref, topic, "phx_reply", {"status": "ok", "response": {}}]]
        return []

    return respond


class FakeWebSocket:
    """Scriptable stand-in for a websockets sync ClientConnection."""

    def __init__(self, responder: Optional[Callable[[list], List[list]]] = None):
        self.responder = responder
        self.sent: List[list] = []
        self.closed = False
        self._incoming: "queue.Queue[Optional[str]]" = queue.Queue()

    def send(self, text: str) -> None:
        if self.closed:
            raise OSError("socket is closed")
        frame = json.loads(text)
        self.sent.append(frame)
        if self.responder is not None:
            for reply in self.responder(frame):
                self.deliver(reply)

    def deliver(self, frame: Any) -> None:
        """Queue a frame as if received from the server."""
        self._incoming.put(frame if isinstance(frame, str) else json.dumps(frame))

    def drop(self) -> None:
        """Simulate the server going away."""
        self._incoming.put(None)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._incoming.put(None)

    def __iter__(self):
        while True:
            item = self._incoming.get()
            if item is None:
                return
            yield item

    def sent_events(self, event: str) -> List[list]:
        return [frame for frame in self.sent if frame[3] == event]


@pytest.fixture
def fake_ws():
    return FakeWebSocket(responder=phoenix_server())


@pytest.fixture
def connect_fn(fake_ws):
    """Websocket connect function returning `fake_ws` and recording the URL."""
    calls = []

    def _connect(url, **kwargs):
        calls.append(url)
        return fake_ws

    _connect.calls = calls
    return _connect


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "process_mock: Tests using mocked subprocess calls"
    )
    config.addinivalue_line(
        "markers", "subprocess: Tests that launch real child processes"
    )
