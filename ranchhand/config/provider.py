"""Configuration provider following Black Box Design principles."""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import yaml

from ranchhand.errors import ConfigurationError

logger = logging.getLogger("ranchhand.config")

DEFAULT_ENDPOINT_URL = "wss://ranching.farm/socket/kubernetes/cluster"
DEFAULT_CONFIG_FILE = "/etc/ranchhand/agent.yaml"
SERVICE_ACCOUNT_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"

DISPATCH_MODES = ("queued", "inline")


@dataclass(frozen=True)
class ManagedResource:
    """A resource whose lifecycle follows the agent deployment."""
    kind: str
    name: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.name}"


@dataclass
class ChannelConfig:
    """Control channel configuration."""
    endpoint_url: str
    cluster_id: str
    secret: str
    join_timeout: float
    heartbeat_interval: float
    push_timeout: float = 10.0

    @property
    def topic(self) -> str:
        """Channel topic the agent joins."""
        return f"cluster:{self.cluster_id}:{self.secret}"

    def __repr__(self) -> str:
        return (
            f"ChannelConfig(endpoint_url={self.endpoint_url!r}, "
            f"cluster_id={self.cluster_id!r}, secret='***')"
        )


@dataclass
class DispatchConfig:
    """Command dispatch configuration."""
    mode: str
    queue_size: int

    @property
    def queued(self) -> bool:
        return self.mode == "queued"


@dataclass
class AgentConfig:
    """Complete agent configuration."""
    channel: ChannelConfig
    dispatch: DispatchConfig
    namespace: str
    deployment_name: str
    managed_resources: List[ManagedResource] = field(default_factory=list)


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_agent_config(self) -> AgentConfig:
        """Get agent configuration."""
        ...


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def _get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.environ.get(key)
        if value is None or value == "":
            return default
        return value

    def _require(self, key: str) -> str:
        value = self._get(key)
        if value is None:
            raise ConfigurationError(f"{key} environment variable is not set")
        return value

    def _get_number(self, key: str, default: str, cast=int):
        raw = self._get(key, default)
        try:
            value = cast(raw)
        except ValueError:
            raise ConfigurationError(f"{key} must be a number, got {raw!r}")
        if value <= 0:
            raise ConfigurationError(f"{key} must be positive, got {raw!r}")
        return value

    def get_channel_config(self) -> ChannelConfig:
        """Get control channel configuration from environment variables."""
        return ChannelConfig(
            endpoint_url=self._get("ENDPOINT_URL", DEFAULT_ENDPOINT_URL),
            cluster_id=self._require("CLUSTER_ID"),
            secret=self._require("CLUSTER_SECRET"),
            join_timeout=self._get_number("JOIN_TIMEOUT", "10", cast=float),
            heartbeat_interval=self._get_number("HEARTBEAT_INTERVAL", "30", cast=float),
            push_timeout=self._get_number("PUSH_TIMEOUT", "10", cast=float),
        )

    def get_dispatch_config(self) -> DispatchConfig:
        """Get command dispatch configuration from environment variables."""
        mode = self._get("COMMAND_DISPATCH_MODE", "queued").lower()
        if mode not in DISPATCH_MODES:
            raise ConfigurationError(
                f"COMMAND_DISPATCH_MODE must be one of {', '.join(DISPATCH_MODES)}, got {mode!r}"
            )
        return DispatchConfig(
            mode=mode,
            queue_size=self._get_number("COMMAND_QUEUE_SIZE", "64"),
        )

    def get_namespace(self) -> str:
        """Namespace of the agent's own resources."""
        namespace = self._get("AGENT_NAMESPACE")
        if namespace:
            return namespace

        namespace_file = Path(SERVICE_ACCOUNT_NAMESPACE_FILE)
        if namespace_file.exists():
            return namespace_file.read_text().strip()
        return "default"

    def get_managed_resources(self) -> List[ManagedResource]:
        """
        Resources bound to the agent deployment at session start.

        Defaults come from the AGENT_*_NAME variables; a `managedResources`
        list in the YAML config file replaces them entirely.
        """
        defaults = [
            ManagedResource("ServiceAccount", self._get("AGENT_SERVICE_ACCOUNT_NAME", "ranchhand-agent")),
            ManagedResource("ClusterRole", self._get("AGENT_CLUSTER_ROLE_NAME", "ranchhand-agent")),
            ManagedResource(
                "ClusterRoleBinding", self._get("AGENT_CLUSTER_ROLE_BINDING_NAME", "ranchhand-agent")
            ),
            ManagedResource("Secret", self._get("AGENT_SECRET_NAME", "ranchhand-credentials")),
        ]

        file_config = self._load_file_config()
        entries = file_config.get("managedResources")
        if entries is None:
            return defaults

        resources = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("kind") or not entry.get("name"):
                raise ConfigurationError(f"Invalid managedResources entry: {entry!r}")
            resources.append(ManagedResource(str(entry["kind"]), str(entry["name"])))
        return resources

    def _load_file_config(self) -> Dict[str, Any]:
        path = Path(self._get("AGENT_CONFIG_FILE", DEFAULT_CONFIG_FILE))
        if not path.exists():
            logger.debug(f"No config file at {path}, using defaults")
            return {}

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to read config file {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")

        logger.info(f"Loaded config file {path}")
        return data

    def get_agent_config(self) -> AgentConfig:
        """Get complete agent configuration from environment variables."""
        return AgentConfig(
            channel=self.get_channel_config(),
            dispatch=self.get_dispatch_config(),
            namespace=self.get_namespace(),
            deployment_name=self._get("AGENT_DEPLOYMENT_NAME", "ranchhand-agent"),
            managed_resources=self.get_managed_resources(),
        )
