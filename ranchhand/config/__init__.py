"""
Config Module - Black Box Interface

Purpose: Agent configuration from the process environment
Interface: EnvConfigProvider.get_agent_config()
Hidden: Environment parsing, config file loading, defaults

Can be replaced with any provider implementing ConfigProvider.
"""

from .provider import (
    AgentConfig,
    ChannelConfig,
    ConfigProvider,
    DispatchConfig,
    EnvConfigProvider,
    ManagedResource,
)

__all__ = [
    "AgentConfig",
    "ChannelConfig",
    "ConfigProvider",
    "DispatchConfig",
    "EnvConfigProvider",
    "ManagedResource",
]
