#!/usr/bin/env python3
"""
Ranchhand - Main Entry Point

This is the thin orchestration layer that:
1. Configures logging
2. Loads configuration
3. Wires the modules together and runs the session

All behavior lives in the modules, following black box principles.
"""

import logging
import os
import sys

from ranchhand import __version__
from ranchhand.config import AgentConfig, EnvConfigProvider
from ranchhand.errors import ConfigurationError, FatalStartupError
from ranchhand.logging_config import configure_logging
from ranchhand.modules.channel import PhoenixSocket
from ranchhand.modules.cluster import KubernetesClusterAPI
from ranchhand.modules.session import SessionController

logger = logging.getLogger("ranchhand.main")


def build_session(config: AgentConfig) -> SessionController:
    """Create the session controller and its collaborators from configuration."""
    socket = PhoenixSocket(
        config.channel.endpoint_url,
        heartbeat_interval=config.channel.heartbeat_interval,
        push_timeout=config.channel.push_timeout,
    )
    cluster_api = KubernetesClusterAPI(namespace=config.namespace)
    return SessionController(config, socket, cluster_api)


def main() -> None:
    """Main entry point."""
    secret = os.environ.get("CLUSTER_SECRET") or None
    try:
        configure_logging(level=os.environ.get("LOG_LEVEL", "INFO").upper(), secret=secret)
    except ConfigurationError as e:
        configure_logging(secret=secret)
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    logger.info(f"Starting ranchhand agent {__version__}")

    try:
        config = EnvConfigProvider().get_agent_config()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    session = build_session(config)

    try:
        exit_code = session.run()
    except FatalStartupError as e:
        logger.error(f"Fatal startup error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Agent stopped by user")
        sys.exit(0)

    logger.info(f"Agent exiting with status {exit_code}")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
