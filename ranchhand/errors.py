"""Exception types shared across Ranchhand modules."""


class RanchhandError(Exception):
    """Base class for all agent errors."""


class ConfigurationError(RanchhandError, ValueError):
    """Required configuration is missing or invalid."""


class FatalStartupError(RanchhandError):
    """Startup precondition failed; the process must exit."""


class ChannelError(RanchhandError):
    """Sending on or talking to the control channel failed."""


class JoinError(ChannelError):
    """The control server refused or never acknowledged the channel join."""


class ClusterAPIError(RanchhandError):
    """A Kubernetes API call failed."""


class InventoryError(RanchhandError):
    """Cluster inventory could not be collected."""


class SessionError(RanchhandError):
    """Session controller used out of order."""
