"""Exception types shared across the reward pipeline."""


class RewardsError(RuntimeError):
    """Base class for errors raised by this package."""


class ConfigurationError(RewardsError):
    """Raised when configuration is invalid."""


class RPCError(RewardsError):
    """Raised when the X1 RPC returns an error response or cannot be reached."""


class SetupError(RewardsError):
    """Raised when a run cannot start: unknown vote account or no current epoch."""
