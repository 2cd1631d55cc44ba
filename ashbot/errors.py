"""
Error taxonomy for ashbot.

- ConfigError: malformed configuration or catalog entry (fatal at load)
- PermissionDenied: room policy refused a command (user-visible)
- UpstreamError: network, subprocess or AI failure (recovered into a generic reply)
- NotFound: nothing to act on (user-visible, specific message)
"""


class AshError(Exception):
    """Base class for all ashbot errors."""


class ConfigError(AshError):
    """Configuration or command catalog failed validation."""


class PermissionDenied(AshError):
    """A command is not allowed in the current room."""


class UpstreamError(AshError):
    """An external collaborator failed or timed out."""


class NotFound(AshError):
    """
    The requested thing does not exist.

    The message is shown to the user as-is.
    """
