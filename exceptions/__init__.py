class BotError(Exception):
    """Base bot exception."""

class ConfigError(BotError):
    """Raised when configuration is missing or malformed."""

class RconError(BotError, ConnectionError):
    """Raised when RCON fails."""

class PermissionDenied(BotError):
    """Raised when user lacks proper role."""

class ArgumentError(BotError):
    """Raised when a required command argument is missing."""

class UnrecognizedCommand(BotError):
    """Raised for an unknown whitelist verb."""
