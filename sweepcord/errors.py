"""Exceptions raised by the Discord client."""


class DiscordError(Exception):
    """Base class for every error surfaced by :class:`sweepcord.api.DiscordApi`."""


class NetworkError(DiscordError):
    """No usable response was obtained from the API."""


class TransportError(NetworkError):
    """DNS, connection or timeout failure before a response arrived."""


class MalformedResponse(NetworkError):
    """A success status came back with a body that is not JSON."""


class ApiError(DiscordError):
    """Non-success HTTP status other than 429."""

    def __init__(self, status: int, message: str):
        super().__init__(f"Discord API Error ({status}): {message}")
        self.status = status
        self.message = message


class ConfigError(ValueError):
    """Invalid cleanup settings or a missing token."""
