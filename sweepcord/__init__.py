"""Sweepcord - bulk delete your own Discord messages through the REST API."""

__version__ = "1.0.0"

from .api import DeleteResult, DiscordApi
from .channels import CategoryGroup, ChannelTree, categorize_channels
from .cleanup import CleanupProgress, CleanupReport, ServerChannels, Sweepcord, scan_messages
from .config import CleanupConfig, load_config, load_token
from .errors import (
    ApiError,
    ConfigError,
    DiscordError,
    MalformedResponse,
    NetworkError,
    TransportError,
)
from .permissions import ChannelPermissions, calculate_channel_permissions

__all__ = [
    "ApiError",
    "CategoryGroup",
    "ChannelPermissions",
    "ChannelTree",
    "CleanupConfig",
    "CleanupProgress",
    "CleanupReport",
    "ConfigError",
    "DeleteResult",
    "DiscordApi",
    "DiscordError",
    "MalformedResponse",
    "NetworkError",
    "ServerChannels",
    "Sweepcord",
    "TransportError",
    "calculate_channel_permissions",
    "categorize_channels",
    "load_config",
    "load_token",
    "scan_messages",
]
