"""Cleanup settings and token lookup."""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

from .errors import ConfigError

TOKEN_ENV = 'DISCORD_TOKEN'
ENV_FILE = '.env'

MESSAGES_PER_PAGE = 100
DEFAULT_MAX_PAGES = 50

logger = logging.getLogger(__name__)


def _parse_date(value: Optional[str], name: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ConfigError(f"{name} must be a YYYY-MM-DD date, got {value!r}")


@dataclass
class DateRange:
    enabled: bool = False
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    @property
    def start(self) -> Optional[date]:
        return _parse_date(self.start_date, 'start_date')

    @property
    def end(self) -> Optional[date]:
        return _parse_date(self.end_date, 'end_date')


@dataclass
class ContentFilter:
    enabled: bool = False
    keywords: List[str] = field(default_factory=list)
    min_length: int = 0
    max_length: int = 4000
    contains_attachments: bool = False
    contains_embeds: bool = False
    empty_messages: bool = False


@dataclass
class MessageLimit:
    enabled: bool = True
    count: int = 100


@dataclass
class CleanupConfig:
    """What to delete from a channel and how fast.

    ``delay`` is the pause between deletions and ``scan_delay`` the pause
    between history pages, both in milliseconds.
    """

    date_range: DateRange = field(default_factory=DateRange)
    content_filter: ContentFilter = field(default_factory=ContentFilter)
    message_limit: MessageLimit = field(default_factory=MessageLimit)
    delay: int = 1000
    scan_delay: int = 500

    @classmethod
    def from_dict(cls, data: Dict) -> 'CleanupConfig':
        """Build a config from parsed JSON; missing keys keep their defaults."""
        if not isinstance(data, dict):
            raise ConfigError(f"Config must be a JSON object, got {type(data).__name__}")
        return cls(
            date_range=DateRange(**data.get('date_range', {})),
            content_filter=ContentFilter(**data.get('content_filter', {})),
            message_limit=MessageLimit(**data.get('message_limit', {})),
            delay=data.get('delay', 1000),
            scan_delay=data.get('scan_delay', 500),
        ).validate()

    @property
    def max_pages(self) -> int:
        """How many history pages a scan may fetch.

        With a message limit this is ``ceil(count / 100)``; filtering can
        leave fewer matches than the limit, and the scan still stops there.
        """
        if self.message_limit.enabled:
            return -(-self.message_limit.count // MESSAGES_PER_PAGE)
        return DEFAULT_MAX_PAGES

    def validate(self) -> 'CleanupConfig':
        if self.delay < 0:
            raise ConfigError(f"delay must be >= 0 ms, got {self.delay}")
        if self.scan_delay < 0:
            raise ConfigError(f"scan_delay must be >= 0 ms, got {self.scan_delay}")
        if self.message_limit.enabled and self.message_limit.count <= 0:
            raise ConfigError("message_limit.count must be positive")

        cf = self.content_filter
        if cf.enabled and cf.min_length > cf.max_length:
            raise ConfigError(
                f"min_length ({cf.min_length}) is greater than max_length ({cf.max_length})"
            )

        start, end = self.date_range.start, self.date_range.end
        if start and end and start > end:
            raise ConfigError(f"start_date {start} is after end_date {end}")
        return self


def load_config(path: str) -> CleanupConfig:
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot read config {path}: {e}")
    try:
        return CleanupConfig.from_dict(data)
    except TypeError as e:
        raise ConfigError(f"Unknown setting in {path}: {e}")


def load_token(token_arg: Optional[str] = None) -> str:
    """Find the Discord token.

    Priority:
        1. ``token_arg`` (the --token flag)
        2. DISCORD_TOKEN environment variable
        3. DISCORD_TOKEN=... line in ./.env
    """
    if token_arg:
        logger.info("Using token from command-line argument")
        return token_arg

    if os.environ.get(TOKEN_ENV):
        logger.info("Using token from environment variable")
        return os.environ[TOKEN_ENV]

    env_file = Path(ENV_FILE)
    if env_file.exists():
        with open(env_file, 'r') as f:
            for line in f:
                line = line.strip()
                if line.startswith(f'{TOKEN_ENV}='):
                    logger.info("Using token from .env file")
                    return line.split('=', 1)[1].strip().strip('"\'')

    raise ConfigError(
        f"No Discord token found: pass --token, set {TOKEN_ENV}, "
        f"or add {TOKEN_ENV}=... to {ENV_FILE}"
    )
