"""Discord REST client.

A single :class:`DiscordApi` holds one token and one requests session. Every
call goes through :meth:`DiscordApi.execute`, which waits out HTTP 429
responses and turns everything else into :mod:`sweepcord.errors` exceptions.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

import requests

from .channels import CHANNEL_DM, CHANNEL_GROUP_DM, ChannelTree, categorize_channels
from .errors import ApiError, DiscordError, MalformedResponse, TransportError

DISCORD_API_BASE = "https://discord.com/api/v10"
DISCORD_CDN_BASE = "https://cdn.discordapp.com"
USER_AGENT = "Sweepcord/1.0"

DEFAULT_RATE_LIMIT_DELAY = 1000  # ms
MIN_RATE_LIMIT_DELAY = 100  # ms
DEFAULT_DELETE_DELAY = 1000  # ms
DEFAULT_TIMEOUT = 30  # seconds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeleteResult:
    """Outcome of one deletion in a batch."""

    message_id: str
    success: bool
    error: Optional[str] = None


def _is_json(response: requests.Response) -> bool:
    return 'application/json' in response.headers.get('Content-Type', '')


def _error_message(response: requests.Response) -> str:
    """Best description of a failed response the server gave us."""
    fallback = f"HTTP {response.status_code} {response.reason or ''}".strip()
    try:
        if _is_json(response):
            data = response.json()
            if isinstance(data, dict) and data.get('message'):
                return str(data['message'])
            return json.dumps(data)
        return response.text or fallback
    except ValueError:
        return fallback


def _retry_after_ms(response: requests.Response) -> Optional[int]:
    """``Retry-After`` in milliseconds, or ``None`` if absent or unreadable."""
    value = response.headers.get('Retry-After')
    if value is None:
        return None
    try:
        seconds = int(float(value))
    except (ValueError, OverflowError):
        return None
    return max(seconds, 0) * 1000


class DiscordApi:
    """Authenticated client for the endpoints a cleanup run needs."""

    def __init__(self, token: str, session: Optional[requests.Session] = None,
                 base_url: str = DISCORD_API_BASE, timeout: Optional[float] = DEFAULT_TIMEOUT,
                 sleep: Callable[[float], None] = time.sleep):
        self.token = token
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        self.session.headers.update({
            'Authorization': token,
            'User-Agent': USER_AGENT,
        })
        self.rate_limit_hits = 0
        self._rate_limit_delay = DEFAULT_RATE_LIMIT_DELAY
        self._sleep = sleep

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    # -- rate limiting ---------------------------------------------------

    def set_rate_limit_delay(self, delay: int):
        """Fallback wait (ms) for 429 responses without ``Retry-After``."""
        self._rate_limit_delay = max(MIN_RATE_LIMIT_DELAY, int(delay))

    def get_rate_limit_delay(self) -> int:
        return self._rate_limit_delay

    def _wait(self, delay_ms: float):
        self._sleep(delay_ms / 1000)

    # -- request executor ------------------------------------------------

    def execute(self, path: str, method: str = 'GET', body: Any = None,
                params: Optional[Dict[str, Any]] = None, expect_json: bool = True) -> Any:
        """Perform one API call and return its decoded JSON.

        HTTP 429 is retried for as long as the server keeps answering 429,
        waiting ``Retry-After`` seconds when given and the configured rate
        limit delay otherwise.

        Raises:
            ApiError: any other non-2xx status.
            TransportError: the request never got a response.
            MalformedResponse: a 2xx response that is not JSON.
        """
        url = f"{self.base_url}{path}"

        while True:
            logger.debug(f"{method} {path} params={params}")
            try:
                response = self.session.request(
                    method, url, params=params, json=body, timeout=self.timeout
                )
            except requests.exceptions.RequestException as e:
                raise TransportError(f"{method} {path} failed: {e}") from e

            if response.status_code != 429:
                break

            self.rate_limit_hits += 1
            delay = _retry_after_ms(response)
            if delay is None:
                delay = self._rate_limit_delay
            logger.warning(f"Rate limited on {method} {path}, retrying after {delay}ms")
            self._wait(delay)

        if not response.ok:
            raise ApiError(response.status_code, _error_message(response))

        if not expect_json:
            return None

        if not _is_json(response):
            content_type = response.headers.get('Content-Type') or 'unknown'
            raise MalformedResponse(
                f"Expected JSON response but got content-type: {content_type}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(f"Failed to parse JSON response: {e}") from e

    # -- endpoints -------------------------------------------------------

    def get_current_user(self) -> Dict:
        return self.execute('/users/@me')

    def get_user_guilds(self) -> List[Dict]:
        return self.execute('/users/@me/guilds')

    def get_user_dm_channels(self) -> List[Dict]:
        return self.execute('/users/@me/channels')

    def get_guild_channels(self, guild_id: str) -> List[Dict]:
        return self.execute(f'/guilds/{guild_id}/channels')

    def get_guild_channels_with_categories(self, guild_id: str) -> ChannelTree:
        return categorize_channels(self.get_guild_channels(guild_id))

    def get_guild_member(self, guild_id: str, user_id: str) -> Dict:
        return self.execute(f'/guilds/{guild_id}/members/{user_id}')

    def get_channel_messages(self, channel_id: str, limit: Optional[int] = None,
                             before: Optional[str] = None, after: Optional[str] = None,
                             around: Optional[str] = None) -> List[Dict]:
        """Fetch one page of channel history.

        Only the cursor options given are sent; advancing the cursor between
        pages is the caller's job.
        """
        params = {}
        if around:
            params['around'] = around
        if before:
            params['before'] = before
        if after:
            params['after'] = after
        if limit:
            params['limit'] = limit
        return self.execute(f'/channels/{channel_id}/messages', params=params or None)

    def delete_message(self, channel_id: str, message_id: str):
        self.execute(f'/channels/{channel_id}/messages/{message_id}', method='DELETE',
                     expect_json=False)

    # -- batch delete ----------------------------------------------------

    def delete_messages_with_delay(self, channel_id: str, message_ids: Iterable[str],
                                   delay: float = DEFAULT_DELETE_DELAY,
                                   cancel_event=None) -> Iterator[DeleteResult]:
        """Delete ``message_ids`` one by one, yielding a result for each.

        ``delay`` milliseconds pass between consecutive deletions. If
        ``cancel_event`` is set, the generator stops before starting the
        next message. Failures are reported in the result and never stop
        the batch.

        Each call starts a fresh batch: iterating again deletes again.
        """
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")

        ids = list(message_ids)
        for index, message_id in enumerate(ids):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Batch delete cancelled after {index}/{len(ids)} messages")
                return

            try:
                self.delete_message(channel_id, message_id)
            except DiscordError as e:
                logger.warning(f"Failed to delete message {message_id}: {e}")
                yield DeleteResult(message_id, False, str(e))
            else:
                logger.debug(f"Deleted message {message_id}")
                yield DeleteResult(message_id, True)

            if delay > 0 and index + 1 < len(ids):
                self._wait(delay)


# -- display helpers -----------------------------------------------------

def guild_icon_url(guild: Dict, size: int = 128) -> Optional[str]:
    if not guild.get('icon'):
        return None
    return f"{DISCORD_CDN_BASE}/icons/{guild['id']}/{guild['icon']}?size={size}"


def user_avatar_url(user: Dict, size: int = 128) -> str:
    if user.get('avatar'):
        return f"{DISCORD_CDN_BASE}/avatars/{user['id']}/{user['avatar']}?size={size}"
    try:
        discriminator = int(user.get('discriminator') or 0)
    except ValueError:
        discriminator = 0
    return f"{DISCORD_CDN_BASE}/embed/avatars/{discriminator % 5}.png"


def display_name(user: Dict) -> str:
    return user.get('global_name') or user.get('username') or 'Unknown User'


def dm_channel_name(channel: Dict, current_user_id: str) -> str:
    others = [u for u in channel.get('recipients') or [] if u.get('id') != current_user_id]

    if channel.get('type') == CHANNEL_DM:
        return display_name(others[0]) if others else 'Unknown User'

    if channel.get('type') == CHANNEL_GROUP_DM:
        if channel.get('name'):
            return channel['name']
        if not others:
            return 'Empty Group'
        if len(others) == 1:
            return display_name(others[0])
        names = ', '.join(display_name(u) for u in others[:2])
        if len(others) > 2:
            return f"Group with {names} and {len(others) - 2} others"
        return f"Group with {names}"

    return 'Unknown Channel'


def dm_channel_avatar(channel: Dict, current_user_id: str) -> Optional[str]:
    if channel.get('type') != CHANNEL_DM:
        return None
    for user in channel.get('recipients') or []:
        if user.get('id') != current_user_id:
            return user_avatar_url(user, 64)
    return None
