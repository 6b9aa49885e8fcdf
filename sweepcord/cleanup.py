"""Finding and deleting a user's own messages in one channel.

A run has two phases. The scan walks channel history backwards one page at
a time (``before`` cursor), keeps the current user's messages that pass the
configured filters, and stops at an empty page or at the page ceiling. Only
once the full candidate list is known does the delete pipeline start.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .api import DeleteResult, DiscordApi
from .channels import channel_kind
from .config import MESSAGES_PER_PAGE, CleanupConfig
from .errors import DiscordError
from .permissions import ChannelPermissions, calculate_channel_permissions

logger = logging.getLogger(__name__)

STATUS_COMPLETED = 'completed'
STATUS_PARTIAL = 'partial'
STATUS_CANCELLED = 'cancelled'
STATUS_NOTHING_MATCHED = 'nothing_matched'
STATUS_SCAN_FAILED = 'scan_failed'
STATUS_DRY_RUN = 'dry_run'

WRITABLE_KINDS = ('text', 'news')


def message_date(message: Dict):
    """UTC calendar day a message was posted on, ``None`` if it has no usable timestamp."""
    timestamp = message.get('timestamp')
    if not isinstance(timestamp, str):
        return None
    try:
        posted = datetime.fromisoformat(timestamp.replace('Z', '+00:00'))
    except ValueError:
        return None
    if posted.tzinfo is not None:
        posted = posted.astimezone(timezone.utc)
    return posted.date()


class MessageFilter:
    """Decides whether a fetched message is a deletion candidate."""

    def __init__(self, author_id: str, config: CleanupConfig):
        self.author_id = author_id
        self.date_range = config.date_range
        self.start = config.date_range.start
        self.end = config.date_range.end
        self.content = config.content_filter
        self.keywords = [k.lower() for k in config.content_filter.keywords]

    def __call__(self, message: Dict) -> bool:
        if (message.get('author') or {}).get('id') != self.author_id:
            return False

        if self.date_range.enabled and (self.start or self.end):
            posted = message_date(message)
            if posted is None:
                logger.debug(f"Skipping message {message.get('id')} without a readable timestamp")
                return False
            if self.start and posted < self.start:
                return False
            if self.end and posted > self.end:
                return False

        if self.content.enabled:
            text = message.get('content') or ''
            if not self.content.min_length <= len(text) <= self.content.max_length:
                return False
            if self.keywords and not any(k in text.lower() for k in self.keywords):
                return False
            if self.content.contains_attachments and not message.get('attachments'):
                return False
            if self.content.contains_embeds and not message.get('embeds'):
                return False
            if self.content.empty_messages and text.strip():
                return False

        return True


@dataclass
class ScanResult:
    messages: List[Dict] = field(default_factory=list)
    pages: int = 0
    scanned: int = 0
    cancelled: bool = False
    error: Optional[str] = None


def scan_messages(api: DiscordApi, channel_id: str, author_id: str, config: CleanupConfig,
                  cancel_event=None, sleep: Callable[[float], None] = time.sleep) -> ScanResult:
    """Collect the author's messages in ``channel_id`` that match ``config``.

    Fetches at most ``config.max_pages`` pages of 100. A failed page ends
    the scan but keeps what was already collected.
    """
    matches = MessageFilter(author_id, config)
    result = ScanResult()
    before = None

    while result.pages < config.max_pages:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning("Message scan cancelled")
            result.cancelled = True
            break

        try:
            page = api.get_channel_messages(channel_id, limit=MESSAGES_PER_PAGE, before=before)
        except DiscordError as e:
            logger.error(f"Message scan of {channel_id} stopped: {e}")
            result.error = str(e)
            break

        if not page:
            break

        result.messages.extend(m for m in page if matches(m))
        result.scanned += len(page)
        result.pages += 1
        before = page[-1]['id']
        logger.info(f"Found {len(result.messages)} of your messages in {result.scanned} scanned")

        if result.pages < config.max_pages and config.scan_delay > 0:
            sleep(config.scan_delay / 1000)

    return result


@dataclass
class CleanupProgress:
    total: int = 0
    processed: int = 0
    deleted: int = 0
    errors: int = 0

    def record(self, result: DeleteResult):
        self.processed += 1
        if result.success:
            self.deleted += 1
        else:
            self.errors += 1


@dataclass
class CleanupReport:
    status: str
    scan: ScanResult
    progress: CleanupProgress = field(default_factory=CleanupProgress)
    candidates: List[Dict] = field(default_factory=list)
    failures: List[DeleteResult] = field(default_factory=list)


@dataclass
class ResolvedChannel:
    """A guild channel with the current user's permissions in it."""

    channel: Dict
    permissions: ChannelPermissions

    @property
    def id(self) -> str:
        return self.channel['id']

    @property
    def name(self) -> str:
        return self.channel.get('name') or 'unknown'

    @property
    def kind(self) -> str:
        return channel_kind(self.channel.get('type'))


@dataclass
class ResolvedCategory:
    """A category with only the children the current user can see."""

    channel: Dict
    channels: List[ResolvedChannel] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.channel['id']

    @property
    def name(self) -> str:
        return self.channel.get('name') or 'Unknown Category'


@dataclass
class ServerChannels:
    """A guild's visible channels, grouped the same way as :class:`ChannelTree`."""

    categories: List[ResolvedCategory] = field(default_factory=list)
    uncategorized: List[ResolvedChannel] = field(default_factory=list)

    def all_channels(self) -> List[ResolvedChannel]:
        """Visible non-category channels in display order."""
        flat = list(self.uncategorized)
        for group in self.categories:
            flat.extend(group.channels)
        return flat


def writable_channels(tree: ServerChannels) -> List[ResolvedChannel]:
    return [
        ch for ch in tree.all_channels()
        if ch.kind in WRITABLE_KINDS
        and ch.permissions.can_view
        and ch.permissions.can_read_history
        and ch.permissions.can_send_messages
    ]


class Sweepcord:
    """Drives a cleanup run on behalf of a front end."""

    def __init__(self, api: DiscordApi, sleep: Callable[[float], None] = time.sleep):
        self.api = api
        self._sleep = sleep

    def load_server_channels(self, guild_id: str, base_permissions, user_id: str) -> ServerChannels:
        """Categorized channels of a guild the user can see.

        ``base_permissions`` is the guild ``permissions`` field from the
        guild list. If the member record cannot be fetched the user is
        treated as having no roles.
        """
        tree = self.api.get_guild_channels_with_categories(guild_id)

        try:
            roles = self.api.get_guild_member(guild_id, user_id).get('roles') or []
        except DiscordError as e:
            logger.warning(f"Could not fetch member info for guild {guild_id}: {e}")
            roles = []

        def resolve(channels):
            resolved = []
            for channel in channels:
                base = base_permissions if channel.get('guild_id') else None
                perms = calculate_channel_permissions(base, channel, user_id, roles)
                if perms.can_view:
                    resolved.append(ResolvedChannel(channel, perms))
            return resolved

        return ServerChannels(
            categories=[ResolvedCategory(group.channel, resolve(group.channels))
                        for group in tree.categories],
            uncategorized=resolve(tree.uncategorized),
        )

    def run_cleanup(self, channel_id: str, config: CleanupConfig, cancel_event=None,
                    on_result: Optional[Callable[[DeleteResult, CleanupProgress], None]] = None,
                    dry_run: bool = False, author_id: Optional[str] = None) -> CleanupReport:
        """Scan ``channel_id`` for the user's messages and delete them.

        ``on_result`` is called after every deletion with the result and the
        running totals. With ``dry_run`` the candidates are returned and
        nothing is deleted.
        """
        config.validate()
        if author_id is None:
            author_id = self.api.get_current_user()['id']

        logger.info(f"Scanning channel {channel_id} for messages by {author_id}")
        scan = scan_messages(self.api, channel_id, author_id, config,
                             cancel_event=cancel_event, sleep=self._sleep)

        if scan.cancelled:
            return CleanupReport(STATUS_CANCELLED, scan)
        if not scan.messages:
            status = STATUS_SCAN_FAILED if scan.error else STATUS_NOTHING_MATCHED
            logger.warning("No messages to delete" if status == STATUS_NOTHING_MATCHED
                           else f"Scan failed: {scan.error}")
            return CleanupReport(status, scan)

        candidates = scan.messages
        if config.message_limit.enabled:
            candidates = candidates[:config.message_limit.count]
        progress = CleanupProgress(total=len(candidates))

        if dry_run:
            return CleanupReport(STATUS_DRY_RUN, scan, progress, candidates)

        logger.info(f"Deleting {len(candidates)} messages from {channel_id}")
        report = CleanupReport(STATUS_COMPLETED, scan, progress, candidates)
        results = self.api.delete_messages_with_delay(
            channel_id, [m['id'] for m in candidates], config.delay, cancel_event
        )
        for result in results:
            progress.record(result)
            if not result.success:
                report.failures.append(result)
            if on_result is not None:
                on_result(result, progress)

        if progress.processed < progress.total:
            report.status = STATUS_CANCELLED
        elif progress.errors:
            report.status = STATUS_PARTIAL
        logger.info(
            f"Cleanup finished ({report.status}): deleted={progress.deleted}, "
            f"errors={progress.errors}, total={progress.total}"
        )
        return report
