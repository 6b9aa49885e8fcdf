"""Grouping of a guild's flat channel list into categories."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

# Discord channel type codes
CHANNEL_TEXT = 0
CHANNEL_DM = 1
CHANNEL_VOICE = 2
CHANNEL_GROUP_DM = 3
CHANNEL_CATEGORY = 4
CHANNEL_NEWS = 5
CHANNEL_STAGE = 13
CHANNEL_FORUM = 15

_CHANNEL_KINDS = {
    CHANNEL_TEXT: 'text',
    CHANNEL_VOICE: 'voice',
    CHANNEL_NEWS: 'news',
    10: 'thread',
    11: 'thread',
    12: 'thread',
    CHANNEL_STAGE: 'stage',
    CHANNEL_FORUM: 'forum',
}


def channel_kind(type_code: Optional[int]) -> str:
    """Human-readable kind for a channel type code, ``text`` when unknown."""
    return _CHANNEL_KINDS.get(type_code, 'text')


def position_of(channel: Dict) -> int:
    return channel.get('position') or 0


@dataclass
class CategoryGroup:
    """A category channel and the channels placed under it."""

    channel: Dict
    channels: List[Dict] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.channel['id']

    @property
    def name(self) -> str:
        return self.channel.get('name') or 'Unknown Category'

    @property
    def position(self) -> int:
        return position_of(self.channel)


@dataclass
class ChannelTree:
    categories: List[CategoryGroup] = field(default_factory=list)
    uncategorized: List[Dict] = field(default_factory=list)

    def flatten(self) -> List[Dict]:
        """Every channel in the tree, categories first."""
        flat = [group.channel for group in self.categories]
        for group in self.categories:
            flat.extend(group.channels)
        flat.extend(self.uncategorized)
        return flat

    def all_channels(self) -> List[Dict]:
        """Non-category channels in display order."""
        flat = list(self.uncategorized)
        for group in self.categories:
            flat.extend(group.channels)
        return flat


def categorize_channels(channels: List[Dict]) -> ChannelTree:
    """Split ``channels`` into categories with ordered children.

    A channel lands under its ``parent_id`` only when that id is a category
    present in the same list; everything else is uncategorized. Sorting is
    by ``position`` and stable, so equal positions keep server order.
    """
    groups: Dict[str, CategoryGroup] = {}
    for channel in channels:
        if channel.get('type') == CHANNEL_CATEGORY:
            groups[channel['id']] = CategoryGroup(channel=channel)

    uncategorized = []
    for channel in channels:
        if channel.get('type') == CHANNEL_CATEGORY:
            continue
        parent = groups.get(channel.get('parent_id'))
        if parent is not None:
            parent.channels.append(channel)
        else:
            uncategorized.append(channel)

    categories = sorted(groups.values(), key=lambda g: g.position)
    for group in categories:
        group.channels.sort(key=position_of)

    return ChannelTree(
        categories=categories,
        uncategorized=sorted(uncategorized, key=position_of),
    )
