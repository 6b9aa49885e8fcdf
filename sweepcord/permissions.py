"""Per-channel effective permissions from role bits and channel overwrites.

Discord stores guild-level permissions as an integer bitfield (sent over the
wire as a decimal string). A channel may carry ``permission_overwrites`` that
deny and then allow bits for the @everyone role, for individual roles and for
a single member. Overwrites are layered in that order, so a member overwrite
always wins.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Union

# Discord permission bits
ADMINISTRATOR = 1 << 3
VIEW_CHANNEL = 1 << 10
SEND_MESSAGES = 1 << 11
MANAGE_MESSAGES = 1 << 13
READ_MESSAGE_HISTORY = 1 << 16

OVERWRITE_ROLE = 0
OVERWRITE_MEMBER = 1

_OVERWRITE_TYPES = {
    0: OVERWRITE_ROLE,
    1: OVERWRITE_MEMBER,
    'role': OVERWRITE_ROLE,
    'member': OVERWRITE_MEMBER,
}

Bitfield = Union[int, str]


@dataclass(frozen=True)
class ChannelPermissions:
    can_view: bool = False
    can_read_history: bool = False
    can_manage_messages: bool = False
    can_send_messages: bool = False
    can_delete_own_messages: bool = False
    has_full_access: bool = False

    @property
    def can_clean(self) -> bool:
        """Whether the channel is usable for a cleanup run."""
        return self.can_view and self.can_read_history


NO_PERMISSIONS = ChannelPermissions()

FULL_ACCESS = ChannelPermissions(
    can_view=True,
    can_read_history=True,
    can_manage_messages=True,
    can_send_messages=True,
    can_delete_own_messages=True,
    has_full_access=True,
)


def to_bitfield(value: Optional[Bitfield]) -> int:
    """Parse a wire bitfield; ``None`` and empty strings count as zero."""
    if value is None or value == '':
        return 0
    return int(value)


def overwrite_type(overwrite: Dict) -> Optional[int]:
    return _OVERWRITE_TYPES.get(overwrite.get('type'))


def apply_overwrite(permissions: int, overwrite: Dict) -> int:
    permissions &= ~to_bitfield(overwrite.get('deny'))
    permissions |= to_bitfield(overwrite.get('allow'))
    return permissions


def calculate_channel_permissions(base_permissions: Optional[Bitfield], channel: Dict,
                                  user_id: str,
                                  user_roles: Iterable[str] = ()) -> ChannelPermissions:
    """Resolve what ``user_id`` may do in ``channel``.

    ``base_permissions`` is the user's guild-wide bitfield (as returned with
    the guild list). ``None`` means no guild context is known, in which case
    every capability is denied.
    """
    if base_permissions is None:
        return NO_PERMISSIONS

    permissions = to_bitfield(base_permissions)
    if permissions & ADMINISTRATOR:
        return FULL_ACCESS

    overwrites = channel.get('permission_overwrites') or []
    guild_id = channel.get('guild_id')
    roles = set(user_roles)

    everyone = next(
        (ow for ow in overwrites
         if ow.get('id') == guild_id and overwrite_type(ow) == OVERWRITE_ROLE),
        None,
    )
    if everyone is not None:
        permissions = apply_overwrite(permissions, everyone)

    for ow in overwrites:
        if ow is everyone or overwrite_type(ow) != OVERWRITE_ROLE:
            continue
        if ow.get('id') in roles:
            permissions = apply_overwrite(permissions, ow)

    member = next(
        (ow for ow in overwrites
         if ow.get('id') == user_id and overwrite_type(ow) == OVERWRITE_MEMBER),
        None,
    )
    if member is not None:
        permissions = apply_overwrite(permissions, member)

    return ChannelPermissions(
        can_view=bool(permissions & VIEW_CHANNEL),
        can_read_history=bool(permissions & READ_MESSAGE_HISTORY),
        can_manage_messages=bool(permissions & MANAGE_MESSAGES),
        can_send_messages=bool(permissions & SEND_MESSAGES),
        # Authors can always delete their own messages
        can_delete_own_messages=True,
        has_full_access=bool(permissions & ADMINISTRATOR),
    )
