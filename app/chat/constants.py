"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Message operations (content limits)
- Group conversations (name limits, permission policy defaults)
- Wallpaper defaults
- Presence and channel-layer group naming

Import example:
    from chat.constants import MESSAGE_CONFIG, GROUP_CONFIG
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    MAX_CONTENT_LENGTH: Final[int] = 500  # Characters
    MIN_CONTENT_LENGTH: Final[int] = 1


# =============================================================================
# Group Configuration
# =============================================================================


class GROUP_CONFIG:
    """Configuration for group conversations."""

    MIN_NAME_LENGTH: Final[int] = 3
    MAX_NAME_LENGTH: Final[int] = 30

    # Invited members, not counting the creator
    MIN_INVITED_MEMBERS: Final[int] = 2

    DEFAULT_AVATAR: Final[str] = "/avatars/hugging.png"

    # Permission policy: action -> who may perform it
    POLICY_ADMIN: Final[str] = "admin"
    POLICY_ALL: Final[str] = "all"
    POLICY_VALUES: Final[tuple] = (POLICY_ADMIN, POLICY_ALL)

    ACTION_RENAME: Final[str] = "rename"
    ACTION_ADD_MEMBER: Final[str] = "addMember"
    ACTION_REMOVE_MEMBER: Final[str] = "removeMember"
    ACTION_GROUP_AVATAR: Final[str] = "groupAvatar"
    ACTIONS: Final[tuple] = (
        ACTION_RENAME,
        ACTION_ADD_MEMBER,
        ACTION_REMOVE_MEMBER,
        ACTION_GROUP_AVATAR,
    )


def default_permissions():
    """Fresh default permission policy (every action admin-only)."""
    return {action: GROUP_CONFIG.POLICY_ADMIN for action in GROUP_CONFIG.ACTIONS}


# =============================================================================
# Wallpaper Configuration
# =============================================================================


WALLPAPER_DEFAULTS: Final[dict] = {
    "url": "/wallpapers/ChatBg.png",
    "senderBubble": "#52357B",
    "receiverBubble": "white",
    "senderTextColor": "white",
    "receiverTextColor": "black",
    "systemTextColor": "black",
    "iconColor": "white",
}


def default_wallpaper():
    """Fresh copy of the default wallpaper."""
    return dict(WALLPAPER_DEFAULTS)


# =============================================================================
# Presence / Channel Layer Configuration
# =============================================================================


class PRESENCE_CONFIG:
    """Channel-layer group names used for delivery."""

    # Every connection of a user joins user_<id>
    USER_GROUP_PREFIX: Final[str] = "user_"

    # Every authenticated connection joins this group for presence broadcasts
    PRESENCE_GROUP: Final[str] = "presence"


def user_group_name(user_id) -> str:
    """Channel-layer group for every connection of a user."""
    return f"{PRESENCE_CONFIG.USER_GROUP_PREFIX}{user_id}"
