"""
Authentication services.

This module provides ContactService, the read-only collaborator the chat
engine uses to resolve identities and confirmed mutual contacts.

Related files:
    - models.py: User and its symmetrical contacts relation

Note:
    Friend-request CRUD (sending, accepting, declining) is owned by the
    social layer. Chat only asks "are these two people contacts?" and
    "what do these users look like?".
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model

from core.services import BaseService

if TYPE_CHECKING:
    from collections.abc import Iterable

    from authentication.models import User

logger = logging.getLogger(__name__)


class ContactService(BaseService):
    """
    Identity and contact lookups.

    Usage:
        from authentication.services import ContactService

        if ContactService.are_contacts(alice, bob.id):
            ...

        missing = ContactService.non_contacts(alice, [bob.id, carol.id])
        users = ContactService.get_active_users([bob.id, carol.id])
    """

    @staticmethod
    def get_active_users(user_ids: Iterable) -> dict:
        """
        Resolve ids to active users.

        Returns:
            Dict mapping user id to User for every id that exists and is active.
            Unknown or inactive ids are simply absent.
        """
        User = get_user_model()
        return {
            user.id: user
            for user in User.objects.filter(id__in=set(user_ids), is_active=True)
        }

    @staticmethod
    def are_contacts(user: User, other_id) -> bool:
        """Return True if other_id is a confirmed mutual contact of user."""
        return user.contacts.filter(id=other_id).exists()

    @classmethod
    def non_contacts(cls, user: User, user_ids: Iterable) -> set:
        """
        Return the subset of user_ids that are not contacts of user.

        The user's own id is never reported.
        """
        wanted = set(user_ids) - {user.id}
        found = set(user.contacts.filter(id__in=wanted).values_list("id", flat=True))
        missing = wanted - found
        if missing:
            cls.get_logger().debug(
                f"User {user.id} is not a contact of {sorted(missing)}"
            )
        return missing

    @staticmethod
    def get_user_summaries(user_ids: Iterable) -> dict:
        """
        Display data for a set of users.

        Returns:
            Dict mapping user id to {"id", "username", "avatar"}
        """
        User = get_user_model()
        return {
            row["id"]: {
                "id": row["id"],
                "username": row["username"] or row["email"].split("@")[0],
                "avatar": row["avatar"],
            }
            for row in User.objects.filter(id__in=set(user_ids)).values(
                "id", "username", "email", "avatar"
            )
        }
