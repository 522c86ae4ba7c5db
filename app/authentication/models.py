"""
Authentication models.

This module defines the identity model consumed by the chat engine:
- User: Custom user model with email-based authentication, a display
  name, an avatar and the set of confirmed mutual contacts

Credential issuance (registration, login, token minting) and the
friend-request workflow that fills the contact set live outside the chat
engine. Chat code only reads users and contacts through
authentication.services.ContactService.

Related files:
    - managers.py: Custom user manager for email-based creation
    - services.py: ContactService lookups used by the chat engine
"""

import re

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.core.exceptions import ValidationError
from django.db import models

from authentication.managers import UserManager

DEFAULT_AVATAR = "/avatars/hugging.png"


def validate_username_format(value):
    """Validate username format: 3-30 chars, alphanumeric + _ + - + ."""
    if not re.match(r"^[a-zA-Z0-9_.-]{3,30}$", value):
        raise ValidationError(
            "Username must be 3-30 characters and contain only "
            "letters, numbers, dots, underscores, and hyphens."
        )


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        username: Display name shown in chat and system messages
        avatar: URL of the user's avatar image
        contacts: Confirmed mutual contacts (symmetrical)
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        alice = User.objects.create_user(email="alice@example.com", username="alice")
        bob = User.objects.create_user(email="bob@example.com", username="bob")
        alice.contacts.add(bob)  # bob.contacts now contains alice too
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    username = models.CharField(
        max_length=30,
        blank=True,
        validators=[validate_username_format],
        help_text="Display name shown to other users",
    )
    avatar = models.CharField(
        max_length=500,
        default=DEFAULT_AVATAR,
        blank=True,
        help_text="URL of the user's avatar image",
    )

    # Confirmed friendships. Symmetrical so a single add() links both sides.
    contacts = models.ManyToManyField(
        "self",
        symmetrical=True,
        blank=True,
        help_text="Confirmed mutual contacts",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    @property
    def display_name(self):
        """Username if set, otherwise the local part of the email."""
        return self.username or self.email.split("@")[0]

    def get_full_name(self):
        return self.display_name

    def get_short_name(self):
        return self.display_name
