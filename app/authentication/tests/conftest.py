"""
Test configuration and fixtures for authentication tests.

Usage:
    def test_example(user, contact):
        assert ContactService.are_contacts(user, contact.id)
"""

import pytest

from authentication.models import User
from authentication.tests.factories import UserFactory


@pytest.fixture
def user(db):
    """Create a basic active user."""
    return UserFactory(username="alice")


@pytest.fixture
def contact(db, user):
    """Create a user who is a confirmed contact of `user`."""
    return UserFactory(username="bob", contacts=[user])


@pytest.fixture
def stranger(db):
    """Create a user who is not a contact of anyone."""
    return UserFactory(username="mallory")


@pytest.fixture
def deactivated_user(db):
    """Create a deactivated user (is_active=False)."""
    return UserFactory(is_active=False)


@pytest.fixture
def superuser(db):
    """Create a superuser with admin privileges."""
    return User.objects.create_superuser(
        email="admin@example.com", password="AdminPass123!"
    )
