"""
Test configuration and fixtures for notification tests.

Usage:
    def test_example(recipient, actor):
        result = NotificationService.create_notification(recipient, ...)
"""

import pytest

from authentication.tests.factories import UserFactory


@pytest.fixture
def recipient(db):
    """Create the user receiving notifications."""
    return UserFactory(username="recipient")


@pytest.fixture
def actor(db):
    """Create a user to act as notification actor (trigger)."""
    return UserFactory(username="actor")
