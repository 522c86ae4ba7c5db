"""
Test configuration and fixtures for chat tests.

This module provides:
- Users with a contact graph (alice knows bob, carol and dave)
- Conversations created through the service layer, so they carry the
  same system messages and read state as production data
- Authenticated API clients
- A fresh presence tracker per test

Usage:
    def test_example(group, client_for, bob):
        response = client_for(bob).get(f"/api/v1/chat/conversations/{group.id}/")
        assert response.status_code == 200
"""

import pytest
from django.apps import apps
from rest_framework.test import APIClient

from authentication.tests.factories import UserFactory
from chat.presence import PresenceTracker
from chat.services import ConversationService


# =============================================================================
# Presence
# =============================================================================


@pytest.fixture(autouse=True)
def presence_tracker():
    """Replace the process-wide tracker so tests never see each other's connections."""
    config = apps.get_app_config("chat")
    previous = config.presence
    config.presence = PresenceTracker()
    yield config.presence
    config.presence = previous


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    """Create the user who creates most test conversations."""
    return UserFactory(username="alice")


@pytest.fixture
def bob(db, alice):
    """Create a contact of alice."""
    return UserFactory(username="bob", contacts=[alice])


@pytest.fixture
def carol(db, alice, bob):
    """Create a contact of alice and bob."""
    return UserFactory(username="carol", contacts=[alice, bob])


@pytest.fixture
def dave(db, alice):
    """Create a contact of alice only."""
    return UserFactory(username="dave", contacts=[alice])


@pytest.fixture
def stranger(db):
    """Create a user who is nobody's contact."""
    return UserFactory(username="mallory")


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def direct(alice, bob):
    """Direct conversation between alice and bob."""
    return ConversationService.create_direct(alice, bob.id).data


@pytest.fixture
def group(alice, bob, carol):
    """Group "Weekend" created by alice (admin) with bob and carol."""
    return ConversationService.create_group(alice, [bob.id, carol.id], "Weekend").data.conversation


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def client_for():
    """Factory returning an API client authenticated as the given user."""

    def make_client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return make_client
