"""
Tests for SoftDeleteMixin in core/model_mixins.py.

This module tests:
- soft_delete() method sets is_deleted and deleted_at
- restore() method clears is_deleted and deleted_at
- Idempotency of soft_delete and restore

Message is the concrete model used, since it is the one soft-deleting model.
"""

import pytest
from freezegun import freeze_time

from chat.tests.factories import MessageFactory


@pytest.fixture
def message(db):
    return MessageFactory(content="hello")


@pytest.mark.django_db
class TestSoftDelete:
    def test_soft_delete_sets_flag_and_timestamp(self, message):
        assert message.is_deleted is False

        with freeze_time("2026-05-01 09:30:00"):
            message.soft_delete()

        message.refresh_from_db()
        assert message.is_deleted is True
        assert message.deleted_at.isoformat() == "2026-05-01T09:30:00+00:00"

    def test_soft_delete_keeps_the_row(self, message):
        message.soft_delete()

        assert type(message).objects.filter(pk=message.pk).exists()

    def test_soft_delete_is_idempotent(self, message):
        with freeze_time("2026-05-01 09:30:00"):
            message.soft_delete()
        with freeze_time("2026-05-02 09:30:00"):
            message.soft_delete()

        message.refresh_from_db()
        assert message.deleted_at.isoformat() == "2026-05-01T09:30:00+00:00"


@pytest.mark.django_db
class TestRestore:
    def test_restore_clears_flag_and_timestamp(self, message):
        message.soft_delete()

        message.restore()

        message.refresh_from_db()
        assert message.is_deleted is False
        assert message.deleted_at is None

    def test_restore_of_live_record_is_noop(self, message):
        updated_at = message.updated_at

        message.restore()

        message.refresh_from_db()
        assert message.is_deleted is False
        assert message.updated_at == updated_at
