"""
Tests for the User model.

Covers display naming, username validation and the symmetrical contact
relation the chat engine relies on.
"""

import pytest
from django.core.exceptions import ValidationError

from authentication.models import DEFAULT_AVATAR, validate_username_format
from authentication.tests.factories import UserFactory


class TestUserDisplayName:
    def test_uses_username_when_set(self, db):
        user = UserFactory(email="someone@example.com", username="Sammy")

        assert user.display_name == "Sammy"
        assert user.get_full_name() == "Sammy"
        assert user.get_short_name() == "Sammy"

    def test_falls_back_to_email_local_part(self, db):
        user = UserFactory(email="jordan@example.com", username="")

        assert user.display_name == "jordan"

    def test_str_is_email(self, db):
        user = UserFactory(email="str@example.com")

        assert str(user) == "str@example.com"

    def test_default_avatar(self, db):
        user = UserFactory()

        assert user.avatar == DEFAULT_AVATAR


class TestUsernameValidation:
    @pytest.mark.parametrize("value", ["abc", "john.doe", "a_b-c", "x" * 30])
    def test_accepts_valid_usernames(self, value):
        validate_username_format(value)

    @pytest.mark.parametrize("value", ["ab", "x" * 31, "has space", "emoji😀", "semi;colon"])
    def test_rejects_invalid_usernames(self, value):
        with pytest.raises(ValidationError):
            validate_username_format(value)


class TestContacts:
    def test_contacts_are_symmetrical(self, db):
        """
        Given alice adds bob as a contact
        When reading bob's contacts
        Then alice is listed too
        """
        alice = UserFactory()
        bob = UserFactory()

        alice.contacts.add(bob)

        assert bob.contacts.filter(id=alice.id).exists()

    def test_removing_contact_removes_both_sides(self, db):
        alice = UserFactory()
        bob = UserFactory(contacts=[alice])

        bob.contacts.remove(alice)

        assert not alice.contacts.filter(id=bob.id).exists()
