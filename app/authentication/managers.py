"""
UserManager: email is the login identifier, passwords are optional.

Accounts are issued by the accounts service, so most users are
created without a usable password and authenticate with JWTs only.
"""

from django.contrib.auth.models import BaseUserManager


class UserManager(BaseUserManager):
    def _build(self, email, password, extra_fields):
        if not email:
            raise ValueError("The Email field must be set")
        user = self.model(email=self.normalize_email(email), **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        """Create a regular user. Without a password the account is JWT-only."""
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._build(email, password, extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        """Create a Django admin user; both staff flags must end up True."""
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        for flag in ("is_staff", "is_superuser"):
            if extra_fields.get(flag) is not True:
                raise ValueError(f"Superuser must have {flag}=True.")
        return self._build(email, password, extra_fields)
