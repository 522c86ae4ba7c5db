"""
Settings for the test suite.

Provides defaults for the required environment variables, then loads the
regular settings and relaxes what slows tests down. Values already present
in the environment win, so the suite can run against PostgreSQL and Redis
by exporting DATABASE_URL / CHANNEL_LAYER_BACKEND.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("CHAT_ENCRYPTION_SECRET", "test-chat-encryption-secret")
os.environ.setdefault("DATABASE_URL", "sqlite:///test.sqlite3")
os.environ.setdefault("CHANNEL_LAYER_BACKEND", "channels.layers.InMemoryChannelLayer")
os.environ.setdefault("DEBUG", "False")
os.environ.setdefault("ALLOWED_HOSTS", "testserver,localhost")

from config.settings import *  # noqa: E402,F403
from config.settings import REST_FRAMEWORK  # noqa: E402

# Disable throttling during tests to prevent rate limit failures
REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

# Use fast password hasher for tests
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Plain static storage; the manifest storage needs collectstatic
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}

# HTTPS redirects would turn every test request into a 301
SECURE_SSL_REDIRECT = False
