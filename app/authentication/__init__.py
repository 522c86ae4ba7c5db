"""
Authentication application.

Owns the User model (email login, display name, avatar) and the set of
confirmed mutual contacts the chat engine checks before opening a
conversation.

Usage:
    from authentication.models import User
    from authentication.services import ContactService
"""
