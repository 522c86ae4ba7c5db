"""
Tests for the authentication app: the User model, UserManager and the
ContactService lookups the chat engine relies on.
"""
