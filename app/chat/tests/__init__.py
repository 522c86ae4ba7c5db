"""
Tests for chat app.

This package contains test modules for:
- test_encryption.py: Content codec
- test_models.py: Conversation, Participant, Message model tests
- test_presence.py: PresenceTracker reference counting
- test_services.py: ConversationService, ParticipantService, MessageService
- test_delivery.py: Recipient rules and DeliveryRouter
- test_events.py: Inbound WebSocket payload validation
- test_middleware.py: JWT WebSocket authentication
- test_consumers.py: WebSocket consumer tests
- test_views.py: REST API endpoint tests

Usage:
    pytest chat/tests/
    pytest chat/tests/test_consumers.py
"""
