"""
Chat app: the real-time conversation state engine.

This app handles:
- Conversations (direct and group) with admins and a permission policy
- Encrypted message storage, history and read markers
- WebSocket gateway with presence and typing indicators
- Routing of real-time events to connected users

Related apps:
    - authentication: User model and the contact list
    - notifications: Notification records pushed to users

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for the WebSocket handler.
    See delivery.py for how events reach users.

Usage:
    from chat.services import ConversationService, MessageService

    conversation = ConversationService.create_direct(user, other_user.id).data

    result = MessageService.send_message(conversation, user, "Hello!")
"""
