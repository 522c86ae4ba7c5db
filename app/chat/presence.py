"""
In-process presence tracking.

PresenceTracker is a reference-counted registry of live WebSocket
connections per user. A user is online while at least one of their
connections is open, so closing one device of a multi-device user does
not flip them offline.

It also records which conversations each user is currently viewing
(join-conversation), which the delivery router uses to decide whether a
new message also warrants a notification.

A single tracker lives on the chat AppConfig for the lifetime of the
process:

    from chat.presence import get_presence_tracker

    tracker = get_presence_tracker()
    if tracker.on_connect(user.id):
        ...  # online set changed, broadcast it

The registry is emptied when the server shuts down (presence_lifespan).

Note:
    State is per process. Running several ASGI workers gives each worker
    its own view of who is online.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter, defaultdict

from django.apps import apps

logger = logging.getLogger(__name__)


class PresenceTracker:
    """Thread-safe registry of connection counts and active conversations."""

    def __init__(self):
        self._lock = threading.Lock()
        self._connections: Counter = Counter()
        # user id -> Counter(conversation id -> number of connections viewing it)
        self._viewing: defaultdict = defaultdict(Counter)

    def on_connect(self, user_id) -> bool:
        """
        Register a new connection.

        Returns:
            True if the user just came online (first connection)
        """
        with self._lock:
            self._connections[user_id] += 1
            count = self._connections[user_id]
        logger.debug(f"User {user_id} connected ({count} connections)")
        return count == 1

    def on_disconnect(self, user_id) -> bool:
        """
        Unregister a connection.

        Returns:
            True if the user just went offline (last connection closed)
        """
        with self._lock:
            if self._connections.get(user_id, 0) <= 0:
                logger.warning(f"Disconnect for user {user_id} with no open connections")
                return False
            self._connections[user_id] -= 1
            went_offline = self._connections[user_id] == 0
            if went_offline:
                del self._connections[user_id]
                self._viewing.pop(user_id, None)
        logger.debug(f"User {user_id} disconnected (offline={went_offline})")
        return went_offline

    def list_online(self) -> set:
        with self._lock:
            return set(self._connections)

    def is_online(self, user_id) -> bool:
        with self._lock:
            return self._connections.get(user_id, 0) > 0

    def connection_count(self, user_id) -> int:
        with self._lock:
            return self._connections.get(user_id, 0)

    def enter_conversation(self, user_id, conversation_id) -> None:
        """Record that one of the user's connections is viewing a conversation."""
        with self._lock:
            self._viewing[user_id][conversation_id] += 1

    def leave_conversation(self, user_id, conversation_id) -> None:
        with self._lock:
            viewing = self._viewing.get(user_id)
            if not viewing or viewing[conversation_id] <= 0:
                return
            viewing[conversation_id] -= 1
            if viewing[conversation_id] == 0:
                del viewing[conversation_id]
            if not viewing:
                del self._viewing[user_id]

    def is_viewing(self, user_id, conversation_id) -> bool:
        with self._lock:
            viewing = self._viewing.get(user_id)
            return bool(viewing) and viewing.get(conversation_id, 0) > 0

    def viewers(self, conversation_id) -> set:
        """Users with at least one connection viewing the conversation."""
        with self._lock:
            return {
                user_id
                for user_id, viewing in self._viewing.items()
                if viewing.get(conversation_id, 0) > 0
            }

    def drain(self) -> None:
        """Forget every connection (process shutdown)."""
        with self._lock:
            count = len(self._connections)
            self._connections.clear()
            self._viewing.clear()
        logger.info(f"Presence tracker drained ({count} users)")


def get_presence_tracker() -> PresenceTracker:
    """The process-wide tracker owned by the chat app."""
    return apps.get_app_config("chat").presence


async def presence_lifespan(scope, receive, send):
    """
    ASGI lifespan handler: the registry starts empty and is drained on shutdown.

    Mounted under the "lifespan" key of the ProtocolTypeRouter in config.asgi.
    """
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            get_presence_tracker().drain()
            await send({"type": "lifespan.shutdown.complete"})
            return
