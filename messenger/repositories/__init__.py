"""Repository layer for data access."""

from messenger.repositories.message_repository import MessageRepository, conversation_key

__all__ = [
    "MessageRepository",
    "conversation_key",
]
