"""Message repository for cached ciphertext records."""

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from common.logging_config import get_logger
from common.types import ImageMessage
from messenger.database import get_db_connection

logger = get_logger(__name__)

INTEGRITY_UNVERIFIED = "unverified"
INTEGRITY_VERIFIED = "verified"
INTEGRITY_CORRUPTED = "corrupted"

_COLUMNS = "tx_id, session_id, sender, recipient, timestamp, ciphertext, hash, chunks, integrity_status"


def conversation_key(a: str, b: str) -> str:
    """Order-independent key of the conversation between a and b."""
    return "_".join(sorted((a, b)))


def _row_to_message(row) -> ImageMessage:
    return ImageMessage(
        tx_id=row["tx_id"],
        sender=row["sender"],
        recipient=row["recipient"],
        timestamp=row["timestamp"],
        ciphertext=row["ciphertext"],
        hash=row["hash"],
        session_id=row["session_id"],
        chunks=row["chunks"],
    )


class MessageRepository:
    @staticmethod
    def cache_messages(messages: Iterable[ImageMessage]) -> int:
        """
        Store messages not cached yet; existing tx ids are left untouched.

        Returns:
            Number of newly inserted rows
        """
        cached_at = datetime.now(timezone.utc).isoformat()
        inserted = 0

        with get_db_connection() as conn:
            cursor = conn.cursor()
            for message in messages:
                cursor.execute(
                    """
                    INSERT OR IGNORE INTO image_messages
                        (tx_id, session_id, conversation_key, sender, recipient, timestamp,
                         ciphertext, hash, chunks, integrity_status, cached_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        message.tx_id,
                        message.session_id,
                        conversation_key(message.sender, message.recipient),
                        message.sender,
                        message.recipient,
                        message.timestamp,
                        message.ciphertext,
                        message.hash,
                        message.chunks,
                        INTEGRITY_UNVERIFIED,
                        cached_at,
                    ),
                )
                inserted += cursor.rowcount
            conn.commit()

        logger.debug(f"Cached {inserted} new message(s)")
        return inserted

    @staticmethod
    def get_by_conversation(a: str, b: str, limit: Optional[int] = None) -> List[ImageMessage]:
        """Cached messages between a and b, oldest first; limit keeps the newest ones."""
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {_COLUMNS} FROM image_messages
                WHERE conversation_key = ?
                ORDER BY timestamp DESC, tx_id DESC
                LIMIT ?
                """,
                (conversation_key(a, b), -1 if limit is None else limit),
            )
            rows = cursor.fetchall()

        return [_row_to_message(row) for row in reversed(rows)]

    @staticmethod
    def get_by_tx_id(tx_id: str) -> Optional[ImageMessage]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_COLUMNS} FROM image_messages WHERE tx_id = ?", (tx_id,))
            row = cursor.fetchone()

            if row is None:
                return None

            return _row_to_message(row)

    @staticmethod
    def get_integrity_status(tx_id: str) -> Optional[str]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT integrity_status FROM image_messages WHERE tx_id = ?", (tx_id,))
            row = cursor.fetchone()
            return row["integrity_status"] if row else None

    @staticmethod
    def set_integrity_status(tx_id: str, status: str) -> bool:
        if status not in (INTEGRITY_UNVERIFIED, INTEGRITY_VERIFIED, INTEGRITY_CORRUPTED):
            raise ValueError(f"Unknown integrity status: {status}")

        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE image_messages SET integrity_status = ? WHERE tx_id = ?",
                (status, tx_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    @staticmethod
    def delete_conversation(a: str, b: str) -> int:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM image_messages WHERE conversation_key = ?",
                (conversation_key(a, b),),
            )
            conn.commit()
            deleted = cursor.rowcount

        logger.info(f"Deleted {deleted} cached message(s) of {conversation_key(a, b)}")
        return deleted
