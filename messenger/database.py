"""Database schema and connection management for the local message cache."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from messenger.config import DATABASE_PATH


def init_database() -> None:
    """
    Initialize database and create tables if they don't exist.

    Only ciphertext is stored; decrypted payloads never touch disk.
    """
    db_path = Path(DATABASE_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection() as conn:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS image_messages (
                tx_id TEXT PRIMARY KEY,
                session_id TEXT,
                conversation_key TEXT NOT NULL,
                sender TEXT NOT NULL,
                recipient TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                ciphertext TEXT NOT NULL,
                hash TEXT,
                chunks INTEGER NOT NULL DEFAULT 1,
                integrity_status TEXT NOT NULL DEFAULT 'unverified',
                cached_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_conversation ON image_messages(conversation_key)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_timestamp ON image_messages(timestamp)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_session ON image_messages(session_id)
        """)

        conn.commit()


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    """
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()
