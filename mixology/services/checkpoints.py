"""Conversation checkpoint store: the only persistent state in the system.

A checkpoint is the append-only transcript of one thread (human, AI, tool
call and tool result messages) plus an opaque continuation marker.  Stores
guarantee that one ``append`` is atomic: a reader sees either none or all of
the messages of a turn.

Two implementations:

  - ``InMemoryCheckpointStore`` — process-local, used by tests and the CLI
  - ``SQLiteCheckpointStore``   — durable, one row per message, WAL mode
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import UTC, datetime

from langchain_core.messages import BaseMessage, message_to_dict, messages_from_dict

from mixology import config
from mixology.errors import ConfigurationError
from mixology.models import Checkpoint

logger = logging.getLogger(__name__)


def _new_marker() -> str:
    return uuid.uuid4().hex


class CheckpointStore(ABC):
    """Persistence port for per-thread transcripts."""

    @abstractmethod
    def get(self, thread: str) -> Checkpoint | None:
        """Return the checkpoint for *thread*, or ``None`` if it was never written."""

    @abstractmethod
    def append(self, thread: str, messages: Sequence[BaseMessage]) -> Checkpoint:
        """Atomically append *messages* to *thread*'s transcript and return the new checkpoint."""

    def transcript(self, thread: str) -> list[BaseMessage]:
        checkpoint = self.get(thread)
        return list(checkpoint.messages) if checkpoint else []

    def close(self) -> None:
        """Release any resources held by the store."""


class InMemoryCheckpointStore(CheckpointStore):
    def __init__(self) -> None:
        self._checkpoints: dict[str, Checkpoint] = {}
        self._lock = threading.Lock()

    def get(self, thread: str) -> Checkpoint | None:
        with self._lock:
            return self._checkpoints.get(thread)

    def append(self, thread: str, messages: Sequence[BaseMessage]) -> Checkpoint:
        with self._lock:
            previous = self._checkpoints.get(thread)
            checkpoint = Checkpoint(
                thread=thread,
                messages=(previous.messages if previous else ()) + tuple(messages),
                checkpoint_id=_new_marker(),
                version=(previous.version if previous else 0) + 1,
            )
            self._checkpoints[thread] = checkpoint
        logger.debug("Checkpoint %s v%d: +%d messages", thread, checkpoint.version, len(messages))
        return checkpoint


_SCHEMA = """
CREATE TABLE IF NOT EXISTS checkpoints (
    thread_id     TEXT PRIMARY KEY,
    checkpoint_id TEXT NOT NULL,
    version       INTEGER NOT NULL,
    updated_at    TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS checkpoint_messages (
    thread_id TEXT NOT NULL,
    seq       INTEGER NOT NULL,
    payload   TEXT NOT NULL,
    PRIMARY KEY (thread_id, seq),
    FOREIGN KEY (thread_id) REFERENCES checkpoints (thread_id)
);
"""


class SQLiteCheckpointStore(CheckpointStore):
    """SQLite-backed store.  Each ``append`` runs in a single transaction."""

    def __init__(self, db_path: str | None = None) -> None:
        self.db_path = db_path or config.CHECKPOINT_DB_PATH
        self._lock = threading.Lock()
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30.0)
        self._connection.execute("PRAGMA journal_mode=WAL")
        self._connection.execute("PRAGMA foreign_keys=ON")
        self._connection.executescript(_SCHEMA)
        self._connection.commit()
        logger.info("SQLite checkpoint store ready at %s", self.db_path)

    def get(self, thread: str) -> Checkpoint | None:
        with self._lock:
            head = self._connection.execute(
                "SELECT checkpoint_id, version FROM checkpoints WHERE thread_id = ?",
                (thread,),
            ).fetchone()
            if head is None:
                return None
            rows = self._connection.execute(
                "SELECT payload FROM checkpoint_messages WHERE thread_id = ? ORDER BY seq",
                (thread,),
            ).fetchall()

        messages = messages_from_dict([json.loads(payload) for (payload,) in rows])
        return Checkpoint(thread=thread, messages=tuple(messages), checkpoint_id=head[0], version=head[1])

    def append(self, thread: str, messages: Sequence[BaseMessage]) -> Checkpoint:
        payloads = [json.dumps(message_to_dict(m), default=str) for m in messages]
        marker = _new_marker()
        now = datetime.now(UTC).isoformat()

        with self._lock, self._connection:
            head = self._connection.execute(
                "SELECT version FROM checkpoints WHERE thread_id = ?", (thread,),
            ).fetchone()
            version = (head[0] if head else 0) + 1
            self._connection.execute(
                "INSERT INTO checkpoints (thread_id, checkpoint_id, version, updated_at) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT(thread_id) DO UPDATE SET "
                "checkpoint_id = excluded.checkpoint_id, version = excluded.version, "
                "updated_at = excluded.updated_at",
                (thread, marker, version, now),
            )
            prior = self._connection.execute(
                "SELECT payload FROM checkpoint_messages WHERE thread_id = ? ORDER BY seq",
                (thread,),
            ).fetchall()
            next_seq = len(prior) + 1
            self._connection.executemany(
                "INSERT INTO checkpoint_messages (thread_id, seq, payload) VALUES (?, ?, ?)",
                [(thread, next_seq + i, payload) for i, payload in enumerate(payloads)],
            )

        logger.debug("Checkpoint %s v%d: +%d messages", thread, version, len(payloads))
        previous = messages_from_dict([json.loads(payload) for (payload,) in prior])
        return Checkpoint(
            thread=thread,
            messages=tuple(previous) + tuple(messages),
            checkpoint_id=marker,
            version=version,
        )

    def close(self) -> None:
        with self._lock:
            self._connection.close()


def build_checkpoint_store() -> CheckpointStore:
    """Create the store selected by ``CHECKPOINT_BACKEND``."""
    backend = config.CHECKPOINT_BACKEND
    if backend == "memory":
        return InMemoryCheckpointStore()
    if backend == "sqlite":
        return SQLiteCheckpointStore(config.CHECKPOINT_DB_PATH)
    raise ConfigurationError(f"Unknown checkpoint backend: {backend}")
