"""
SQLite Card Store for flashdeck.

Provides portable persistence for the card collection:
- load_all: read every card in collection order
- replace_all: atomically swap the stored set for a new one
- CardStoreWriter: background writer that serializes replace_all calls

Database location: ~/.flashdeck/cards.db
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path

from loguru import logger

from .card import Card
from .clock import from_epoch_ms, to_epoch_ms

# =============================================================================
# Card Store
# =============================================================================


class CardStore:
    """
    SQLite-backed persistence for the card collection.

    Storage failures never escape: load_all degrades to an empty list (and
    clears last_load_ok) and replace_all reports False, so the caller can
    fall back to in-memory operation.
    """

    DEFAULT_DB_PATH = Path.home() / ".flashdeck" / "cards.db"

    def __init__(self, db_path: Path | None = None):
        """
        Initialize the card store.

        Args:
            db_path: Custom database path (defaults to ~/.flashdeck/cards.db)
        """
        self.db_path = db_path or self.DEFAULT_DB_PATH
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self.last_load_ok = True

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            # Writes happen on the writer thread, reads on the caller's
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            self._init_schema(conn)
            self._conn = conn
            logger.info(f"CardStore opened at {self.db_path}")
        return self._conn

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        """Initialize database schema."""
        conn.execute("""
            CREATE TABLE IF NOT EXISTS cards (
                id TEXT PRIMARY KEY,
                position INTEGER NOT NULL,
                prompt TEXT NOT NULL,
                answer TEXT NOT NULL,
                audio TEXT,
                interval INTEGER NOT NULL DEFAULT 0,
                repetitions INTEGER NOT NULL DEFAULT 0,
                ease_factor REAL NOT NULL DEFAULT 2.5,
                due_at_ms INTEGER NOT NULL
            )
        """)

        # Index for fast due-date queries
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_cards_due
            ON cards(due_at_ms)
        """)
        conn.commit()

    def load_all(self) -> list[Card]:
        """
        Load every stored card.

        Sets last_load_ok to False when storage could not be read; the
        stored deck is then unknown and must not be overwritten.

        Returns:
            Cards in collection order, or [] if storage is empty or unavailable
        """
        try:
            with self._lock:
                rows = self.conn.execute("SELECT * FROM cards ORDER BY position ASC").fetchall()
            cards = [
                Card(
                    id=row["id"],
                    prompt=row["prompt"],
                    answer=row["answer"],
                    audio=row["audio"],
                    interval=row["interval"],
                    repetitions=row["repetitions"],
                    ease_factor=row["ease_factor"],
                    due_at=from_epoch_ms(row["due_at_ms"]),
                )
                for row in rows
            ]
        except (sqlite3.Error, OSError, ValueError, OverflowError, KeyError, IndexError) as e:
            logger.warning(f"Card storage unreadable, starting empty: {e}")
            self.last_load_ok = False
            return []

        self.last_load_ok = True
        logger.debug(f"Loaded {len(cards)} cards from {self.db_path}")
        return cards

    def replace_all(self, cards: Sequence[Card]) -> bool:
        """
        Replace the stored collection with the given cards.

        Runs in a single transaction, so readers see either the old set
        or the new one.

        Args:
            cards: Full collection to persist

        Returns:
            True on success, False if the write failed
        """
        rows = [
            (
                card.id,
                position,
                card.prompt,
                card.answer,
                card.audio,
                card.interval,
                card.repetitions,
                card.ease_factor,
                to_epoch_ms(card.due_at),
            )
            for position, card in enumerate(cards)
        ]

        try:
            with self._lock:
                conn = self.conn
                with conn:
                    conn.execute("DELETE FROM cards")
                    conn.executemany(
                        """
                        INSERT INTO cards (
                            id, position, prompt, answer, audio,
                            interval, repetitions, ease_factor, due_at_ms
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                        rows,
                    )
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to save {len(rows)} cards to {self.db_path}: {e}")
            return False

        logger.debug(f"Saved {len(rows)} cards")
        return True

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None


# =============================================================================
# Background Writer
# =============================================================================


class CardStoreWriter:
    """
    Fire-and-forget writer in front of a CardStore.

    One worker thread executes writes strictly in submission order, so a
    later snapshot can never be overwritten by an earlier one.
    """

    def __init__(
        self,
        store: CardStore,
        on_failure: Callable[[], None] | None = None,
    ):
        """
        Args:
            store: Underlying store
            on_failure: Called (on the worker thread) after every failed write
        """
        self.store = store
        self.on_failure = on_failure
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="flashdeck-writer")
        self._pending: list[Future] = []

    def submit(self, cards: Sequence[Card]) -> Future:
        """
        Queue a snapshot of the collection for saving.

        Cards are copied now, so later in-memory edits do not leak into
        this write.

        Returns:
            Future resolving to replace_all's success flag
        """
        snapshot = [replace(card) for card in cards]
        future = self._executor.submit(self._write, snapshot)
        self._pending = [f for f in self._pending if not f.done()]
        self._pending.append(future)
        return future

    def _write(self, snapshot: list[Card]) -> bool:
        ok = self.store.replace_all(snapshot)
        if not ok and self.on_failure is not None:
            self.on_failure()
        return ok

    def flush(self, timeout: float | None = None) -> bool:
        """
        Wait for all queued writes.

        Returns:
            True if every pending write succeeded
        """
        pending, self._pending = self._pending, []
        results = [future.result(timeout=timeout) for future in pending]
        return all(results)

    def close(self) -> None:
        """Finish queued writes and stop the worker."""
        self._executor.shutdown(wait=True)
        self.store.close()
