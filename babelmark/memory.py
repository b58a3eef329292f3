"""Translation memory stores keyed by (source text, target language)."""

from __future__ import annotations

import pathlib
import sqlite3
from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional, Tuple

from .structures import MemoryEntry


class TranslationStore(ABC):
    """Durable cache of previously obtained translations."""

    @abstractmethod
    def get(self, source: str, language: str) -> Optional[str]:
        """Return the stored translation or ``None``."""

    @abstractmethod
    def set(self, source: str, language: str, translation: str) -> None:
        """Insert or overwrite the translation for ``(source, language)``."""

    @abstractmethod
    def entries(self) -> Iterator[MemoryEntry]:
        """Iterate over every stored entry."""

    def close(self) -> None:
        """Release any underlying resources."""

    def __enter__(self) -> "TranslationStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class InMemoryTranslationStore(TranslationStore):
    """Dictionary-backed store, used for tests and throwaway runs."""

    def __init__(self, entries: Optional[Dict[Tuple[str, str], str]] = None) -> None:
        self._entries: Dict[Tuple[str, str], str] = dict(entries or {})

    def get(self, source: str, language: str) -> Optional[str]:
        return self._entries.get((source, language))

    def set(self, source: str, language: str, translation: str) -> None:
        self._entries[(source, language)] = translation

    def entries(self) -> Iterator[MemoryEntry]:
        for (source, language), translation in self._entries.items():
            yield MemoryEntry(source=source, language=language, translation=translation)

    def __len__(self) -> int:
        return len(self._entries)


class SqliteTranslationStore(TranslationStore):
    """SQLite-backed store; every write is committed immediately.

    Schema:
        - source: TEXT
        - language: TEXT
        - translation: TEXT
        - updated_at: TEXT (ISO timestamp)

    ``(source, language)`` is the primary key.
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS translations (
            source TEXT NOT NULL,
            language TEXT NOT NULL,
            translation TEXT NOT NULL,
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            PRIMARY KEY (source, language)
        )
    """

    def __init__(self, db_path: str | pathlib.Path) -> None:
        self.db_path = pathlib.Path(db_path)
        if str(db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: Optional[sqlite3.Connection] = sqlite3.connect(str(db_path))
        self._conn.execute(self.SCHEMA)
        self._conn.commit()

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise sqlite3.ProgrammingError("Translation memory is closed.")
        return self._conn

    def get(self, source: str, language: str) -> Optional[str]:
        cursor = self.connection.execute(
            "SELECT translation FROM translations WHERE source = ? AND language = ?",
            (source, language),
        )
        row = cursor.fetchone()
        return row[0] if row else None

    def set(self, source: str, language: str, translation: str) -> None:
        self.connection.execute(
            """
            INSERT INTO translations (source, language, translation)
            VALUES (?, ?, ?)
            ON CONFLICT(source, language) DO UPDATE SET
                translation = excluded.translation,
                updated_at = datetime('now')
            """,
            (source, language, translation),
        )
        self.connection.commit()

    def entries(self) -> Iterator[MemoryEntry]:
        cursor = self.connection.execute(
            "SELECT source, language, translation FROM translations ORDER BY rowid"
        )
        for source, language, translation in cursor.fetchall():
            yield MemoryEntry(source=source, language=language, translation=translation)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
