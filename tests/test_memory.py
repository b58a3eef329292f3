"""Tests for the translation memory stores."""

import pytest

from babelmark.memory import InMemoryTranslationStore, SqliteTranslationStore
from babelmark.structures import MemoryEntry


class TestSqliteTranslationStore:
    def test_get_missing_returns_none(self, tmp_path):
        with SqliteTranslationStore(tmp_path / "db.sqlite") as store:
            assert store.get("Hello", "fr") is None

    def test_set_then_get(self, tmp_path):
        with SqliteTranslationStore(tmp_path / "db.sqlite") as store:
            store.set("Hello", "fr", "Bonjour")
            assert store.get("Hello", "fr") == "Bonjour"
            assert store.get("Hello", "de") is None

    def test_set_overwrites(self, tmp_path):
        with SqliteTranslationStore(tmp_path / "db.sqlite") as store:
            store.set("Hello", "fr", "Salut")
            store.set("Hello", "fr", "Bonjour")
            assert store.get("Hello", "fr") == "Bonjour"
            assert list(store.entries()) == [MemoryEntry("Hello", "fr", "Bonjour")]

    def test_persists_across_runs(self, tmp_path):
        path = tmp_path / ".babelmark" / "db.sqlite"
        with SqliteTranslationStore(path) as store:
            store.set("Hello", "fr", "Bonjour")

        assert path.exists()
        with SqliteTranslationStore(path) as store:
            assert store.get("Hello", "fr") == "Bonjour"

    def test_closed_store_rejects_queries(self, tmp_path):
        store = SqliteTranslationStore(tmp_path / "db.sqlite")
        store.close()
        with pytest.raises(Exception):
            store.get("Hello", "fr")


class TestInMemoryTranslationStore:
    def test_roundtrip(self):
        store = InMemoryTranslationStore()
        store.set("Hello", "fr", "Bonjour")

        assert store.get("Hello", "fr") == "Bonjour"
        assert len(store) == 1
        assert list(store.entries()) == [MemoryEntry("Hello", "fr", "Bonjour")]

    def test_seeded_entries(self):
        store = InMemoryTranslationStore({("Hello", "de"): "Hallo"})
        assert store.get("Hello", "de") == "Hallo"
