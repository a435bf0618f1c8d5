"""Tests for export and import."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest

from everytasks import backup
from everytasks.kvstore import KeyValueStore
from everytasks.models import FocusSession, Habit, Todo
from everytasks.store import EntityStore


@pytest.fixture()
def store(tmp_path: Path) -> EntityStore:
    s = EntityStore(KeyValueStore(tmp_path / "store"))
    s.add(Todo(title="Buy milk"))
    habit = s.add(Habit(title="Read"))
    s.complete_habit(habit, date(2024, 6, 5))
    s.add(FocusSession(title="Deep work"))
    return s


@pytest.fixture()
def empty(tmp_path: Path) -> EntityStore:
    return EntityStore(KeyValueStore(tmp_path / "other"))


class TestExport:
    def test_top_level_keys(self, store) -> None:
        data = json.loads(backup.export_data(store))
        assert set(data) == {
            "todos",
            "habits",
            "focusSessions",
            "statistics",
            "version",
            "exportDate",
        }
        assert data["version"] == backup.CURRENT_VERSION

    def test_stable_output(self, store) -> None:
        first = json.loads(backup.export_data(store))
        second = json.loads(backup.export_data(store))
        first.pop("exportDate")
        second.pop("exportDate")
        assert first == second

    def test_keys_sorted(self, store) -> None:
        text = backup.export_data(store).decode("utf-8")
        assert text.index('"exportDate"') < text.index('"focusSessions"') < text.index('"version"')


class TestImport:
    def test_roundtrip_into_other_store(self, store, empty) -> None:
        assert backup.import_data(empty, backup.export_data(store))
        assert empty.todos == store.todos
        assert empty.habits == store.habits
        assert empty.focus_sessions == store.focus_sessions
        assert empty.statistics.total_todos == 1

    def test_import_persists(self, store, empty) -> None:
        backup.import_data(empty, backup.export_data(store))
        assert EntityStore(empty.kv).todos == store.todos

    def test_version_mismatch_changes_nothing(self, store, empty) -> None:
        empty.add(Todo(title="mine"))
        before = (list(empty.todos), list(empty.habits), list(empty.focus_sessions))
        payload = json.loads(backup.export_data(store))
        payload["version"] = "2.0"

        assert backup.import_data(empty, json.dumps(payload).encode()) is False
        assert (empty.todos, empty.habits, empty.focus_sessions) == before
        assert [t.title for t in EntityStore(empty.kv).todos] == ["mine"]

    def test_garbage_rejected(self, empty) -> None:
        assert backup.import_data(empty, b"\x00not json") is False

    def test_missing_version_rejected(self, empty) -> None:
        assert backup.import_data(empty, b'{"todos": []}') is False


class TestFiles:
    def test_export_to_directory(self, store, tmp_path) -> None:
        out = backup.export_to_file(store, tmp_path)
        assert out.name.startswith("everytasks-backup-")
        assert out.exists()

    def test_file_roundtrip(self, store, empty, tmp_path) -> None:
        out = backup.export_to_file(store, tmp_path / "b.json")
        assert backup.import_from_file(empty, out)
        assert len(empty.todos) == 1
