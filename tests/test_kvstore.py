"""Tests for the file-backed key-value namespace."""

from __future__ import annotations

from pathlib import Path

import pytest

from everytasks.kvstore import KeyValueStore


class TestKeyValueStore:
    def test_missing_key(self, tmp_path: Path) -> None:
        assert KeyValueStore(tmp_path / "kv").get("todos") is None

    def test_set_get(self, tmp_path: Path) -> None:
        kv = KeyValueStore(tmp_path / "kv")
        kv.set("todos", "[]")
        assert kv.get("todos") == "[]"
        assert "todos" in kv

    def test_overwrite_leaves_no_temp_files(self, tmp_path: Path) -> None:
        kv = KeyValueStore(tmp_path / "kv")
        kv.set("sharedData", "1")
        kv.set("sharedData", "2")
        assert kv.get("sharedData") == "2"
        assert [p.name for p in (tmp_path / "kv").iterdir()] == ["sharedData.json"]

    def test_keys_and_delete(self, tmp_path: Path) -> None:
        kv = KeyValueStore(tmp_path / "kv")
        kv.set("b", "1")
        kv.set("a", "1")
        assert kv.keys() == ["a", "b"]
        kv.delete("a")
        kv.delete("never-there")
        assert kv.keys() == ["b"]

    def test_two_handles_share_data(self, tmp_path: Path) -> None:
        KeyValueStore(tmp_path / "kv").set("x", "hello")
        assert KeyValueStore(tmp_path / "kv").get("x") == "hello"

    def test_rejects_path_like_keys(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            KeyValueStore(tmp_path / "kv").set("../escape", "x")

    def test_failed_write_keeps_old_value(self, tmp_path: Path, monkeypatch) -> None:
        kv = KeyValueStore(tmp_path / "kv")
        kv.set("todos", "old")

        def boom(src, dst) -> None:
            raise OSError("rename failed")

        monkeypatch.setattr("everytasks.kvstore.os.replace", boom)
        with pytest.raises(OSError):
            kv.set("todos", "new")
        assert kv.get("todos") == "old"
        assert [p.name for p in (tmp_path / "kv").iterdir()] == ["todos.json"]
