"""Export the whole store to a JSON backup and restore it again."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from everytasks.models import ExportData
from everytasks.store import DATA_VERSION, EntityStore

log = logging.getLogger(__name__)

CURRENT_VERSION = DATA_VERSION


def default_backup_name(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"everytasks-backup-{now:%Y%m%d-%H%M%S}.json"


def snapshot(store: EntityStore) -> ExportData:
    return ExportData(
        todos=list(store.todos),
        habits=list(store.habits),
        focus_sessions=list(store.focus_sessions),
        statistics=store.statistics,
        version=CURRENT_VERSION,
        export_date=datetime.now(),
    )


def export_data(store: EntityStore) -> bytes:
    """Serialize a full snapshot. Keys are sorted so diffs stay readable."""
    payload = snapshot(store).model_dump(mode="json", by_alias=True)
    text = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)
    return (text + "\n").encode("utf-8")


def import_data(store: EntityStore, payload: bytes) -> bool:
    """Replace the store's contents with *payload*.

    Returns False, leaving the store untouched, if the payload does not
    decode or was written by a different data version.
    """
    try:
        data = ExportData.model_validate_json(payload)
    except ValidationError:
        log.warning("Backup could not be decoded; nothing imported.")
        return False
    if data.version != CURRENT_VERSION:
        log.warning(
            "Backup version %s does not match %s; nothing imported.",
            data.version,
            CURRENT_VERSION,
        )
        return False
    store.replace_all(data.todos, data.habits, data.focus_sessions)
    return True


def export_to_file(store: EntityStore, path: Path) -> Path:
    """Write a backup to *path*; a directory gets a timestamped file name."""
    path = Path(path)
    if path.is_dir():
        path = path / default_backup_name()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(export_data(store))
    return path


def import_from_file(store: EntityStore, path: Path) -> bool:
    return import_data(store, Path(path).read_bytes())
