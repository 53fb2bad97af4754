# =============================================
# File: dawaverify/services/persistence.py
# Purpose: Keyed-blob persistence backends for the scan history (JSON file or SQL row)
# =============================================
from __future__ import annotations

import os
from datetime import datetime
from typing import Optional, Protocol

from sqlmodel import Session

from dawaverify.db.models import StoredBlob
from dawaverify.db.repo import init_db, make_engine
from dawaverify.services.errors import PersistenceFailure

_DEFAULT_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "history.json")
DEFAULT_KEY = "dawaverify_history_v2"


class Persistence(Protocol):
    """Load/save pair injected into HistoryStore. load() returns None when nothing was saved yet."""

    def load(self) -> Optional[str]: ...

    def save(self, blob: str) -> None: ...


class JsonFilePersistence:
    """
    One JSON file on disk. Writes go to a temp file first and are moved into
    place with os.replace, so a crash mid-write leaves the previous file intact.
    """
    def __init__(self, path: str = _DEFAULT_PATH) -> None:
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def load(self) -> Optional[str]:
        if not os.path.exists(self._path):
            return None
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceFailure(f"cannot read {self._path}: {e}") from e

    def save(self, blob: str) -> None:
        tmp = self._path + ".tmp"
        try:
            os.makedirs(os.path.dirname(self._path) or ".", exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(blob)
            os.replace(tmp, self._path)
        except OSError as e:
            raise PersistenceFailure(f"cannot write {self._path}: {e}") from e


class SqlBlobPersistence:
    """The whole history as a single row of the stored_blob table."""

    def __init__(self, url: str | None = None, key: str = DEFAULT_KEY, engine=None) -> None:
        self._engine = engine if engine is not None else make_engine(url)
        self._key = key
        init_db(self._engine)

    def load(self) -> Optional[str]:
        try:
            with Session(self._engine) as session:
                row = session.get(StoredBlob, self._key)
                return row.value if row else None
        except Exception as e:
            raise PersistenceFailure(f"cannot read blob {self._key!r}: {e}") from e

    def save(self, blob: str) -> None:
        try:
            with Session(self._engine) as session:
                row = session.get(StoredBlob, self._key)
                if row is None:
                    row = StoredBlob(key=self._key, value=blob)
                else:
                    row.value = blob
                    row.updated_at = datetime.utcnow()
                session.add(row)
                session.commit()
        except Exception as e:
            raise PersistenceFailure(f"cannot write blob {self._key!r}: {e}") from e


def persistence_from_env() -> Persistence:
    """SQL row when HISTORY_DB_URL is set, JSON file otherwise."""
    db_url = os.getenv("HISTORY_DB_URL")
    if db_url:
        return SqlBlobPersistence(url=db_url, key=os.getenv("HISTORY_KEY", DEFAULT_KEY))
    return JsonFilePersistence(os.getenv("HISTORY_PATH", _DEFAULT_PATH))
