# =============================================
# File: dawaverify/services/history.py
# Purpose: Append-only, newest-first history of verification records
# =============================================
from __future__ import annotations

import json
import threading
from typing import List, Optional, Set, Tuple

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from dawaverify.services.errors import PersistenceFailure
from dawaverify.services.persistence import Persistence
from dawaverify.services.records import VerificationRecord, seed_records
from dawaverify.utils import slog
from dawaverify.utils.metrics import record_persistence_failure

_RECORDS = TypeAdapter(List[VerificationRecord])


class HistoryStore:
    """
    Ordered log of completed records:
    - append() prepends (most recent completion first) and rewrites the whole blob
    - all() hands out an immutable snapshot (tuple); re-query to see later appends
    - load() restores the persisted sequence verbatim, or seeds one example record
    Records are never mutated, removed or compacted. A failed write keeps the
    record in memory for the current run and is reported, not raised.
    """
    def __init__(self, persistence: Persistence) -> None:
        self._persistence = persistence
        self._lock = threading.Lock()
        self._records: Tuple[VerificationRecord, ...] = ()
        self._ids: Set[str] = set()
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self) -> Tuple[VerificationRecord, ...]:
        """
        Read the persisted blob once at startup.
        Raises PersistenceFailure if the blob exists but cannot be read or parsed,
        so an unreadable history is never silently replaced by the seed.
        """
        blob = self._persistence.load()
        with self._lock:
            if blob is None:
                records = tuple(seed_records())
                self._replace(records)
                self._save_locked()
                logger.info("[history] no saved history, seeded {} record(s)", len(records))
            else:
                try:
                    records = tuple(_RECORDS.validate_json(blob))
                except ValidationError as e:
                    raise PersistenceFailure(f"persisted history is not a valid record list: {e}") from e
                self._replace(records)
                logger.info("[history] restored {} record(s)", len(records))
            self._loaded = True
            return self._records

    def append(self, record: VerificationRecord) -> bool:
        """
        Prepend `record` and persist the full sequence.
        Returns False when the durable write failed (the record is still kept).
        """
        with self._lock:
            if record.id in self._ids:
                raise ValueError(f"record id {record.id!r} already in history")
            self._replace((record,) + self._records)
            return self._save_locked()

    def all(self) -> Tuple[VerificationRecord, ...]:
        return self._records

    def get(self, record_id: str) -> Optional[VerificationRecord]:
        for rec in self._records:
            if rec.id == record_id:
                return rec
        return None

    def __len__(self) -> int:
        return len(self._records)

    # ---------- internals ----------

    def _replace(self, records: Tuple[VerificationRecord, ...]) -> None:
        self._records = records
        self._ids = {r.id for r in records}

    def _dump(self) -> str:
        return json.dumps(
            [r.model_dump(by_alias=True) for r in self._records],
            ensure_ascii=False,
            indent=2,
        )

    def _save_locked(self) -> bool:
        try:
            self._persistence.save(self._dump())
            return True
        except (PersistenceFailure, OSError) as e:
            record_persistence_failure()
            slog.log_event("history.persist_failed", error=str(e), size=len(self._records))
            logger.warning("[history] keeping {} record(s) in memory only: {}", len(self._records), e)
            return False
