# =============================================
# File: dawaverify/services/session.py
# Purpose: Per-attempt scan state machine and the registry that owns live sessions
# =============================================
from __future__ import annotations

import asyncio
import os
import uuid
from collections import OrderedDict
from enum import Enum
from typing import Any, Dict, List, Optional

from loguru import logger

from dawaverify.services.analysis import AnalysisClient
from dawaverify.services.errors import AnalysisFailure, CaptureError, SessionBusy
from dawaverify.services.history import HistoryStore
from dawaverify.services.records import DEFAULT_LOCALE, VerificationRecord, now_ms
from dawaverify.utils import slog
from dawaverify.utils.imaging import CapturedImage
from dawaverify.utils.metrics import (
    record_persistence_failure,
    record_scan_abandoned,
    record_scan_completed,
    record_scan_failed,
    record_scan_started,
)
from dawaverify.utils.timing import timer

ABANDONED = "abandoned"


class SessionState(str, Enum):
    IDLE = "idle"
    CAPTURED = "captured"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({SessionState.COMPLETED, SessionState.FAILED})


def _get_display_delay() -> float:
    """Minimum pause between receiving a result and surfacing it (seconds)."""
    try:
        return max(0.0, float(os.getenv("SCAN_MIN_DISPLAY_SECONDS", "1.5")))
    except ValueError:
        return 1.5


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ScanSession:
    """
    One capture-to-outcome attempt:

        idle -> captured -> submitting -> completed | failed

    - capture() is only accepted while idle; anything else raises SessionBusy.
    - submit() is begin() (captured -> submitting) followed by run(), which
      makes exactly one analysis call. On success the record is
      appended to the store after the display delay, unless the session was
      abandoned meanwhile, in which case the result is dropped.
    - Terminal sessions are never reused.
    """
    def __init__(
        self,
        client: AnalysisClient,
        store: HistoryStore,
        user_id: str = "anon",
        display_delay: Optional[float] = None,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.user_id = user_id
        self.created_at = now_ms()
        self.finished_at: Optional[int] = None
        self.state = SessionState.IDLE
        self.transitions: List[SessionState] = [SessionState.IDLE]
        self.image: Optional[CapturedImage] = None
        self.locale: Optional[str] = None
        self.record: Optional[VerificationRecord] = None
        self.error: Optional[str] = None
        self.error_kind: Optional[str] = None
        self.persisted: Optional[bool] = None
        self.token = CancellationToken()
        self._client = client
        self._store = store
        self._display_delay = _get_display_delay() if display_delay is None else display_delay

    # ---------- transitions ----------

    def _move(self, state: SessionState) -> None:
        self.state = state
        self.transitions.append(state)
        if state in TERMINAL_STATES:
            self.finished_at = now_ms()

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def abandoned(self) -> bool:
        return self.token.cancelled

    def capture(self, image: Optional[CapturedImage], locale: Optional[str] = None) -> None:
        if self.state is not SessionState.IDLE:
            raise SessionBusy(f"session {self.id} is {self.state.value}; start a new session to scan again")
        if image is None or not image.data:
            # nothing selected: no state change
            raise CaptureError("no image selected")
        self.image = image
        self.locale = (locale or "").strip() or DEFAULT_LOCALE
        self._move(SessionState.CAPTURED)

    def begin(self) -> None:
        """captured -> submitting, synchronously, so the caller sees the call as in flight."""
        if self.state is not SessionState.CAPTURED:
            raise SessionBusy(f"session {self.id} cannot submit from {self.state.value}")
        self._move(SessionState.SUBMITTING)
        record_scan_started()
        slog.log_event(
            "scan.started",
            session_id=self.id,
            user_id=self.user_id,
            locale=self.locale,
            image=slog.image_digest(self.image.data),
        )

    async def submit(self) -> SessionState:
        self.begin()
        return await self.run()

    async def run(self) -> SessionState:
        """Analysis, display delay and append for a session already moved to submitting by begin()."""
        if self.state is not SessionState.SUBMITTING:
            raise SessionBusy(f"session {self.id} is {self.state.value}, not submitting")

        with timer() as elapsed:
            try:
                record = await self._client.analyze(self.image, self.locale)
            except AnalysisFailure as e:
                if self.token.cancelled:
                    return self._abandoned(None)
                return self._fail(e, elapsed())
            except Exception as e:
                if self.token.cancelled:
                    return self._abandoned(None)
                # Any other client error is still an analysis failure for the session
                return self._fail(AnalysisFailure(str(e)), elapsed(), kind=type(e).__name__)
            latency_ms = elapsed()

        if self._display_delay:
            await asyncio.sleep(self._display_delay)

        if self.token.cancelled:
            return self._abandoned(record.id)

        before = self._store.all()
        try:
            self.persisted = self._store.append(record)
        except Exception as e:
            if self._store.all() is before:
                # rejected before it reached history
                return self._fail(AnalysisFailure(str(e)), latency_ms, kind=type(e).__name__)
            # in history for this run, just not on disk
            self.persisted = False
            record_persistence_failure()
            logger.error(f"[scan] session={self.id} record={record.id} not persisted: {e!r}")
        self.record = record
        self._move(SessionState.COMPLETED)
        record_scan_completed(latency_ms, getattr(self._client, "model", None), record.is_flagged)
        slog.log_event(
            "scan.completed",
            session_id=self.id,
            record_id=record.id,
            flagged=record.is_flagged,
            locale=record.locale,
            persisted=self.persisted,
            latency_ms=latency_ms,
        )
        return self.state

    def _abandoned(self, discarded_record: Optional[str]) -> SessionState:
        self.error, self.error_kind = ABANDONED, ABANDONED
        self._move(SessionState.FAILED)
        record_scan_abandoned()
        slog.log_event("scan.abandoned", session_id=self.id, discarded_record=discarded_record)
        return self.state

    def _fail(self, err: AnalysisFailure, latency_ms: int, kind: Optional[str] = None) -> SessionState:
        self.error = err.user_message
        self.error_kind = kind or type(err).__name__
        self._move(SessionState.FAILED)
        record_scan_failed(latency_ms, self.error_kind)
        slog.log_event(
            "scan.failed",
            session_id=self.id,
            kind=self.error_kind,
            error=str(err),
            abandoned=self.token.cancelled,
            latency_ms=latency_ms,
        )
        logger.warning(f"[scan] session={self.id} failed: {err}")
        return self.state

    def abandon(self) -> None:
        """
        Host view went away. A pending call is left to finish but its result
        is discarded; a session that never got submitted fails right away.
        """
        if self.terminal or self.token.cancelled:
            return
        self.token.cancel()
        if self.state in (SessionState.IDLE, SessionState.CAPTURED):
            self._abandoned(None)

    def view(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "state": self.state.value,
            "transitions": [s.value for s in self.transitions],
            "locale": self.locale,
            "record": self.record.model_dump(by_alias=True) if self.record else None,
            "persisted": self.persisted,
            "error": self.error,
            "errorKind": self.error_kind,
            "abandoned": self.token.cancelled,
            "createdAt": self.created_at,
            "finishedAt": self.finished_at,
        }


class ScanRegistry:
    """
    Live sessions for the HTTP layer, keyed by session id.
    A user may have at most one session in flight; older terminal sessions
    are evicted once more than `max_sessions` are held.
    """
    def __init__(self, client: AnalysisClient, store: HistoryStore, max_sessions: int = 256) -> None:
        self._client = client
        self._store = store
        self._max = max_sessions
        self._sessions: "OrderedDict[str, ScanSession]" = OrderedDict()
        self._tasks: Dict[str, asyncio.Task] = {}

    def _in_flight(self, user_id: str) -> Optional[ScanSession]:
        for s in self._sessions.values():
            if s.user_id == user_id and not s.terminal and not s.abandoned:
                return s
        return None

    def start(self, user_id: str, image: Optional[CapturedImage], locale: Optional[str]) -> ScanSession:
        """Create, capture and schedule submission. Must be called from a running event loop."""
        busy = self._in_flight(user_id)
        if busy is not None:
            raise SessionBusy(f"a scan is already in progress for this user (session {busy.id})")
        session = ScanSession(self._client, self._store, user_id=user_id)
        session.capture(image, locale)
        session.begin()
        self._sessions[session.id] = session
        task = asyncio.create_task(session.run())
        self._tasks[session.id] = task
        task.add_done_callback(lambda t, sid=session.id: self._on_done(sid, t))
        self._evict()
        return session

    def _on_done(self, session_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(session_id, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"[scan] session={session_id} crashed: {exc!r}")

    def _evict(self) -> None:
        while len(self._sessions) > self._max:
            victim = next((sid for sid, s in self._sessions.items() if s.terminal), None)
            if victim is None:
                break
            self._sessions.pop(victim)

    def get(self, session_id: str) -> ScanSession:
        return self._sessions[session_id]

    async def wait(self, session_id: str) -> ScanSession:
        session = self._sessions[session_id]
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.shield(task)
        return session

    def abandon(self, session_id: str) -> ScanSession:
        session = self._sessions[session_id]
        session.abandon()
        return session

    async def aclose(self) -> None:
        """Shutdown: abandon whatever is still running and stop waiting on it."""
        for session in self._sessions.values():
            session.abandon()
        tasks = list(self._tasks.values())
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
