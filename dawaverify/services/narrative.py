# =============================================
# File: dawaverify/services/narrative.py
# Purpose: Keep the latest inspector narrative; a failed refresh leaves it untouched
# =============================================
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Sequence, TypeVar

from loguru import logger

from dawaverify.services.errors import AnalysisFailure
from dawaverify.utils import slog
from dawaverify.utils.metrics import record_narrative_failure

T = TypeVar("T")


@dataclass(frozen=True)
class NarrativeResult:
    narrative: Optional[str]
    available: bool
    refreshed: bool
    error: Optional[str] = None


class NarrativeBoard(Generic[T]):
    """
    Holds the last narrative produced by `summarize`.
    refresh() never raises on service failure: the prior narrative (if any)
    is returned unchanged with refreshed=False.
    """
    def __init__(self, summarize: Callable[[Sequence[T]], Awaitable[str]], name: str = "inspector") -> None:
        self._summarize = summarize
        self._name = name
        self._current: Optional[str] = None

    @property
    def current(self) -> Optional[str]:
        return self._current

    def _result(self, refreshed: bool, error: Optional[str] = None) -> NarrativeResult:
        return NarrativeResult(
            narrative=self._current,
            available=self._current is not None,
            refreshed=refreshed,
            error=error,
        )

    async def refresh(self, items: Sequence[T]) -> NarrativeResult:
        if not items:
            return self._result(refreshed=False, error="nothing to summarize")
        try:
            text = await self._summarize(items)
        except AnalysisFailure as e:
            record_narrative_failure()
            slog.log_event("narrative.failed", board=self._name, error=str(e), items=len(items))
            logger.warning(f"[narrative] {self._name} refresh failed: {e}")
            return self._result(refreshed=False, error=e.user_message)
        self._current = text
        return self._result(refreshed=True)
