# =============================================
# File: dawaverify/routers/history.py
# Purpose: Read-only access to the scan history (the citizen "cabinet")
# =============================================
from __future__ import annotations
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query

from dawaverify.routers.deps import get_history
from dawaverify.services.history import HistoryStore

router = APIRouter()

@router.get("/history")
def list_history(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    store: HistoryStore = Depends(get_history),
) -> Dict[str, Any]:
    """Newest first; `total` is the full history size."""
    snapshot = store.all()
    page = snapshot[offset: offset + limit]
    return {
        "total": len(snapshot),
        "items": [r.model_dump(by_alias=True) for r in page],
    }

@router.get("/history/{record_id}")
def get_record(record_id: str, store: HistoryStore = Depends(get_history)) -> Dict[str, Any]:
    rec = store.get(record_id)
    if rec is None:
        raise HTTPException(status_code=404, detail="Unknown record")
    return rec.model_dump(by_alias=True)
