# =============================================
# File: dawaverify/routers/dashboard.py
# Purpose: Citizen and inspector dashboard projections + inspector narrative
# =============================================
from __future__ import annotations
from dataclasses import asdict
from typing import Any, Dict

from fastapi import APIRouter, Depends

from dawaverify.routers.deps import get_history, get_inspector_board
from dawaverify.services import projections
from dawaverify.services.history import HistoryStore
from dawaverify.services.narrative import NarrativeBoard

router = APIRouter(prefix="/dashboard")

@router.get("/citizen")
def citizen_dashboard(store: HistoryStore = Depends(get_history)) -> Dict[str, Any]:
    return projections.citizen_view(store.all())

@router.get("/inspector")
def inspector_dashboard(store: HistoryStore = Depends(get_history)) -> Dict[str, Any]:
    return projections.inspector_view(store.all())

@router.get("/inspector/narrative")
def current_narrative(board: NarrativeBoard = Depends(get_inspector_board)) -> Dict[str, Any]:
    return {"narrative": board.current, "available": board.current is not None}

@router.post("/inspector/narrative")
async def refresh_narrative(
    store: HistoryStore = Depends(get_history),
    board: NarrativeBoard = Depends(get_inspector_board),
) -> Dict[str, Any]:
    """
    Ask the narrative service for a strategic action plan over the current
    history. Never fails the request: on service error the previous
    narrative (or none) comes back with refreshed=false.
    """
    result = await board.refresh(store.all())
    return asdict(result)
