# =============================================
# File: dawaverify/routers/waste.py
# Purpose: Waste-item classification; results are returned, never stored in history
# =============================================
from __future__ import annotations
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from pydantic import BaseModel, Field

from dawaverify.routers.deps import get_analysis, get_waste_board
from dawaverify.services.analysis import AnalysisClient
from dawaverify.services.errors import AnalysisFailure, CaptureError
from dawaverify.services.narrative import NarrativeBoard
from dawaverify.services.records import WasteAnalysis
from dawaverify.utils import slog
from dawaverify.utils.imaging import decode_image

router = APIRouter(prefix="/waste")


class WasteInsightsRequest(BaseModel):
    items: List[WasteAnalysis] = Field(..., max_length=500)


@router.post("")
async def classify_waste(
    request: Request,
    image: Optional[UploadFile] = File(None),
    client: AnalysisClient = Depends(get_analysis),
) -> Dict[str, Any]:
    data = await image.read() if image is not None else None
    try:
        captured = decode_image(data)
    except CaptureError as e:
        raise HTTPException(status_code=400, detail=str(e))
    request.state.log_context = {"image": slog.image_digest(captured.data)}
    try:
        result = await client.classify_waste(captured)
    except AnalysisFailure as e:
        request.state.log_context["error"] = str(e)
        raise HTTPException(status_code=502, detail=e.user_message)
    return result.model_dump()


@router.post("/insights")
async def waste_insights(
    req: WasteInsightsRequest,
    board: NarrativeBoard = Depends(get_waste_board),
) -> Dict[str, Any]:
    """Policy recommendation over client-held waste classifications."""
    result = await board.refresh(req.items)
    return asdict(result)
