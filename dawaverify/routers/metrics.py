# =============================================
# File: dawaverify/routers/metrics.py
# Purpose: Expose internal metrics as JSON
# =============================================
from __future__ import annotations
from fastapi import APIRouter
from dawaverify.utils.metrics import snapshot

router = APIRouter(tags=["metrics"])

@router.get("/metrics")
def get_metrics():
    """Return in-process scan/analysis metrics (JSON)."""
    return snapshot()
