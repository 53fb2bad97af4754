# =============================================
# File: dawaverify/routers/deps.py
# Purpose: Accessors for the per-app collaborators created in the lifespan
# =============================================
from __future__ import annotations

from fastapi import Request

from dawaverify.services.analysis import AnalysisClient
from dawaverify.services.history import HistoryStore
from dawaverify.services.narrative import NarrativeBoard
from dawaverify.services.session import ScanRegistry


def get_history(request: Request) -> HistoryStore:
    return request.app.state.history


def get_scans(request: Request) -> ScanRegistry:
    return request.app.state.scans


def get_analysis(request: Request) -> AnalysisClient:
    return request.app.state.analysis


def get_inspector_board(request: Request) -> NarrativeBoard:
    return request.app.state.inspector_board


def get_waste_board(request: Request) -> NarrativeBoard:
    return request.app.state.waste_board
