# dawaverify/routers/scans.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, Response, UploadFile

from dawaverify.routers.deps import get_scans
from dawaverify.services.errors import CaptureError, SessionBusy
from dawaverify.services.records import DEFAULT_LOCALE
from dawaverify.services.session import ScanRegistry, ScanSession
from dawaverify.utils import slog
from dawaverify.utils.imaging import decode_image
from dawaverify.utils.metrics import record_rate_limit_hit
from dawaverify.utils.ratelimit import RateLimited, check_rate_limit

router = APIRouter()


def _lookup(registry: ScanRegistry, session_id: str) -> ScanSession:
    try:
        return registry.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Unknown scan session")


@router.post("/scans", status_code=202)
async def post_scan(
    request: Request,
    response: Response,
    image: Optional[UploadFile] = File(None),
    locale: str = Form(DEFAULT_LOCALE, max_length=64),
    user_id: str = Form("anon", min_length=1, max_length=128),
    wait: bool = False,
    registry: ScanRegistry = Depends(get_scans),
) -> Dict[str, Any]:
    """
    Start a verification attempt from an uploaded packaging photo.
    - 202 + session view: analysis runs in the background; poll GET /scans/{id}.
    - wait=true: respond once the session is terminal (200).
    Errors: 400 no/unreadable image, 409 a scan is already in flight, 429 rate limited.
    """
    key = user_id or (request.client.host if request.client else "anon")
    try:
        check_rate_limit(key)
    except RateLimited:
        record_rate_limit_hit()
        request.state.log_context = {"user_id": user_id, "rate_limited": True}
        raise HTTPException(status_code=429, detail="Too Many Requests")

    data = await image.read() if image is not None else None
    request.state.log_context = {"user_id": user_id, "locale": locale}
    try:
        session = registry.start(user_id, decode_image(data), locale)
    except CaptureError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SessionBusy as e:
        raise HTTPException(status_code=409, detail=str(e))

    request.state.log_context.update({"session_id": session.id, "image": slog.image_digest(session.image.data)})
    if wait:
        await registry.wait(session.id)
        response.status_code = 200
        request.state.log_context["state"] = session.state.value
    return session.view()


@router.get("/scans/{session_id}")
def get_scan(session_id: str, registry: ScanRegistry = Depends(get_scans)) -> Dict[str, Any]:
    return _lookup(registry, session_id).view()


@router.delete("/scans/{session_id}")
async def abandon_scan(session_id: str, registry: ScanRegistry = Depends(get_scans)) -> Dict[str, Any]:
    """Abandon a session: a pending result is discarded and never reaches history."""
    _lookup(registry, session_id)
    return registry.abandon(session_id).view()
