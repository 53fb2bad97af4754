# =============================================
# File: tests/test_scans_api.py
# Purpose: POST /scans lifecycle over HTTP, including busy, abandon and restart
# =============================================
import threading
import time

from fastapi.testclient import TestClient

from fakes import AUTHENTIC_PAYLOAD, FakeAnalysisClient, png_bytes
from dawaverify.main import create_app
from dawaverify.services.errors import AnalysisFailure
from dawaverify.services.persistence import JsonFilePersistence


def _mount(tmp_path, client=None):
    fake = client or FakeAnalysisClient()
    app = create_app(client=fake, persistence=JsonFilePersistence(str(tmp_path / "history.json")))
    return TestClient(app), fake

def _upload(locale="Lahore", user_id="u1"):
    return {
        "files": {"image": ("pack.png", png_bytes(), "image/png")},
        "data": {"locale": locale, "user_id": user_id},
    }

def _poll(c, session_id, timeout=3.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        body = c.get(f"/scans/{session_id}").json()
        if body["state"] in ("completed", "failed"):
            return body
        time.sleep(0.01)
    raise AssertionError("session did not reach a terminal state")


def test_scan_with_wait_returns_completed_record(tmp_path):
    tc, _ = _mount(tmp_path)
    with tc as c:
        r = c.post("/scans?wait=true", **_upload("Lahore"))
        assert r.status_code == 200
        body = r.json()
        assert body["state"] == "completed"
        assert body["transitions"] == ["idle", "captured", "submitting", "completed"]
        rec = body["record"]
        assert rec["isFlagged"] is True
        assert rec["locale"] == "Lahore"

        hist = c.get("/history").json()
        assert hist["total"] == 2
        assert hist["items"][0]["id"] == rec["id"]
        assert hist["items"][1]["subjectName"] == "Panadol CF"

        one = c.get(f"/history/{rec['id']}")
        assert one.status_code == 200 and one.json()["subjectName"] == "X"


def test_scan_in_background_then_poll(tmp_path):
    tc, _ = _mount(tmp_path, FakeAnalysisClient(payload=AUTHENTIC_PAYLOAD))
    with tc as c:
        r = c.post("/scans", **_upload("Karachi"))
        assert r.status_code == 202
        assert r.json()["state"] == "submitting"
        assert r.json()["transitions"] == ["idle", "captured", "submitting"]
        final = _poll(c, r.json()["id"])
        assert final["state"] == "completed"
        assert final["record"]["isFlagged"] is False


def test_missing_or_bad_image_is_400_and_changes_nothing(tmp_path):
    tc, fake = _mount(tmp_path)
    with tc as c:
        r1 = c.post("/scans", data={"locale": "Lahore", "user_id": "u1"})
        assert r1.status_code == 400
        r2 = c.post("/scans", files={"image": ("x.png", b"nope", "image/png")}, data={"user_id": "u1"})
        assert r2.status_code == 400
        assert fake.calls == 0
        assert c.get("/history").json()["total"] == 1


def test_failed_analysis_is_reported_and_not_persisted(tmp_path):
    tc, _ = _mount(tmp_path, FakeAnalysisClient(error=AnalysisFailure("upstream 500")))
    with tc as c:
        r = c.post("/scans?wait=true", **_upload())
        assert r.status_code == 200
        body = r.json()
        assert body["state"] == "failed"
        assert body["record"] is None
        assert body["error"] == AnalysisFailure.user_message
        assert "upstream" not in body["error"]
        assert c.get("/history").json()["total"] == 1


def test_second_scan_while_submitting_is_409_and_abandon_discards(tmp_path):
    gate = threading.Event()
    tc, fake = _mount(tmp_path, FakeAnalysisClient(gate=gate))
    with tc as c:
        first = c.post("/scans", **_upload("Lahore"))
        assert first.status_code == 202
        sid = first.json()["id"]

        busy = c.post("/scans", **_upload("Karachi"))
        assert busy.status_code == 409

        dropped = c.delete(f"/scans/{sid}")
        assert dropped.status_code == 200
        assert dropped.json()["abandoned"] is True
        assert dropped.json()["state"] == "submitting"

        gate.set()
        final = _poll(c, sid)
        assert final["state"] == "failed"
        assert final["error"] == "abandoned"
        assert fake.resolved == 1
        assert c.get("/history").json()["total"] == 1


def test_unknown_session_is_404(tmp_path):
    tc, _ = _mount(tmp_path)
    with tc as c:
        assert c.get("/scans/missing").status_code == 404
        assert c.delete("/scans/missing").status_code == 404
        assert c.get("/history/missing").status_code == 404


def test_rate_limit_per_user(tmp_path, monkeypatch):
    monkeypatch.setenv("RL_MAX_REQS", "1")
    tc, _ = _mount(tmp_path)
    with tc as c:
        assert c.post("/scans?wait=true", **_upload(user_id="rl")).status_code == 200
        assert c.post("/scans?wait=true", **_upload(user_id="rl")).status_code == 429
        assert c.post("/scans?wait=true", **_upload(user_id="other")).status_code == 200
        m = c.get("/metrics").json()
        assert m["counters"]["rate_limit_hits_total"] == 1


def test_history_survives_restart(tmp_path):
    tc, _ = _mount(tmp_path)
    with tc as c:
        for loc in ("Lahore", "Peshawar"):
            assert c.post("/scans?wait=true", **_upload(loc)).json()["state"] == "completed"
        before = c.get("/history").json()

    tc2, _ = _mount(tmp_path)
    with tc2 as c2:
        after = c2.get("/history").json()
    assert after == before
    assert [i["locale"] for i in after["items"]] == ["Peshawar", "Lahore", "Islamabad"]


def test_history_paging(tmp_path):
    tc, _ = _mount(tmp_path)
    with tc as c:
        for loc in ("Lahore", "Karachi", "Peshawar"):
            c.post("/scans?wait=true", **_upload(loc))
        page = c.get("/history", params={"limit": 2, "offset": 1}).json()
        assert page["total"] == 4
        assert [i["locale"] for i in page["items"]] == ["Karachi", "Lahore"]
