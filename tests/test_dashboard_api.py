# =============================================
# File: tests/test_dashboard_api.py
# =============================================
from fastapi.testclient import TestClient

from fakes import FakeAnalysisClient, MemoryPersistence, png_bytes
from dawaverify.main import create_app
from dawaverify.services.errors import AnalysisFailure


def _mount(fake=None):
    fake = fake or FakeAnalysisClient()
    return TestClient(create_app(client=fake, persistence=MemoryPersistence())), fake

def _scan(c, locale):
    files = {"image": ("p.png", png_bytes(), "image/png")}
    return c.post("/scans?wait=true", files=files, data={"locale": locale, "user_id": "d1"})


def test_citizen_dashboard_on_seed_and_after_flagged_scan():
    tc, _ = _mount()
    with tc as c:
        seeded = c.get("/dashboard/citizen").json()
        assert seeded["verified"] == 1
        assert seeded["split"] == {"authentic": 1, "flagged": 0}

        _scan(c, "Lahore")
        after = c.get("/dashboard/citizen").json()
        assert after["verified"] == 2
        assert after["split"] == {"authentic": 1, "flagged": 1}
        assert after["recent"][0]["locale"] == "Lahore"


def test_inspector_dashboard_groups_by_locale():
    tc, _ = _mount()
    with tc as c:
        _scan(c, "Lahore")
        _scan(c, "Lahore")
        body = c.get("/dashboard/inspector").json()
        assert body["totalScans"] == 3
        assert body["fakeAlerts"] == 2
        assert body["activeCities"] == 2
        assert {"name": "Lahore", "count": 2} in body["byLocale"]


def test_narrative_failure_keeps_previous_text():
    tc, fake = _mount(FakeAnalysisClient(narrative="Focus on Lahore."))
    with tc as c:
        assert c.get("/dashboard/inspector/narrative").json() == {"narrative": None, "available": False}

        ok = c.post("/dashboard/inspector/narrative").json()
        assert ok["refreshed"] is True and ok["narrative"] == "Focus on Lahore."

        fake.narrative_error = AnalysisFailure("quota")
        failed = c.post("/dashboard/inspector/narrative")
        assert failed.status_code == 200
        body = failed.json()
        assert body["refreshed"] is False
        assert body["narrative"] == "Focus on Lahore."
        assert c.get("/dashboard/inspector/narrative").json()["narrative"] == "Focus on Lahore."


def test_narrative_unavailable_when_service_down_from_the_start():
    tc, _ = _mount(FakeAnalysisClient(narrative_error=AnalysisFailure("down")))
    with tc as c:
        body = c.post("/dashboard/inspector/narrative").json()
        assert body["available"] is False
        assert body["narrative"] is None
