# =============================================
# File: tests/fakes.py
# Purpose: Test doubles for the analysis service and its SDK
# =============================================
import asyncio
import io
from types import SimpleNamespace

from PIL import Image

from dawaverify.services.records import AnalysisPayload, WasteAnalysis

FLAGGED_PAYLOAD = {
    "subjectName": "X",
    "issuer": "Unknown Labs",
    "referencePrice": "PKR 120",
    "isFlagged": True,
    "localSummary": "یہ دوا مشکوک ہے۔",
    "translatedSummary": "Packaging deviates from the registered sample.",
}

AUTHENTIC_PAYLOAD = {
    "subjectName": "Augmentin 625mg",
    "issuer": "GSK Pakistan",
    "referencePrice": "PKR 610",
    "isFlagged": False,
    "localSummary": "یہ اینٹی بائیوٹک ہے۔",
    "translatedSummary": "Antibiotic. Take with food twice daily.",
}


def png_bytes(color=(200, 30, 30), size=(8, 8), fmt="PNG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


class FakeAnalysisClient:
    """
    Stands in for the vision service. `gate` (a threading.Event) holds analyze()
    open until the test releases it, which lets a test act while a session is
    submitting, including from TestClient's event-loop thread.
    """
    model = "fake-vision"

    def __init__(self, payload=None, error=None, gate=None, narrative="1. Inspect Lahore pharmacies.",
                 narrative_error=None):
        self.payload = dict(FLAGGED_PAYLOAD if payload is None else payload)
        self.error = error
        self.gate = gate
        self.narrative = narrative
        self.narrative_error = narrative_error
        self.calls = 0
        self.resolved = 0
        self.summarized = []

    async def analyze(self, image, locale):
        self.calls += 1
        if self.gate is not None:
            while not self.gate.is_set():
                await asyncio.sleep(0.01)
        self.resolved += 1
        if self.error is not None:
            raise self.error
        return AnalysisPayload.model_validate(self.payload).to_record(locale)

    async def summarize(self, records):
        self.summarized.append(list(records))
        if self.narrative_error is not None:
            raise self.narrative_error
        return self.narrative

    async def classify_waste(self, image):
        if self.error is not None:
            raise self.error
        return WasteAnalysis(item="PET bottle", category="Plastic", recyclable=True,
                             instructions="Rinse and crush.", confidence=0.93)

    async def summarize_waste(self, items):
        if self.narrative_error is not None:
            raise self.narrative_error
        return f"Add {len(items)} more collection points."


class FailingPersistence:
    """Loads fine (nothing saved yet) but every save fails."""

    def __init__(self):
        self.saves = 0

    def load(self):
        return None

    def save(self, blob):
        from dawaverify.services.errors import PersistenceFailure
        self.saves += 1
        raise PersistenceFailure("disk full")


class MemoryPersistence:
    def __init__(self, blob=None):
        self.blob = blob

    def load(self):
        return self.blob

    def save(self, blob):
        self.blob = blob


# ---------- OpenAI SDK stand-in ----------

class _FakeCompletions:
    def __init__(self, content=None, exc=None, delay=0.0):
        self.content = content
        self.exc = exc
        self.delay = delay
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])


def fake_sdk(content=None, exc=None, delay=0.0):
    completions = _FakeCompletions(content=content, exc=exc, delay=delay)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions
