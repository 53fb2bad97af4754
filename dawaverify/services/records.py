# =============================================
# File: dawaverify/services/records.py
# Purpose: Record shapes shared by the scan core, the store and the routers
# =============================================
from __future__ import annotations

import time
import uuid
from typing import List

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr
from pydantic.alias_generators import to_camel

LOCALES = ("Karachi", "Lahore", "Islamabad", "Peshawar")
DEFAULT_LOCALE = LOCALES[0]

_ONE_DAY_MS = 86_400_000


def new_record_id() -> str:
    return uuid.uuid4().hex


def now_ms() -> int:
    return int(time.time() * 1000)


class VerificationRecord(BaseModel):
    """
    Completed, immutable outcome of one verification attempt.
    Serialized with camelCase keys (subjectName, isFlagged, ...) both on the
    wire and in the persisted history blob.
    """
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    created_at: int
    subject_name: str
    issuer: str
    reference_price: str
    is_flagged: bool
    local_summary: str
    translated_summary: str
    locale: str


class AnalysisPayload(BaseModel):
    """
    The structured part of an analysis reply: every record field except
    id / createdAt / locale, which the client fills in locally.
    Strict types and non-blank text so a malformed reply never becomes a record.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    subject_name: StrictStr = Field(..., min_length=1)
    issuer: StrictStr = Field(..., min_length=1)
    reference_price: StrictStr = Field(..., min_length=1)
    is_flagged: StrictBool
    local_summary: StrictStr = Field(..., min_length=1)
    translated_summary: StrictStr = Field(..., min_length=1)

    def to_record(self, locale: str) -> VerificationRecord:
        return VerificationRecord(
            id=new_record_id(),
            created_at=now_ms(),
            locale=locale,
            **self.model_dump(),
        )


class WasteAnalysis(BaseModel):
    """Classification of a discarded-item photo. Never stored in history."""
    item: StrictStr = Field(..., min_length=1)
    category: StrictStr = Field(..., min_length=1)
    recyclable: StrictBool
    instructions: StrictStr = Field(..., min_length=1)
    confidence: float = Field(..., ge=0.0, le=1.0)


def seed_records() -> List[VerificationRecord]:
    """The single illustrative record a brand-new history starts with."""
    return [
        VerificationRecord(
            id="1",
            created_at=now_ms() - _ONE_DAY_MS,
            subject_name="Panadol CF",
            issuer="GSK Pakistan",
            reference_price="PKR 380",
            is_flagged=False,
            local_summary="یہ زکام اور بخار کے لیے ہے۔ بڑوں کے لیے دن میں دو بار ایک گولی۔",
            translated_summary="Effective for flu and fever. Adults: 1 tab twice daily.",
            locale="Islamabad",
        )
    ]
