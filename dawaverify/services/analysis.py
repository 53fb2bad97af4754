# =============================================
# File: dawaverify/services/analysis.py
# Purpose: Vision analysis client (OpenAI Chat Completions) for medicine and waste photos
# =============================================
from __future__ import annotations

import asyncio
import json
import os
from typing import Any, Dict, List, Protocol, Sequence

from loguru import logger
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from dawaverify.services.errors import AnalysisFailure, MalformedResponse
from dawaverify.services.records import AnalysisPayload, VerificationRecord, WasteAnalysis
from dawaverify.utils.imaging import CapturedImage
from dawaverify.utils.prompting import (
    VERIFY_SCHEMA,
    WASTE_SCHEMA,
    build_inspector_messages,
    build_verify_messages,
    build_waste_advisor_messages,
    build_waste_messages,
    response_format,
)

DEFAULT_MODEL = os.getenv("ANALYSIS_MODEL", "gpt-4o-mini")
NARRATIVE_MODEL = os.getenv("NARRATIVE_MODEL", "gpt-4o")
DEFAULT_TEMPERATURE = float(os.getenv("ANALYSIS_TEMPERATURE", "0.1"))
MAX_TOKENS = int(os.getenv("ANALYSIS_MAX_TOKENS", "900"))


def _get_timeout() -> float:
    # Read at call time so tests (and envs) can tune it
    try:
        return float(os.getenv("ANALYSIS_TIMEOUT_SECONDS", "20"))
    except ValueError:
        return 20.0


class AnalysisClient(Protocol):
    """
    Boundary to the external image-understanding capability.
    No retries here: a failed call raises and the caller decides what to do.
    """
    model: str

    async def analyze(self, image: CapturedImage, locale: str) -> VerificationRecord: ...

    async def summarize(self, records: Sequence[VerificationRecord]) -> str: ...

    async def classify_waste(self, image: CapturedImage) -> WasteAnalysis: ...

    async def summarize_waste(self, items: Sequence[WasteAnalysis]) -> str: ...


def _parse_json_object(text: str) -> Dict[str, Any]:
    """
    Extract the JSON object from the model output.
    Tolerates small wrappers (code fences, a leading sentence) around it, but
    anything that is not an object raises MalformedResponse.
    """
    if not text:
        raise MalformedResponse("empty response body")
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise MalformedResponse("response contains no JSON object")
    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedResponse("response JSON is not an object")
    return data


def _validate(model: type[BaseModel], data: Dict[str, Any]):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise MalformedResponse(f"missing or mistyped fields: {', '.join(fields)}") from e


class OpenAIAnalysisClient:
    """AnalysisClient backed by the OpenAI SDK; every call runs under ANALYSIS_TIMEOUT_SECONDS."""

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str = DEFAULT_MODEL,
        narrative_model: str = NARRATIVE_MODEL,
    ) -> None:
        self._client = client
        self.model = model
        self.narrative_model = narrative_model

    def _sdk(self) -> AsyncOpenAI:
        # Built lazily so the service can boot without OPENAI_API_KEY
        if self._client is None:
            self._client = AsyncOpenAI()
        return self._client

    async def _complete(self, model: str, messages: List[Dict], fmt: Dict | None = None) -> str:
        timeout = _get_timeout()
        kwargs: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": DEFAULT_TEMPERATURE,
            "max_tokens": MAX_TOKENS,
            "timeout": timeout,
        }
        if fmt is not None:
            kwargs["response_format"] = fmt
        try:
            resp = await asyncio.wait_for(self._sdk().chat.completions.create(**kwargs), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise AnalysisFailure(f"analysis timed out after {timeout:g}s") from e
        except OpenAIError as e:
            raise AnalysisFailure(f"analysis service error: {e}") from e
        if not resp.choices:
            raise AnalysisFailure("analysis service returned no choices")
        return (resp.choices[0].message.content or "").strip()

    async def analyze(self, image: CapturedImage, locale: str) -> VerificationRecord:
        text = await self._complete(
            self.model,
            build_verify_messages(image.data_url()),
            response_format("medicine_verification", VERIFY_SCHEMA),
        )
        payload = _validate(AnalysisPayload, _parse_json_object(text))
        record = payload.to_record(locale)
        logger.info(f"[analysis] verified subject={record.subject_name!r} flagged={record.is_flagged} locale={locale}")
        return record

    async def summarize(self, records: Sequence[VerificationRecord]) -> str:
        text = await self._complete(self.narrative_model, build_inspector_messages(records))
        if not text:
            raise AnalysisFailure("narrative service returned no text")
        return text

    async def classify_waste(self, image: CapturedImage) -> WasteAnalysis:
        text = await self._complete(
            self.model,
            build_waste_messages(image.data_url()),
            response_format("waste_classification", WASTE_SCHEMA),
        )
        return _validate(WasteAnalysis, _parse_json_object(text))

    async def summarize_waste(self, items: Sequence[WasteAnalysis]) -> str:
        text = await self._complete(self.narrative_model, build_waste_advisor_messages(items))
        if not text:
            raise AnalysisFailure("narrative service returned no text")
        return text
