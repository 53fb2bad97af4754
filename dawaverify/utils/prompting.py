# =============================================
# File: dawaverify/utils/prompting.py
# Purpose: Prompts, output schemas and chat messages for the analysis service
# =============================================
from __future__ import annotations
from typing import Dict, List, Sequence

from .sanitize import sanitize_field

VERIFY_SYS_PROMPT = (
    "You are a pharmaceutical expert in Pakistan. You inspect photos of medicine packaging "
    "and report ONLY what the packaging supports. Output MUST be a single JSON object."
)

VERIFY_USER_PROMPT = (
    "Analyze this medicine packaging.\n"
    "1. Identify the Medicine Name (subjectName) and Manufacturer (issuer).\n"
    "2. Check if the packaging looks consistent with authorized products in Pakistan. "
    "Set isFlagged to true if it shows signs of counterfeiting or tampering.\n"
    "3. Provide a very simple 2-line summary in English (translatedSummary).\n"
    "4. Provide a very simple 2-line summary in URDU, using Urdu script, for a common person "
    "to understand usage/warnings (localSummary).\n"
    "5. State the typical DRAP-regulated MRP (Maximum Retail Price) for this item in PKR (referencePrice).\n"
    "Return the result in JSON format."
)

VERIFY_SCHEMA: Dict = {
    "type": "object",
    "properties": {
        "subjectName": {"type": "string"},
        "issuer": {"type": "string"},
        "referencePrice": {"type": "string"},
        "isFlagged": {"type": "boolean"},
        "localSummary": {"type": "string"},
        "translatedSummary": {"type": "string"},
    },
    "required": ["subjectName", "issuer", "referencePrice", "isFlagged", "localSummary", "translatedSummary"],
    "additionalProperties": False,
}

WASTE_USER_PROMPT = (
    "Identify the waste item in this image and provide category, recyclability status, "
    "instructions and your confidence between 0 and 1 in JSON format."
)

WASTE_SCHEMA: Dict = {
    "type": "object",
    "properties": {
        "item": {"type": "string"},
        "category": {"type": "string"},
        "recyclable": {"type": "boolean"},
        "instructions": {"type": "string"},
        "confidence": {"type": "number"},
    },
    "required": ["item", "category", "recyclable", "instructions", "confidence"],
    "additionalProperties": False,
}

INSPECTOR_TEMPLATE = (
    "Acting as a Drug Health Inspector in Pakistan, analyze these recent field reports: {reports}.\n"
    "Provide a strategic 3-point action plan for the Health Ministry to address any emerging "
    "clusters of counterfeit drugs or price violations.\n"
    "Mention specific concerns for cities mentioned."
)

WASTE_ADVISOR_TEMPLATE = (
    "Analyze these waste detection statistics: {items}.\n"
    "As an urban policy advisor, provide a short, high-impact recommendation for improving "
    "local recycling infrastructure."
)


def response_format(name: str, schema: Dict) -> Dict:
    """Strict JSON-schema response format for Chat Completions."""
    return {"type": "json_schema", "json_schema": {"name": name, "strict": True, "schema": schema}}


def _image_messages(system: str | None, prompt: str, image_url: str) -> List[Dict]:
    msgs: List[Dict] = []
    if system:
        msgs.append({"role": "system", "content": system})
    msgs.append({
        "role": "user",
        "content": [
            {"type": "image_url", "image_url": {"url": image_url}},
            {"type": "text", "text": prompt},
        ],
    })
    return msgs


def build_verify_messages(image_url: str) -> List[Dict]:
    return _image_messages(VERIFY_SYS_PROMPT, VERIFY_USER_PROMPT, image_url)


def build_waste_messages(image_url: str) -> List[Dict]:
    return _image_messages(None, WASTE_USER_PROMPT, image_url)


def pack_reports(records: Sequence) -> str:
    """One compact line per record: '<name> in <locale> (Fake Suspect|Valid)'."""
    parts = []
    for r in records:
        verdict = "Fake Suspect" if r.is_flagged else "Valid"
        parts.append(f"{sanitize_field(r.subject_name)} in {sanitize_field(r.locale, 40)} ({verdict})")
    return ", ".join(parts)


def build_inspector_messages(records: Sequence) -> List[Dict]:
    return [{"role": "user", "content": INSPECTOR_TEMPLATE.format(reports=pack_reports(records))}]


def build_waste_advisor_messages(items: Sequence) -> List[Dict]:
    summary = ", ".join(f"{sanitize_field(i.item)} ({sanitize_field(i.category, 40)})" for i in items)
    return [{"role": "user", "content": WASTE_ADVISOR_TEMPLATE.format(items=summary)}]
