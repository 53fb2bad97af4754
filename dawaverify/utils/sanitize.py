# =============================================
# File: dawaverify/utils/sanitize.py
# Purpose: Neutralize text read off packaging before it is embedded in a prompt
# =============================================
from __future__ import annotations
import re
from typing import Iterable

# Product names and summaries come from photographed packaging, which the
# scanning user controls, so they are treated as untrusted prompt input.
_INJECTION_CUES = [
    "ignore previous instruction",
    "ignore the previous instruction",
    "disregard previous instruction",
    "system prompt",
    "developer message",
    "as an ai",
    "act as",
    "do not follow the above",
    "override",
    "jailbreak",
]

_WHITESPACE_RE = re.compile(r"\s+")
_SENT_SPLIT_RE = re.compile(r'(?<=[.!?])\s+')

def collapse_ws(text: str) -> str:
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()

def _strip_injection_sentences(text: str, cues: Iterable[str] = _INJECTION_CUES) -> str:
    if not text:
        return ""
    parts = _SENT_SPLIT_RE.split(text)
    cues_l = [c.lower() for c in cues]
    kept = [p.strip() for p in parts if p.strip() and not any(c in p.lower() for c in cues_l)]
    if kept:
        return " ".join(kept)
    # fallback: if everything was removed, keep original (cues are stripped inline later)
    return text

def sanitize_field(text: str, max_chars: int = 80) -> str:
    """
    Collapse whitespace, drop sentences carrying prompt-injection cues,
    strip any cue phrase that survived inline, then truncate.
    """
    t = _strip_injection_sentences(text or "")
    for c in _INJECTION_CUES:
        t = re.sub(re.escape(c), "", t, flags=re.IGNORECASE)
    t = collapse_ws(t)
    if max_chars and len(t) > max_chars:
        t = t[:max_chars].rstrip() + "…"
    return t
