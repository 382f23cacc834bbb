"""Decoding of language-model responses into AiResult values.

Two stages: a strict JSON decode, then a best-effort regex recovery for
truncated or otherwise malformed output.
"""

from __future__ import annotations

import json
import re

from .constants import PARSE_ERROR_SNIPPET
from .models import AiResult, AiVerdict

_VERDICT_SYNONYMS = {
    "ok": AiVerdict.OK,
    "safe": AiVerdict.OK,
    "caution": AiVerdict.CAUTION,
    "warning": AiVerdict.CAUTION,
    "suspicious": AiVerdict.CAUTION,
    "reject": AiVerdict.REJECT,
    "danger": AiVerdict.REJECT,
    "dangerous": AiVerdict.REJECT,
    "phishing": AiVerdict.REJECT,
}

_JSON_FENCE_RE = re.compile(r"```json\s*", re.IGNORECASE)
_FENCE_RE = re.compile(r"```\s*")
_VERDICT_FIELD_RE = re.compile(r'"verdict"\s*:\s*"([^"]+)"', re.IGNORECASE)
_SUMMARY_FIELD_RE = re.compile(r'"summary"\s*:\s*"((?:[^"\\]|\\.)*)"')
_REASONS_BLOCK_RE = re.compile(r'"reasons"\s*:\s*\[([\s\S]*?)(?:\]|$)')
_STRING_RE = re.compile(r'"((?:[^"\\]|\\.)*)"')


def normalize_verdict(value: object) -> AiVerdict | None:
    """Map a free-form verdict string onto Ok / Caution / Reject, case-insensitively."""
    if not value or not isinstance(value, str):
        return None
    return _VERDICT_SYNONYMS.get(value.strip().lower())


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", _JSON_FENCE_RE.sub("", text or "")).strip()


def decode_json(cleaned: str) -> AiResult | None:
    """Strict stage. Returns None when ``cleaned`` is not a JSON object."""
    try:
        obj = json.loads(cleaned)
    except ValueError:
        return None
    if not isinstance(obj, dict):
        return None

    summary = obj.get("summary")
    reasons = obj.get("reasons")
    return AiResult(
        verdict=normalize_verdict(obj.get("verdict")) or AiVerdict.CAUTION,
        summary=summary if isinstance(summary, str) else "",
        reasons=[str(r) for r in reasons if r is not None and str(r)] if isinstance(reasons, list) else [],
    )


def _unescape(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except ValueError:
        return value


def recover_fields(cleaned: str) -> AiResult:
    """Fallback stage: pull verdict, summary and reasons out of broken JSON.

    An unterminated reasons array still yields the complete strings seen so
    far. When no verdict can be found the result carries ``parse_error``.
    """
    m = _VERDICT_FIELD_RE.search(cleaned)
    verdict = normalize_verdict(m.group(1)) if m else None

    m = _SUMMARY_FIELD_RE.search(cleaned)
    summary = _unescape(m.group(1)) if m else ""

    reasons: list[str] = []
    block = _REASONS_BLOCK_RE.search(cleaned)
    if block:
        reasons = [_unescape(s) for s in _STRING_RE.findall(block.group(1))]

    if verdict is None:
        return AiResult(
            verdict=None,
            parse_error="no verdict found: " + cleaned[:PARSE_ERROR_SNIPPET],
        )
    return AiResult(verdict=verdict, summary=summary, reasons=reasons)


def parse_ai_result(text: str) -> AiResult:
    """Decode a raw model response into an AiResult."""
    cleaned = strip_code_fences(text)
    return decode_json(cleaned) or recover_fields(cleaned)
