"""Prompt construction and sanitization of untrusted email content."""

from __future__ import annotations

import re

from . import constants
from .models import EmailAnalysisRequest

SYSTEM_PROMPT = """You are a cybersecurity expert analyzing email metadata for spam and phishing indicators.

Given the email data below, evaluate these criteria:
1. SENDER MISMATCH: Does the display name impersonate a known brand/entity but the email address doesn't match? (e.g., display name "Bank of America" but sender is random-user@gmail.com). A personal name like "John" or "Mom" from a consumer email provider is NOT a mismatch; only flag brand impersonation.
2. URGENCY/THREAT LANGUAGE: Does the subject or body contain urgent threats, scare tactics, or pressure to act immediately? (e.g., "Account Suspended", "Unauthorized Login", "Act Now"). Casual urgency in personal conversation (e.g., "call me ASAP", "need this today") is NOT suspicious.
3. LINK DISCREPANCIES: Do any links point to domains different from the sender's domain? Note: link shorteners (bit.ly, t.co, goo.gl, tinyurl.com, etc.) and subdomained links (e.g., sender.example.com linking to example.com) are generally acceptable and should NOT be flagged. Personal emails often share links to various sites; this is normal and should NOT be flagged unless the links appear to mimic login pages or financial sites.

AUTHENTICATION CONTEXT: The email data may include SPF, DKIM, and DMARC results. When all three pass, the sender is cryptographically verified, so strongly favor "Ok" unless there are clear phishing indicators. Authenticated personal correspondence should almost always be "Ok".

Respond with ONLY a JSON object, no markdown fences. Follow these examples EXACTLY:

Safe email: {"verdict":"Ok","summary":"Legitimate sender, no concerns","reasons":["Sender domain matches display name","No suspicious links or urgency"]}
Suspicious email: {"verdict":"Caution","summary":"Sender impersonates PayPal","reasons":["Display name says PayPal but email is from random domain","Body contains urgent account suspension threat"]}
Dangerous email: {"verdict":"Reject","summary":"Fake login page link","reasons":["Link mimics bank login page on unrelated domain","Urgent threat to close account within 24 hours"]}

Rules:
- verdict: "Ok", "Caution", or "Reject"
- summary: ALWAYS provide a short phrase under 8 words explaining the assessment
- reasons: ALWAYS provide 1-3 strings explaining your reasoning. Each reason must be a complete, readable sentence fragment."""

REMOVED_MARKER = "(removed)"
TRUNCATED_MARKER = "…(truncated)"

_DELIMITER_RE = re.compile(r"[{}\[\]]")
_ROLE_RE = re.compile(r"\b(system|assistant|user)\s*:", re.IGNORECASE)
_OVERRIDE_RE = re.compile(
    r"(ignore|disregard|forget|override)\s+(all\s+)?(previous|prior|above|earlier)\s+"
    r"(instructions?|prompts?|rules?|context)",
    re.IGNORECASE,
)
_INJECTION_RE = re.compile(
    r"(new\s+instruction|you\s+are\s+now|respond\s+with|always\s+(say|reply|answer|respond))\b",
    re.IGNORECASE,
)
_BLANK_LINES_RE = re.compile(r"\n{3,}")
_SPACE_RUN_RE = re.compile(r"[ \t]{4,}")


def sanitize_for_prompt(text: object, max_length: int = constants.PROMPT_BODY_LIMIT) -> str:
    """Neutralize untrusted text before it is placed in a prompt.

    Removes characters that could mimic structured prompt boundaries,
    defuses role markers ("system:") and known injection phrasings, collapses
    whitespace runs used to push injected text out of view, and truncates.
    Running it again on its own output changes nothing.
    """
    if not text or not isinstance(text, str):
        return ""
    s = _DELIMITER_RE.sub("", text)
    s = _ROLE_RE.sub(r"\1 -", s)
    s = _OVERRIDE_RE.sub(REMOVED_MARKER, s)
    s = _INJECTION_RE.sub(REMOVED_MARKER, s)
    s = _BLANK_LINES_RE.sub("\n\n", s)
    s = _SPACE_RUN_RE.sub("   ", s)
    if len(s) > max_length:
        # Output that already carries the marker keeps the same prefix, so this is stable
        s = s[:max_length] + TRUNCATED_MARKER
    return s


def build_user_prompt(data: EmailAnalysisRequest) -> str:
    """Build the per-message prompt. Every field goes through sanitize_for_prompt."""
    lines = [
        "Display Name: "
        + (sanitize_for_prompt(data.display_name, constants.PROMPT_DISPLAY_NAME_LIMIT) or "(none)"),
        "Sender Email: " + sanitize_for_prompt(data.sender_email, constants.PROMPT_SENDER_LIMIT),
        "Subject: " + (sanitize_for_prompt(data.subject, constants.PROMPT_SUBJECT_LIMIT) or "(none)"),
    ]
    if data.body_text:
        lines.append(
            "Body (excerpt):\n" + sanitize_for_prompt(data.body_text, constants.PROMPT_BODY_LIMIT)
        )
    if data.auth:
        lines.append(
            f"Authentication: SPF={data.auth.spf or 'unknown'}, "
            f"DKIM={data.auth.dkim or 'unknown'}, DMARC={data.auth.dmarc or 'unknown'}"
        )
    if data.links:
        lines.append("Links in email:")
        for link in data.links[: constants.PROMPT_MAX_LINKS]:
            text = sanitize_for_prompt(link.text, constants.PROMPT_LINK_TEXT_LIMIT)
            href = sanitize_for_prompt(link.href, constants.PROMPT_LINK_HREF_LIMIT)
            lines.append(f'  - text: "{text}" -> href: {href}')
    return "\n".join(lines)
