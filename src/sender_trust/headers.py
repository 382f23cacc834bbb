"""Authentication header retrieval and parsing."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Protocol

from . import constants
from .models import AuthResult, HeaderCheck, HeaderStatus

logger = logging.getLogger(__name__)

_FOLD_RE = re.compile(r"\r?\n[ \t]+")
_LINE_SPLIT_RE = re.compile(r"\r?\n")
_TAG_RE = re.compile(r"<[^>]*>")

_SPF_RE = re.compile(rf"spf=({'|'.join(constants.SPF_RESULTS)})", re.IGNORECASE)
_DKIM_RE = re.compile(rf"dkim=({'|'.join(constants.DKIM_RESULTS)})", re.IGNORECASE)
_DMARC_RE = re.compile(rf"dmarc=({'|'.join(constants.DMARC_RESULTS)})", re.IGNORECASE)

# The "show original" HTML page renders a summary table instead of raw headers
_HTML_SPF_RE = re.compile(rf"\bSPF:\s*'?({'|'.join(constants.SPF_RESULTS)})\b", re.IGNORECASE)
_HTML_DKIM_RE = re.compile(rf"\bDKIM:\s*'?({'|'.join(constants.DKIM_RESULTS)})\b", re.IGNORECASE)
_HTML_DMARC_RE = re.compile(rf"\bDMARC:\s*'?({'|'.join(constants.DMARC_RESULTS)})\b", re.IGNORECASE)
_HTML_ORIGINAL_SENDER_RE = re.compile(r"X-Original-Sender[:\s]+([^\s<]+@[^\s>]+)", re.IGNORECASE)

_HTML_ENTITIES = [
    ("&nbsp;", " "),
    ("&#39;", "'"),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
]


class HeaderFetcher(Protocol):
    """Performs the privileged fetch of a message's raw source by message id."""

    async def fetch(self, message_id: str) -> str: ...


def header_block(text: str) -> str:
    """Return the header section: everything before the first blank line."""
    for separator in ("\r\n\r\n", "\n\n"):
        end = text.find(separator)
        if end != -1:
            return text[:end]
    return text[: constants.HEADER_BLOCK_FALLBACK_CHARS]


def unfold(text: str) -> str:
    """Join header continuation lines (leading whitespace) onto the previous line."""
    return _FOLD_RE.sub(" ", text)


def _header_lines(text: str) -> list[str]:
    return _LINE_SPLIT_RE.split(unfold(text))


def _first_header_value(lines: list[str], name: str) -> str | None:
    prefix = name.lower() + ":"
    for line in lines:
        if line.lower().startswith(prefix):
            return line[len(prefix):].strip()
    return None


def _original_sender(value: str | None, envelope_sender: str | None) -> str | None:
    if not value or "@" not in value:
        return None
    value = value.strip().lower()
    if envelope_sender and value == envelope_sender.strip().lower():
        return None
    return value


def _match(regex: re.Pattern, text: str) -> str | None:
    m = regex.search(text)
    return m.group(1).lower() if m else None


def parse_auth_results(header_text: str, envelope_sender: str | None = None) -> AuthResult | None:
    """Parse SPF/DKIM/DMARC from the first Authentication-Results header.

    X-Original-Sender is kept only when it differs from ``envelope_sender``
    (a mailing list or group relayed the message). Returns None when nothing
    was found.
    """
    lines = _header_lines(header_text)
    result = AuthResult()

    auth_line = _first_header_value(lines, "Authentication-Results")
    if auth_line:
        result.spf = _match(_SPF_RE, auth_line)
        result.dkim = _match(_DKIM_RE, auth_line)
        result.dmarc = _match(_DMARC_RE, auth_line)

    result.original_sender = _original_sender(
        _first_header_value(lines, "X-Original-Sender"), envelope_sender
    )
    return None if result.is_empty() else result


def strip_html(html: str) -> str:
    text = _TAG_RE.sub(" ", html)
    for entity, char in _HTML_ENTITIES:
        text = text.replace(entity, char)
    return text


def parse_html_auth_results(html: str, envelope_sender: str | None = None) -> AuthResult | None:
    """Parse the SPF/DKIM/DMARC summary from an HTML-wrapped "show original" page."""
    text = strip_html(html)
    result = AuthResult(
        spf=_match(_HTML_SPF_RE, text),
        dkim=_match(_HTML_DKIM_RE, text),
        dmarc=_match(_HTML_DMARC_RE, text),
    )
    m = _HTML_ORIGINAL_SENDER_RE.search(text)
    if m:
        result.original_sender = _original_sender(m.group(1), envelope_sender)
    return None if result.is_empty() else result


def is_html_response(text: str) -> bool:
    return header_block(text).lstrip().startswith("<")


def extract_raw_header_lines(header_text: str, names: list[str]) -> dict[str, list[str]]:
    """Collect every unfolded line for each requested header name.

    Keys use the spelling given in ``names``; headers that never occur are
    left out.
    """
    wanted = {n.lower(): n for n in names}
    result: dict[str, list[str]] = {}
    for line in _header_lines(header_text):
        colon = line.find(":")
        if colon == -1:
            continue
        key = wanted.get(line[:colon].strip().lower())
        if key:
            result.setdefault(key, []).append(line)
    return result


def parse_response(text: str, envelope_sender: str | None = None) -> HeaderCheck:
    """Parse a raw-header or HTML-wrapped fetch response into a HeaderCheck."""
    if is_html_response(text):
        auth = parse_html_auth_results(text, envelope_sender)
        raw_lines: dict[str, list[str]] = {}
    else:
        block = header_block(text)
        auth = parse_auth_results(block, envelope_sender)
        raw_lines = extract_raw_header_lines(block, constants.RAW_HEADER_NAMES)

    if auth is None:
        return HeaderCheck(status=HeaderStatus.NO_RESULT, raw_lines=raw_lines)
    return HeaderCheck(status=HeaderStatus.OK, auth=auth, raw_lines=raw_lines)


class HeaderVerifier:
    """Fetches and parses authentication headers, caching results per message id.

    Parsed results live for the life of the process. Errors and timeouts are
    returned as HeaderCheck values and are never cached.
    """

    def __init__(self, fetcher: HeaderFetcher, timeout: float | None = None) -> None:
        self.fetcher = fetcher
        self.timeout = constants.HEADER_FETCH_TIMEOUT if timeout is None else timeout
        self._results: dict[str, HeaderCheck] = {}

    def clear(self) -> None:
        self._results.clear()

    async def check(self, message_id: str, envelope_sender: str | None = None) -> HeaderCheck:
        cached = self._results.get(message_id)
        if cached is not None:
            return cached

        try:
            text = await asyncio.wait_for(self.fetcher.fetch(message_id), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.debug("Header fetch for %s timed out after %ss", message_id, self.timeout)
            return HeaderCheck(status=HeaderStatus.TIMEOUT, error="timeout")
        except Exception as exc:  # noqa: BLE001
            logger.debug("Header fetch for %s failed: %s", message_id, exc)
            return HeaderCheck(status=HeaderStatus.ERROR, error=str(exc) or "fetch failed")

        check = parse_response(text or "", envelope_sender)
        if check.status is HeaderStatus.OK:
            self._results[message_id] = check
        return check
