"""Gmail API client functions: raw message source and analysis fields."""

from __future__ import annotations

import asyncio
import base64
from email.utils import parseaddr

from bs4 import BeautifulSoup
from googleapiclient.errors import HttpError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from sender_trust.constants import GMAIL_RETRY_ATTEMPTS
from sender_trust.models import EmailAnalysisRequest, Link


def _is_retryable_http_error(exc: BaseException) -> bool:
    return isinstance(exc, HttpError) and exc.resp.status in (429, 500, 503)


def _parse_from_header(from_value: str) -> tuple[str, str]:
    """Split a From header into (display name, address); either part may be empty."""
    name, address = parseaddr(from_value or "")
    return (name.strip(), address.strip())


# Rate limits and transient backend errors only
_gmail_retry = retry(
    retry=retry_if_exception(_is_retryable_http_error),
    wait=wait_exponential(multiplier=1, min=1, max=60),
    stop=stop_after_attempt(GMAIL_RETRY_ATTEMPTS),
    reraise=True,
)


def _decode_body(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


@_gmail_retry
def fetch_raw_message(service, message_id: str) -> str:
    """Return the full RFC 822 source of a message."""
    resp = service.users().messages().get(userId="me", id=message_id, format="raw").execute()
    return _decode_body(resp.get("raw", ""))


@_gmail_retry
def fetch_full_message(service, message_id: str) -> dict:
    return service.users().messages().get(userId="me", id=message_id, format="full").execute()


def _collect_bodies(payload: dict, bodies: dict[str, list[str]]) -> None:
    mime_type = payload.get("mimeType", "")
    data = payload.get("body", {}).get("data")
    if data and mime_type in ("text/plain", "text/html"):
        bodies.setdefault(mime_type, []).append(_decode_body(data))
    for part in payload.get("parts", []) or []:
        _collect_bodies(part, bodies)


def _extract_links(html: str) -> list[Link]:
    soup = BeautifulSoup(html, "html.parser")
    links = []
    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        if href.startswith(("http://", "https://")):
            links.append(Link(text=a.get_text(" ", strip=True), href=href))
    return links


def build_analysis_request(message: dict) -> EmailAnalysisRequest:
    """Extract sender, subject, body text and links from a Gmail API message."""
    payload = message.get("payload", {})
    headers = {h["name"].lower(): h["value"] for h in payload.get("headers", [])}
    name, email = _parse_from_header(headers.get("from", ""))

    bodies: dict[str, list[str]] = {}
    _collect_bodies(payload, bodies)
    html = "\n".join(bodies.get("text/html", []))

    if bodies.get("text/plain"):
        body_text = "\n".join(bodies["text/plain"])
    elif html:
        body_text = BeautifulSoup(html, "html.parser").get_text("\n", strip=True)
    else:
        body_text = message.get("snippet", "")

    return EmailAnalysisRequest(
        display_name=name,
        sender_email=email.lower(),
        subject=headers.get("subject", ""),
        body_text=body_text,
        links=_extract_links(html) if html else [],
        message_id=message.get("id"),
    )


async def fetch_analysis_request(service, message_id: str) -> EmailAnalysisRequest:
    message = await asyncio.to_thread(fetch_full_message, service, message_id)
    return build_analysis_request(message)


class GmailHeaderFetcher:
    """HeaderFetcher that reads the raw message source through the Gmail API."""

    def __init__(self, service) -> None:
        self.service = service

    async def fetch(self, message_id: str) -> str:
        return await asyncio.to_thread(fetch_raw_message, self.service, message_id)
