"""Locate the message identifier of the open email from a rendered-view snapshot."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag

from .models import MessageLocatorResult

_DECIMAL_ID_RE = re.compile(r"(\d{10,})")
_HEX_ID_RE = re.compile(r"^[0-9a-f]{10,}$", re.IGNORECASE)
_HASH_ID_RE = re.compile(r"[/#]([A-Za-z0-9_-]{10,})$")

SENDER_SELECTOR = ".gD[email]"


def _from_message_id_attr(el: Tag, source: str) -> MessageLocatorResult | None:
    # Values look like "#msg-f:1234567890123" (decimal) or are already hex
    value = el.get("data-message-id")
    if not value:
        return None
    m = _DECIMAL_ID_RE.search(value)
    if m:
        return MessageLocatorResult(id=format(int(m.group(1)), "x"), source=source)
    if _HEX_ID_RE.match(value):
        return MessageLocatorResult(id=value, source=f"{source}-hex")
    return None


def _by_legacy_attr(soup: BeautifulSoup) -> MessageLocatorResult | None:
    el = soup.find(attrs={"data-legacy-message-id": True})
    if el is not None and el.get("data-legacy-message-id"):
        return MessageLocatorResult(id=el["data-legacy-message-id"], source="legacy")
    return None


def _by_sender_ancestors(soup: BeautifulSoup) -> MessageLocatorResult | None:
    sender = soup.select_one(SENDER_SELECTOR)
    if sender is None:
        return None
    el: Tag | None = sender
    while el is not None and el.name not in ("body", "[document]"):
        result = _from_message_id_attr(el, "data-msg-id")
        if result:
            return result
        el = el.parent
    return None


def _by_broad_search(soup: BeautifulSoup) -> MessageLocatorResult | None:
    for el in soup.find_all(attrs={"data-message-id": True}):
        result = _from_message_id_attr(el, "data-msg-id-broad")
        if result:
            return result
    return None


def _by_url_fragment(url: str | None) -> MessageLocatorResult | None:
    if not url:
        return None
    fragment = urlsplit(url).fragment
    if not fragment:
        return None
    m = _HASH_ID_RE.search("#" + fragment)
    if m:
        return MessageLocatorResult(id=m.group(1), source="hash")
    return None


def locate_message_id(html: str, url: str | None = None) -> MessageLocatorResult | None:
    """Return the message id of the open email and the strategy that found it.

    Strategies, first success wins:
      1. a hex ``data-legacy-message-id`` anywhere in the view
      2. ``data-message-id`` on an ancestor of the sender element
      3. any ``data-message-id`` in the document
      4. the URL fragment (a thread id, last resort)

    None means the message cannot be verified; it is not an error.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    for strategy in (_by_legacy_attr, _by_sender_ancestors, _by_broad_search):
        result = strategy(soup)
        if result:
            return result
    return _by_url_fragment(url)


def sender_from_view(html: str) -> str | None:
    """Return the sender address of the open email, if the view shows one."""
    soup = BeautifulSoup(html or "", "html.parser")
    el = soup.select_one(SENDER_SELECTOR)
    if el is None:
        return None
    email = el.get("email", "")
    if email and "@" in email:
        return email.strip().lower()
    return None
