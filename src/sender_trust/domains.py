"""Sender address and domain normalization."""

from __future__ import annotations

from .constants import MULTI_PART_TLDS
from .errors import InvalidSenderError


def root_domain(domain: str) -> str:
    """Return the registrable (root) domain for a full domain.

      "mail.example.co.uk"    -> "example.co.uk"
      "newsletter.stripe.com" -> "stripe.com"
    """
    domain = domain.lower()
    parts = domain.split(".")
    if len(parts) <= 2:
        return domain

    if ".".join(parts[-2:]) in MULTI_PART_TLDS:
        return ".".join(parts[-3:])
    return ".".join(parts[-2:])


def parse_sender_address(email: str | None) -> tuple[str, str]:
    """Normalize a sender address and return (address, domain).

    Raises InvalidSenderError when there is no usable domain part.
    """
    address = (email or "").strip().lower()
    if "@" not in address:
        raise InvalidSenderError("Invalid email")
    domain = address.split("@")[1]
    if not domain:
        raise InvalidSenderError("Invalid email")
    return address, domain
