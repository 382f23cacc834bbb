"""Brand identity resolution: BIMI logos, favicons, and generic-icon detection."""

from __future__ import annotations

import asyncio
import logging
import re
from urllib.parse import quote

import httpx

from .constants import (
    BRAND_HTTP_TIMEOUT,
    DOH_URL,
    FAVICON_PROBE_URL,
    FAVICON_SERVICE_URL,
    GENERIC_FAVICON_REFERENCE_DOMAIN,
)
from .domains import root_domain
from .models import FaviconCandidate, LogoCandidate, LogoSource, SenderInfo

logger = logging.getLogger(__name__)

_BIMI_LOGO_RE = re.compile(r"l=(\S+)", re.IGNORECASE)


def favicon_service_url(domain: str) -> str:
    return FAVICON_SERVICE_URL.format(domain=quote(domain, safe=""))


def favicon_probe_url(domain: str) -> str:
    return FAVICON_PROBE_URL.format(domain=quote(domain, safe=""))


def direct_favicon_url(domain: str) -> str:
    return f"https://{domain}/favicon.ico"


def favicon_candidate(domain: str) -> FaviconCandidate:
    return FaviconCandidate(
        domain=domain,
        service_url=favicon_service_url(domain),
        direct_url=direct_favicon_url(domain),
    )


def parse_bimi_record(txt: str) -> str | None:
    """Return the SVG logo URL from a BIMI TXT record, or None.

    Only ``v=BIMI1`` records are considered and the ``l=`` tag must point to
    an ``.svg`` file.
    """
    txt = txt.replace('"', "")
    if not txt.startswith("v=BIMI1"):
        return None
    m = _BIMI_LOGO_RE.search(txt)
    if not m:
        return None
    logo_url = m.group(1).rstrip(";")
    if logo_url.endswith(".svg"):
        return logo_url
    return None


class BrandResolver:
    """Resolves a visual identity source for a sender domain.

    Chain: BIMI on the full domain, BIMI on the root domain, then the root
    favicon (unless the favicon service only has its generic placeholder).
    Network failures never escape; each failed step just yields no result.
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=BRAND_HTTP_TIMEOUT)
        self._generic_reference: bytes | None = None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def lookup_bimi(self, domain: str) -> str | None:
        """Look up the BIMI TXT record for a domain via DNS-over-HTTPS."""
        params = {"name": f"default._bimi.{domain}", "type": "TXT"}
        try:
            resp = await self._client.get(DOH_URL, params=params)
            if resp.status_code != 200:
                return None
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("BIMI lookup failed for %s: %s", domain, exc)
            return None

        for answer in data.get("Answer") or []:
            logo_url = parse_bimi_record(str(answer.get("data") or ""))
            if logo_url:
                return logo_url
        return None

    async def _fetch_favicon_bytes(self, domain: str) -> bytes | None:
        try:
            resp = await self._client.get(favicon_probe_url(domain))
        except httpx.HTTPError as exc:
            logger.debug("Favicon probe failed for %s: %s", domain, exc)
            return None
        if resp.status_code != 200:
            return None
        return resp.content

    async def _generic_reference_bytes(self) -> bytes | None:
        # Memoized for the lifetime of the resolver; failures are retried next time
        if self._generic_reference is None:
            self._generic_reference = await self._fetch_favicon_bytes(
                GENERIC_FAVICON_REFERENCE_DOMAIN
            )
        return self._generic_reference

    async def is_generic_favicon(self, domain: str) -> bool:
        """True when the favicon service returns its placeholder icon for ``domain``.

        The service answers 200 even for unknown domains, so the only signal is
        a byte-for-byte match against the icon served for a domain that cannot
        exist.
        """
        reference, actual = await asyncio.gather(
            self._generic_reference_bytes(),
            self._fetch_favicon_bytes(domain),
        )
        if not reference or actual is None:
            return False
        return reference == actual

    async def resolve(self, full_domain: str) -> SenderInfo:
        """Resolve brand identity for ``full_domain``."""
        full_domain = full_domain.lower()
        root = root_domain(full_domain)
        www = f"www.{root}"

        logo_url = await self.lookup_bimi(full_domain)
        if not logo_url and root != full_domain:
            logo_url = await self.lookup_bimi(root)

        favicons = {
            "sub": favicon_candidate(full_domain),
            "root": favicon_candidate(root),
            "www": favicon_candidate(www),
        }

        root_is_generic = False
        if logo_url:
            source = LogoSource.BIMI
        else:
            root_is_generic = await self.is_generic_favicon(root)
            source = LogoSource.UNKNOWN if root_is_generic else LogoSource.FAVICON

        chain: list[LogoCandidate] = []
        if logo_url:
            chain.append(LogoCandidate(url=logo_url, source=LogoSource.BIMI))
        if not root_is_generic:
            chain.append(LogoCandidate(url=favicons["root"].service_url, source=LogoSource.FAVICON))
        chain.append(LogoCandidate(url=favicons["root"].direct_url, source=LogoSource.FAVICON))

        logger.debug("Resolved %s: source=%s logo=%s", full_domain, source.value, logo_url)

        return SenderInfo(
            full_domain=full_domain,
            root_domain=root,
            logo_url=logo_url,
            logo_source=source,
            favicon_candidates=chain,
            favicons=favicons,
            favicon_root_is_generic=root_is_generic,
        )
