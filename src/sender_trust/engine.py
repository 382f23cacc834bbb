"""Request dispatch for the sender trust engine.

The UI side sends one of a closed set of request types and gets a typed
response back:

  GetSenderInfo     -> SenderInfo | ErrorResponse
  CheckAiAvailable  -> AiAvailability
  AnalyzeEmail      -> AiResult | AiUnavailable | AiTimeout | ErrorResponse
  VerifyMessage     -> TrustReport | ErrorResponse
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Union

from .ai_engine import AiScoringEngine
from .brand import BrandResolver
from .cache import PendingRequests, SenderCache
from .constants import VERSION
from .domains import parse_sender_address
from .errors import InvalidSenderError
from .headers import HeaderVerifier
from .locator import locate_message_id
from .models import (
    AiAvailability,
    AiResult,
    AiTimeout,
    AiUnavailable,
    EmailAnalysisRequest,
    ErrorResponse,
    HeaderCheck,
    HeaderStatus,
    MessageLocatorResult,
    SenderInfo,
    TrustReport,
)
from .verdict import auth_failures, classify

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GetSenderInfo:
    email: str


@dataclass(frozen=True)
class CheckAiAvailable:
    pass


@dataclass(frozen=True)
class AnalyzeEmail:
    data: EmailAnalysisRequest | None
    skip_cache: bool = False


@dataclass(frozen=True)
class VerifyMessage:
    """Header verification for the open message.

    Either pass ``message_id`` directly or a rendered-view snapshot
    (``page_html`` and optionally ``page_url``) to locate it.
    """

    email: str
    message_id: str | None = None
    page_html: str | None = None
    page_url: str | None = None


Request = Union[GetSenderInfo, CheckAiAvailable, AnalyzeEmail, VerifyMessage]
Response = Union[
    SenderInfo,
    AiAvailability,
    AiResult,
    AiUnavailable,
    AiTimeout,
    TrustReport,
    ErrorResponse,
]


class TrustEngine:
    """Background engine combining brand, authentication and AI signals."""

    def __init__(
        self,
        sender_cache: SenderCache,
        resolver: BrandResolver,
        ai: AiScoringEngine,
        header_verifier: HeaderVerifier | None = None,
    ) -> None:
        self.sender_cache = sender_cache
        self.resolver = resolver
        self.ai = ai
        self.header_verifier = header_verifier
        self._pending: PendingRequests[SenderInfo] = PendingRequests()

    # --- lifecycle ---

    def ensure_installed(self, version: str = VERSION) -> bool:
        """Run the install/update reset when the stored version differs.

        Returns True when a reset happened.
        """
        installed = self.sender_cache.installed_version()
        if installed == version:
            return False
        logger.info("Install or update detected (%s -> %s), clearing state", installed, version)
        self.reset()
        self.sender_cache.mark_installed(version)
        return True

    def reset(self) -> None:
        """Drop every cache and the language-model session."""
        self.sender_cache.clear()
        self.ai.reset()
        if self.header_verifier is not None:
            self.header_verifier.clear()

    async def aclose(self) -> None:
        await self.resolver.aclose()
        self.sender_cache.close()

    # --- dispatch ---

    async def handle(self, request: Request) -> Response:
        if isinstance(request, GetSenderInfo):
            return await self.get_sender_info(request.email)
        if isinstance(request, CheckAiAvailable):
            return await self.ai.availability_report()
        if isinstance(request, AnalyzeEmail):
            return await self.analyze_email(request.data, request.skip_cache)
        if isinstance(request, VerifyMessage):
            return await self.verify_message(request)
        raise TypeError(f"Unhandled request type: {type(request).__name__}")

    # --- operations ---

    async def _lookup_sender(self, address: str, domain: str) -> SenderInfo:
        cached = self.sender_cache.get(address)
        if cached is not None:
            return cached
        info = await self.resolver.resolve(domain)
        self.sender_cache.set(address, info)
        return info

    async def get_sender_info(self, email: str) -> SenderInfo | ErrorResponse:
        try:
            address, domain = parse_sender_address(email)
        except InvalidSenderError as exc:
            return ErrorResponse(error=str(exc))
        return await self._pending.run(address, lambda: self._lookup_sender(address, domain))

    async def analyze_email(
        self, data: EmailAnalysisRequest | None, skip_cache: bool = False
    ) -> AiResult | AiUnavailable | AiTimeout | ErrorResponse:
        if data is None or not data.sender_email:
            return ErrorResponse(error="Missing email data")
        return await self.ai.analyze(data, skip_cache=skip_cache)

    async def _check_headers(
        self, located: MessageLocatorResult | None, envelope_sender: str
    ) -> HeaderCheck:
        if located is None:
            return HeaderCheck(status=HeaderStatus.ERROR, error="Unable to find message ID")
        if self.header_verifier is None:
            return HeaderCheck(status=HeaderStatus.ERROR, error="No header fetcher configured")
        return await self.header_verifier.check(located.id, envelope_sender)

    async def verify_message(self, request: VerifyMessage) -> TrustReport | ErrorResponse:
        try:
            address, _domain = parse_sender_address(request.email)
        except InvalidSenderError as exc:
            return ErrorResponse(error=str(exc))

        if request.message_id:
            located = MessageLocatorResult(id=request.message_id, source="explicit")
        elif request.page_html is not None or request.page_url:
            located = locate_message_id(request.page_html or "", request.page_url)
        else:
            located = None

        # Both signals complete before the verdict is computed in one step
        sender, header_check = await asyncio.gather(
            self.get_sender_info(address),
            self._check_headers(located, address),
        )
        if isinstance(sender, ErrorResponse):
            return sender

        return TrustReport(
            sender=sender,
            header_check=header_check,
            verdict=classify(header_check.auth, sender.logo_source),
            locator=located,
            failures=auth_failures(header_check.auth),
            original_sender_info=await self._original_sender_info(header_check, address),
        )

    async def _original_sender_info(
        self, header_check: HeaderCheck, envelope_sender: str
    ) -> SenderInfo | None:
        """Resolve the relaying group's original sender, when it differs from the envelope."""
        original = header_check.auth.original_sender if header_check.auth else None
        if not original or original == envelope_sender:
            return None
        info = await self.get_sender_info(original)
        if isinstance(info, ErrorResponse):
            return None
        return info
