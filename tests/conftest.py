"""Shared fixtures and test doubles."""

from __future__ import annotations

import asyncio

import pytest

from sender_trust.brand import favicon_candidate
from sender_trust.errors import ModelSessionError
from sender_trust.models import (
    AuthResult,
    EmailAnalysisRequest,
    LogoCandidate,
    LogoSource,
    SenderInfo,
)


def make_sender_info(domain: str = "stripe.com", source: LogoSource = LogoSource.BIMI) -> SenderInfo:
    logo_url = "https://stripe.com/logo.svg" if source == LogoSource.BIMI else None
    chain = []
    if logo_url:
        chain.append(LogoCandidate(url=logo_url, source=LogoSource.BIMI))
    chain.append(LogoCandidate(url=f"https://{domain}/favicon.ico", source=LogoSource.FAVICON))
    return SenderInfo(
        full_domain=domain,
        root_domain=domain,
        logo_url=logo_url,
        logo_source=source,
        favicon_candidates=chain,
        favicons={
            "sub": favicon_candidate(domain),
            "root": favicon_candidate(domain),
            "www": favicon_candidate(f"www.{domain}"),
        },
        favicon_root_is_generic=source == LogoSource.UNKNOWN,
    )


class FakeResolver:
    """BrandResolver stand-in that counts lookups and can be held open."""

    def __init__(self, source: LogoSource = LogoSource.BIMI) -> None:
        self.source = source
        self.calls: list[str] = []
        self.release = asyncio.Event()
        self.release.set()
        self.closed = False

    async def resolve(self, full_domain: str) -> SenderInfo:
        self.calls.append(full_domain)
        await self.release.wait()
        return make_sender_info(full_domain, self.source)

    async def aclose(self) -> None:
        self.closed = True


class FakeFetcher:
    def __init__(self, text: str = "", error: Exception | None = None, delay: float = 0.0) -> None:
        self.text = text
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def fetch(self, message_id: str) -> str:
        self.calls.append(message_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.text


class FakeSession:
    def __init__(self, model: FakeLanguageModel, is_clone: bool = False) -> None:
        self.model = model
        self.is_clone = is_clone
        self.destroyed = False
        self.prompts: list[str] = []

    async def clone(self) -> FakeSession:
        if self.destroyed:
            raise ModelSessionError("Session has been destroyed")
        clone = FakeSession(self.model, is_clone=True)
        self.model.clones.append(clone)
        return clone

    async def prompt(self, text: str) -> str:
        self.prompts.append(text)
        self.model.prompt_count += 1
        if self.model.delay:
            await asyncio.sleep(self.model.delay)
        if self.model.failures:
            raise self.model.failures.pop(0)
        return self.model.response

    def destroy(self) -> None:
        self.destroyed = True


class FakeLanguageModel:
    """LanguageModel double with scripted responses and failures."""

    def __init__(
        self,
        response: str = '{"verdict":"Ok","summary":"Looks fine","reasons":["Domain matches"]}',
        status: str | None = "available",
        failures: list[Exception] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.response = response
        self.status = status
        self.failures = list(failures or [])
        self.delay = delay
        self.sessions: list[FakeSession] = []
        self.clones: list[FakeSession] = []
        self.system_prompts: list[str] = []
        self.availability_calls = 0
        self.prompt_count = 0

    async def availability(self) -> str | None:
        self.availability_calls += 1
        return self.status

    async def create(self, system_prompt: str) -> FakeSession:
        self.system_prompts.append(system_prompt)
        session = FakeSession(self)
        self.sessions.append(session)
        return session

    async def aclose(self) -> None:
        pass


@pytest.fixture
def all_pass_auth() -> AuthResult:
    return AuthResult(spf="pass", dkim="pass", dmarc="pass")


@pytest.fixture
def phishing_request() -> EmailAnalysisRequest:
    return EmailAnalysisRequest(
        display_name="PayPal Support",
        sender_email="security@paypa1-alerts.com",
        subject="Your account has been suspended",
        body_text="Verify your identity within 24 hours or your account will be closed.",
        message_id="18c2f0a1b2c3d4e5",
    )


@pytest.fixture
def raw_headers_all_pass() -> str:
    return (
        "Delivered-To: me@gmail.com\r\n"
        "Authentication-Results: mx.google.com;\r\n"
        "       dkim=pass header.i=@stripe.com header.s=s1 header.b=abc;\r\n"
        "       spf=pass (google.com: domain of bounce@stripe.com designates 1.2.3.4) "
        "smtp.mailfrom=bounce@stripe.com;\r\n"
        "       dmarc=pass (p=REJECT sp=REJECT dis=NONE) header.from=stripe.com\r\n"
        "From: Stripe <receipts@stripe.com>\r\n"
        "Subject: Your receipt\r\n"
        "\r\n"
        "Body text with spf=fail that must not be read.\r\n"
    )
