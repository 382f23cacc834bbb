"""Data models for Gmail Sender Trust."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum


class LogoSource(str, Enum):
    """Where the sender's visual identity came from."""

    BIMI = "bimi"
    FAVICON = "favicon"
    UNKNOWN = "unknown"


class Verdict(str, Enum):
    """Tiered trust verdict for an open message."""

    TRUSTED = "trusted"
    CAUTION = "caution"
    DANGEROUS = "dangerous"


class AiVerdict(str, Enum):
    """Verdict produced by the language-model assessment."""

    OK = "Ok"
    CAUTION = "Caution"
    REJECT = "Reject"


class HeaderStatus(str, Enum):
    OK = "ok"
    NO_RESULT = "no_result"
    ERROR = "error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class FaviconCandidate:
    """A favicon slot with a favicon-service URL and a direct /favicon.ico fallback."""

    domain: str
    service_url: str
    direct_url: str


@dataclass(frozen=True)
class LogoCandidate:
    url: str
    source: LogoSource


@dataclass(frozen=True)
class SenderInfo:
    """Brand identity resolved for a sender domain."""

    full_domain: str
    root_domain: str
    logo_url: str | None
    logo_source: LogoSource
    favicon_candidates: list[LogoCandidate] = field(default_factory=list)
    favicons: dict[str, FaviconCandidate] = field(default_factory=dict)  # sub / root / www
    favicon_root_is_generic: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["logo_source"] = self.logo_source.value
        data["favicon_candidates"] = [
            {"url": c.url, "source": c.source.value} for c in self.favicon_candidates
        ]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> SenderInfo:
        return cls(
            full_domain=data["full_domain"],
            root_domain=data["root_domain"],
            logo_url=data.get("logo_url"),
            logo_source=LogoSource(data["logo_source"]),
            favicon_candidates=[
                LogoCandidate(url=c["url"], source=LogoSource(c["source"]))
                for c in data.get("favicon_candidates", [])
            ],
            favicons={
                slot: FaviconCandidate(**fav) for slot, fav in data.get("favicons", {}).items()
            },
            favicon_root_is_generic=bool(data.get("favicon_root_is_generic", False)),
        )


@dataclass
class AuthResult:
    """Parsed delivery-authentication outcomes for one message."""

    spf: str | None = None
    dkim: str | None = None
    dmarc: str | None = None
    original_sender: str | None = None  # X-Original-Sender when it differs from the envelope

    def is_empty(self) -> bool:
        return not (self.spf or self.dkim or self.dmarc or self.original_sender)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class MessageLocatorResult:
    id: str
    source: str  # which strategy produced the id, diagnostics only


@dataclass
class HeaderCheck:
    """Outcome of fetching and parsing the headers of one message."""

    status: HeaderStatus
    auth: AuthResult | None = None
    error: str | None = None
    raw_lines: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "auth": self.auth.to_dict() if self.auth else None,
            "error": self.error,
            "raw_lines": self.raw_lines,
        }


@dataclass(frozen=True)
class Link:
    text: str
    href: str


@dataclass
class EmailAnalysisRequest:
    """Message fields handed to the AI engine. Every field is untrusted."""

    display_name: str
    sender_email: str
    subject: str
    body_text: str = ""
    links: list[Link] = field(default_factory=list)
    message_id: str | None = None
    auth: AuthResult | None = None


@dataclass
class AiResult:
    verdict: AiVerdict | None
    summary: str = ""
    reasons: list[str] = field(default_factory=list)
    parse_error: str | None = None
    debug: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "verdict": self.verdict.value if self.verdict else None,
            "summary": self.summary,
            "reasons": list(self.reasons),
            "parse_error": self.parse_error,
            "debug": dict(self.debug),
        }


@dataclass(frozen=True)
class AiAvailability:
    available: bool
    has_api: bool
    status: str | None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AiUnavailable:
    unavailable: bool = True

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AiTimeout:
    timeout: bool = True

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ErrorResponse:
    error: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TrustReport:
    """Final header-based verification of an open message."""

    sender: SenderInfo
    header_check: HeaderCheck
    verdict: Verdict
    locator: MessageLocatorResult | None = None
    failures: list[str] = field(default_factory=list)
    # Brand identity of X-Original-Sender for relayed messages; the verdict ignores it
    original_sender_info: SenderInfo | None = None

    def to_dict(self) -> dict:
        return {
            "sender": self.sender.to_dict(),
            "header_check": self.header_check.to_dict(),
            "verdict": self.verdict.value,
            "locator": asdict(self.locator) if self.locator else None,
            "failures": list(self.failures),
            "original_sender_info": (
                self.original_sender_info.to_dict() if self.original_sender_info else None
            ),
        }
