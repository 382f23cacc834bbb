"""Trust verdict from authentication results and logo provenance."""

from .models import AuthResult, LogoSource, Verdict

_CHECK_LABELS = [("spf", "SPF"), ("dkim", "DKIM"), ("dmarc", "DMARC")]


def classify(auth: AuthResult | None, logo_source: LogoSource) -> Verdict:
    """Classify a message.

    All three checks passing is trusted, capped at caution when no brand
    identity could be found. A DMARC or DKIM failure, or an SPF failure
    without a passing DKIM signature, is dangerous. Everything else is caution.
    """
    if auth is None:
        return Verdict.CAUTION

    if auth.spf == "pass" and auth.dkim == "pass" and auth.dmarc == "pass":
        if logo_source == LogoSource.UNKNOWN:
            return Verdict.CAUTION
        return Verdict.TRUSTED

    if auth.dmarc == "fail" or auth.dkim == "fail":
        return Verdict.DANGEROUS
    if auth.spf == "fail" and auth.dkim != "pass":
        return Verdict.DANGEROUS
    return Verdict.CAUTION


def auth_failures(auth: AuthResult | None) -> list[str]:
    """Return badge labels such as "SPF: softfail" for every non-pass, non-none check."""
    if auth is None:
        return []
    failures = []
    for key, label in _CHECK_LABELS:
        value = getattr(auth, key)
        if value and value not in ("pass", "none"):
            failures.append(f"{label}: {value}")
    return failures
