"""Tests for the rich display functions."""

from conftest import make_sender_info
from sender_trust import display
from sender_trust.models import (
    AiResult,
    AiVerdict,
    AuthResult,
    HeaderCheck,
    HeaderStatus,
    LogoSource,
    TrustReport,
    Verdict,
)


def test_ai_result_with_bracketed_text():
    """Model output is printed literally, never parsed as markup."""
    result = AiResult(
        verdict=AiVerdict.REJECT,
        summary="Fake [bold]login[/bold] page",
        reasons=["Link text [/login] points elsewhere"],
        parse_error="no verdict found: [/x]",
        debug={"error": "[red]boom"},
    )
    with display.console.capture() as capture:
        display.display_ai_result(result)
    output = capture.get()

    assert "Link text [/login] points elsewhere" in output
    assert "Fake [bold]login[/bold] page" in output
    assert "[red]boom" in output


def test_trust_report_with_bracketed_header_values():
    report = TrustReport(
        sender=make_sender_info("stripe.com", LogoSource.BIMI),
        header_check=HeaderCheck(
            status=HeaderStatus.ERROR,
            auth=AuthResult(spf="softfail", original_sender="[/owner]@lists.example"),
            error="fetch [/failed]",
        ),
        verdict=Verdict.CAUTION,
        failures=["SPF: softfail"],
    )
    with display.console.capture() as capture:
        display.display_trust_report(report)
    output = capture.get()

    assert "[/owner]@lists.example" in output
    assert "fetch [/failed]" in output


def test_trust_report_shows_original_sender():
    report = TrustReport(
        sender=make_sender_info("groups.example", LogoSource.UNKNOWN),
        header_check=HeaderCheck(
            status=HeaderStatus.OK,
            auth=AuthResult(spf="pass", dkim="pass", dmarc="pass", original_sender="news@brand.example"),
        ),
        verdict=Verdict.CAUTION,
        original_sender_info=make_sender_info("brand.example", LogoSource.BIMI),
    )
    with display.console.capture() as capture:
        display.display_trust_report(report)
    output = capture.get()

    assert "Original sender (via groups.example)" in output
    assert "brand.example" in output
