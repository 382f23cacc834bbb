"""Rich-based display functions for Gmail Sender Trust."""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .models import (
    AiAvailability,
    AiResult,
    AiVerdict,
    HeaderStatus,
    LogoSource,
    SenderInfo,
    TrustReport,
    Verdict,
)

console = Console()

_VERDICT_LABELS = {
    Verdict.TRUSTED: "Trusted",
    Verdict.CAUTION: "Use Caution",
    Verdict.DANGEROUS: "Not Trusted",
}

_SOURCE_LABELS = {
    LogoSource.BIMI: "BIMI verified",
    LogoSource.FAVICON: "favicon",
    LogoSource.UNKNOWN: "unknown",
}


def _verdict_color(verdict: Verdict) -> str:
    if verdict == Verdict.TRUSTED:
        return "green"
    if verdict == Verdict.DANGEROUS:
        return "red"
    return "yellow"


def _ai_color(verdict: AiVerdict | None) -> str:
    if verdict == AiVerdict.OK:
        return "green"
    if verdict == AiVerdict.REJECT:
        return "red"
    if verdict == AiVerdict.CAUTION:
        return "yellow"
    return "dim"


def _result_color(value: str | None) -> str:
    if value == "pass":
        return "green"
    if value in ("fail", "softfail"):
        return "red"
    return "dim"


def display_sender_info(info: SenderInfo, title: str = "Sender") -> None:
    """Display the brand identity resolved for a sender."""
    domain = escape(info.full_domain)
    if info.root_domain != info.full_domain:
        domain += f" [dim]({escape(info.root_domain)})[/dim]"

    lines = [
        f"[bold]Domain:[/bold] {domain}",
        f"[bold]Logo source:[/bold] {_SOURCE_LABELS[info.logo_source]}",
    ]
    if info.logo_url:
        lines.append(f"[bold]BIMI logo:[/bold] {escape(info.logo_url)}")
    if info.favicon_root_is_generic:
        lines.append("[yellow]Root favicon is the generic placeholder[/yellow]")

    console.print(Panel("\n".join(lines), title=title))

    table = Table(title="Favicons")
    table.add_column("Slot")
    table.add_column("Domain")
    table.add_column("Service URL", overflow="fold")
    table.add_column("Direct URL", overflow="fold")
    for slot in ("sub", "root", "www"):
        fav = info.favicons.get(slot)
        if fav:
            table.add_row(slot, escape(fav.domain), escape(fav.service_url), escape(fav.direct_url))
    console.print(table)


def display_trust_report(report: TrustReport) -> None:
    """Display the security checks and the final verdict for a message."""
    check = report.header_check
    table = Table(title="Security")
    table.add_column("Check")
    table.add_column("Result")

    auth = check.auth
    for key, label in (("spf", "SPF"), ("dkim", "DKIM"), ("dmarc", "DMARC")):
        value = getattr(auth, key) if auth else None
        color = _result_color(value)
        table.add_row(label, f"[{color}]{value or 'n/a'}[/{color}]")
    bimi = "pass" if report.sender.logo_source == LogoSource.BIMI else "none"
    table.add_row("BIMI", f"[{_result_color(bimi)}]{bimi}[/{_result_color(bimi)}]")
    console.print(table)

    if check.status in (HeaderStatus.ERROR, HeaderStatus.TIMEOUT):
        console.print(f"[yellow]Unable to check ({escape(check.error or '')})[/yellow]")
    elif check.status == HeaderStatus.NO_RESULT:
        console.print("[dim]No auth results found[/dim]")
    if auth and auth.original_sender:
        console.print(f"[bold]Relayed for:[/bold] {escape(auth.original_sender)}")
    if report.locator:
        console.print(f"[dim]Message {escape(report.locator.id)} (via {report.locator.source})[/dim]")

    color = _verdict_color(report.verdict)
    body = f"[bold {color}]{_VERDICT_LABELS[report.verdict]}[/bold {color}]"
    if report.failures:
        body += "\n" + escape(", ".join(report.failures))
    console.print(Panel(body, title=escape(report.sender.full_domain)))

    if report.original_sender_info is not None:
        via = escape(report.sender.full_domain)
        display_sender_info(report.original_sender_info, title=f"Original sender (via {via})")


def display_ai_result(result: AiResult) -> None:
    """Display an AI assessment."""
    color = _ai_color(result.verdict)
    label = result.verdict.value if result.verdict else "Inconclusive"

    lines = [f"[bold {color}]{label}[/bold {color}]"]
    if result.summary:
        lines.append(escape(result.summary))
    for reason in result.reasons:
        lines.append(f"  - {escape(reason)}")
    if result.parse_error:
        lines.append(f"[dim]{escape(result.parse_error)}[/dim]")
    if result.debug.get("error"):
        lines.append(f"[dim]Error: {escape(str(result.debug['error']))}[/dim]")
    if result.debug.get("cached"):
        lines.append("[dim](cached)[/dim]")
    elif "duration_ms" in result.debug:
        lines.append(f"[dim]{result.debug['duration_ms']} ms[/dim]")

    console.print(Panel("\n".join(lines), title="AI Assessment"))


def display_ai_status(status: AiAvailability) -> None:
    if status.available:
        console.print(f"[green]Language model available[/green] [dim]({escape(str(status.status))})[/dim]")
    elif status.has_api:
        console.print(f"[yellow]Language model unavailable[/yellow] [dim]({escape(str(status.status))})[/dim]")
    else:
        console.print("[dim]No language model configured.[/dim]")
