"""CLI entry point for Gmail Sender Trust."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import click
from rich.logging import RichHandler

from . import constants
from .ai_engine import AiScoringEngine
from .auth import check_auth, get_gmail_service
from .brand import BrandResolver
from .cache import SenderCache
from .display import (
    console,
    display_ai_result,
    display_ai_status,
    display_sender_info,
    display_trust_report,
)
from .engine import AnalyzeEmail, CheckAiAvailable, GetSenderInfo, TrustEngine, VerifyMessage
from .gmail_client import GmailHeaderFetcher, fetch_analysis_request
from .headers import HeaderVerifier
from .llm import OllamaLanguageModel
from .locator import locate_message_id
from .models import AiResult, AiTimeout, AiUnavailable, ErrorResponse


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _gmail_service():
    try:
        return get_gmail_service()
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e


def _build_engine(obj: dict, service=None) -> TrustEngine:
    model = OllamaLanguageModel(base_url=obj.get("ollama_url"), model_name=obj.get("model"))
    engine = TrustEngine(
        sender_cache=SenderCache(),
        resolver=BrandResolver(),
        ai=AiScoringEngine(model),
        header_verifier=HeaderVerifier(GmailHeaderFetcher(service)) if service else None,
    )
    engine.ensure_installed()
    return engine


def _run(engine: TrustEngine, coro):
    async def runner():
        try:
            return await coro
        finally:
            await engine.aclose()
            await engine.ai.model.aclose()

    return asyncio.run(runner())


def _print_json(response) -> None:
    console.print_json(json.dumps(response.to_dict()))


@click.group()
@click.version_option(version=constants.VERSION, prog_name="sender-trust")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
@click.option("--ollama-url", default=None, help="Ollama server URL (default from SENDER_TRUST_OLLAMA_URL).")
@click.option("--model", default=None, help="Ollama model name (default from SENDER_TRUST_OLLAMA_MODEL).")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, ollama_url: str | None, model: str | None) -> None:
    """Gmail Sender Trust - brand, authentication and AI trust signals for email."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj.update({"ollama_url": ollama_url, "model": model})


@cli.command(name="sender-info")
@click.argument("email")
@click.option("--json", "as_json", is_flag=True, help="Print the raw response as JSON.")
@click.pass_obj
def sender_info(obj: dict, email: str, as_json: bool) -> None:
    """Resolve BIMI logo and favicons for a sender address."""
    engine = _build_engine(obj)
    response = _run(engine, engine.handle(GetSenderInfo(email=email)))

    if isinstance(response, ErrorResponse):
        raise click.ClickException(response.error)
    if as_json:
        _print_json(response)
    else:
        display_sender_info(response)


@cli.command()
@click.argument("message_id")
@click.option("-s", "--sender", required=True, help="Envelope sender address of the message.")
@click.option("--json", "as_json", is_flag=True, help="Print the raw response as JSON.")
@click.pass_obj
def verify(obj: dict, message_id: str, sender: str, as_json: bool) -> None:
    """Check SPF/DKIM/DMARC and brand identity for a Gmail message."""
    engine = _build_engine(obj, service=_gmail_service())
    response = _run(engine, engine.handle(VerifyMessage(email=sender, message_id=message_id)))

    if isinstance(response, ErrorResponse):
        raise click.ClickException(response.error)
    if as_json:
        _print_json(response)
    else:
        display_trust_report(response)


@cli.command()
@click.argument("html_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--url", default=None, help="Page URL, used for the fragment fallback.")
def locate(html_file: Path, url: str | None) -> None:
    """Find the message id in a saved Gmail page."""
    result = locate_message_id(html_file.read_text(errors="replace"), url)
    if result is None:
        raise click.ClickException("Unable to find message ID")
    console.print(f"{result.id} [dim](via {result.source})[/dim]")


@cli.command(name="ai-status")
@click.pass_obj
def ai_status(obj: dict) -> None:
    """Show whether the local language model can be used."""
    engine = _build_engine(obj)
    display_ai_status(_run(engine, engine.handle(CheckAiAvailable())))


@cli.command()
@click.argument("message_id")
@click.option("--no-cache", is_flag=True, help="Force a fresh analysis.")
@click.option("--json", "as_json", is_flag=True, help="Print the raw response as JSON.")
@click.pass_obj
def analyze(obj: dict, message_id: str, no_cache: bool, as_json: bool) -> None:
    """Ask the local language model to assess a Gmail message."""
    service = _gmail_service()
    engine = _build_engine(obj, service=service)

    async def run():
        data = await fetch_analysis_request(service, message_id)
        check = await engine.header_verifier.check(message_id, data.sender_email)
        data.auth = check.auth
        return await engine.handle(AnalyzeEmail(data=data, skip_cache=no_cache))

    response = _run(engine, run())

    if isinstance(response, ErrorResponse):
        raise click.ClickException(response.error)
    if isinstance(response, AiUnavailable):
        console.print("[dim]AI analysis is not available on this machine.[/dim]")
        return
    if isinstance(response, AiTimeout):
        raise click.ClickException("AI analysis timed out")
    if as_json:
        _print_json(response)
    elif isinstance(response, AiResult):
        display_ai_result(response)


@cli.command()
def auth() -> None:
    """Test Gmail authentication."""
    try:
        address = check_auth()
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e
    if address is None:
        raise click.ClickException("Authentication failed")
    console.print(f"Authenticated as {address}")


@cli.group(name="cache")
def cache_group() -> None:
    """Manage the sender cache."""


@cache_group.command(name="info")
def cache_info() -> None:
    """Show cache statistics."""
    with SenderCache() as cache:
        info = cache.get_info()

    if info["sender_count"] == 0:
        console.print("[dim]Cache is empty.[/dim]")
        return

    console.print(f"[bold]Database size:[/bold] {info['db_file_size'] / 1024:.1f} KB")
    console.print(f"[bold]Senders:[/bold] {info['sender_count']}")
    console.print(f"[bold]Expired:[/bold] {info['expired_count']}")


@cache_group.command(name="clear")
def cache_clear() -> None:
    """Clear the sender cache."""
    with SenderCache() as cache:
        cache.clear()
    console.print("[green]Cache cleared.[/green]")
