"""Tests for the CLI module."""

from click.testing import CliRunner

from sender_trust.cli import cli


def test_cli_help():
    """CLI --help should work and show commands."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "sender-info" in result.output
    assert "verify" in result.output
    assert "locate" in result.output
    assert "analyze" in result.output
    assert "auth" in result.output
    assert "cache" in result.output


def test_cli_version():
    """CLI --version should show version."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_verify_no_credentials(tmp_path, monkeypatch):
    """Verify without credentials should show clear error."""
    import sender_trust.auth as auth_module

    monkeypatch.setattr(auth_module, "CREDENTIALS_PATH", tmp_path / "nonexistent.json")
    monkeypatch.setattr(auth_module, "TOKEN_PATH", tmp_path / "token.json")
    monkeypatch.setattr(auth_module, "CONFIG_DIR", tmp_path)

    runner = CliRunner()
    result = runner.invoke(cli, ["verify", "18c2f0a1b2c3d4e5", "--sender", "a@stripe.com"])
    assert result.exit_code != 0
    assert "Credentials file not found" in result.output


def test_auth_no_credentials(tmp_path, monkeypatch):
    import sender_trust.auth as auth_module

    monkeypatch.setattr(auth_module, "CREDENTIALS_PATH", tmp_path / "nonexistent.json")
    monkeypatch.setattr(auth_module, "TOKEN_PATH", tmp_path / "token.json")
    monkeypatch.setattr(auth_module, "CONFIG_DIR", tmp_path)

    result = CliRunner().invoke(cli, ["auth"])
    assert result.exit_code != 0
    assert "Credentials file not found" in result.output


def test_sender_info_invalid_email(tmp_path, monkeypatch):
    """An address without a domain is rejected before any lookup."""
    import sender_trust.constants as constants

    monkeypatch.setattr(constants, "CACHE_DB_PATH", tmp_path / "cache.db")

    result = CliRunner().invoke(cli, ["sender-info", "not-an-address"])
    assert result.exit_code != 0
    assert "Invalid email" in result.output


def test_locate(tmp_path):
    page = tmp_path / "view.html"
    page.write_text(
        '<html><body><div data-message-id="#msg-f:4294967296">'
        '<span class="gD" email="a@stripe.com">Stripe</span></div></body></html>'
    )

    result = CliRunner().invoke(cli, ["locate", str(page)])
    assert result.exit_code == 0
    assert "100000000" in result.output
    assert "data-msg-id" in result.output


def test_locate_not_found(tmp_path):
    page = tmp_path / "view.html"
    page.write_text("<html><body><p>Inbox</p></body></html>")

    result = CliRunner().invoke(cli, ["locate", str(page)])
    assert result.exit_code != 0
    assert "Unable to find message ID" in result.output


def test_locate_url_fallback(tmp_path):
    page = tmp_path / "view.html"
    page.write_text("<html><body></body></html>")

    result = CliRunner().invoke(
        cli,
        ["locate", str(page), "--url", "https://mail.google.com/mail/u/0/#inbox/FMfcgzQXJWBvKcLkqTnwRnMVpkDhZrjK"],
    )
    assert result.exit_code == 0
    assert "FMfcgzQXJWBvKcLkqTnwRnMVpkDhZrjK" in result.output


def test_cache_info_empty(tmp_path, monkeypatch):
    """Cache info on empty cache should not crash."""
    import sender_trust.constants as constants

    monkeypatch.setattr(constants, "CACHE_DB_PATH", tmp_path / "cache.db")

    runner = CliRunner()
    result = runner.invoke(cli, ["cache", "info"])
    assert result.exit_code == 0
    assert "Cache is empty" in result.output


def test_cache_info_with_entries(tmp_path, monkeypatch):
    import sender_trust.constants as constants
    from conftest import make_sender_info
    from sender_trust.cache import SenderCache

    monkeypatch.setattr(constants, "CACHE_DB_PATH", tmp_path / "cache.db")
    with SenderCache() as cache:
        cache.set("a@stripe.com", make_sender_info())

    result = CliRunner().invoke(cli, ["cache", "info"])
    assert result.exit_code == 0
    assert "Senders:" in result.output
    assert "1" in result.output


def test_cache_clear(tmp_path, monkeypatch):
    """Cache clear should work."""
    import sender_trust.constants as constants

    monkeypatch.setattr(constants, "CACHE_DB_PATH", tmp_path / "cache.db")

    runner = CliRunner()
    result = runner.invoke(cli, ["cache", "clear"])
    assert result.exit_code == 0
    assert "cleared" in result.output.lower()
