"""Tests for the verdict engine."""

import pytest

from sender_trust.models import AuthResult, LogoSource, Verdict
from sender_trust.verdict import auth_failures, classify


def test_all_pass_with_bimi_is_trusted(all_pass_auth):
    assert classify(all_pass_auth, LogoSource.BIMI) == Verdict.TRUSTED


def test_all_pass_with_favicon_is_trusted(all_pass_auth):
    assert classify(all_pass_auth, LogoSource.FAVICON) == Verdict.TRUSTED


def test_all_pass_with_unknown_logo_is_capped(all_pass_auth):
    assert classify(all_pass_auth, LogoSource.UNKNOWN) == Verdict.CAUTION


def test_no_auth_is_caution():
    assert classify(None, LogoSource.BIMI) == Verdict.CAUTION


@pytest.mark.parametrize("source", list(LogoSource))
def test_dkim_fail_is_dangerous(source):
    assert classify(AuthResult(spf="pass", dkim="fail", dmarc="pass"), source) == Verdict.DANGEROUS


def test_dmarc_fail_is_dangerous():
    assert classify(AuthResult(spf="pass", dkim="pass", dmarc="fail"), LogoSource.BIMI) == Verdict.DANGEROUS


def test_spf_fail_without_dkim_is_dangerous():
    assert classify(AuthResult(spf="fail", dkim="none"), LogoSource.FAVICON) == Verdict.DANGEROUS
    assert classify(AuthResult(spf="fail"), LogoSource.FAVICON) == Verdict.DANGEROUS


def test_spf_fail_with_dkim_pass_is_caution():
    assert classify(AuthResult(spf="fail", dkim="pass", dmarc="pass"), LogoSource.BIMI) == Verdict.CAUTION


def test_softfail_alone_is_caution():
    assert classify(AuthResult(spf="softfail"), LogoSource.FAVICON) == Verdict.CAUTION


@pytest.mark.parametrize("dmarc", ["none", "temperror", "permerror", "bestguesspass", None])
def test_partial_pass_is_caution(dmarc):
    assert classify(AuthResult(spf="pass", dkim="pass", dmarc=dmarc), LogoSource.BIMI) == Verdict.CAUTION


def test_auth_failures_lists_non_pass_values():
    auth = AuthResult(spf="softfail", dkim="pass", dmarc="none")
    assert auth_failures(auth) == ["SPF: softfail"]


def test_auth_failures_empty():
    assert auth_failures(None) == []
    assert auth_failures(AuthResult(spf="pass", dkim="pass", dmarc="pass")) == []
