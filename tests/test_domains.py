"""Tests for the domain normalizer."""

import pytest

from sender_trust.domains import parse_sender_address, root_domain
from sender_trust.errors import InvalidSenderError


def test_two_labels_unchanged():
    assert root_domain("stripe.com") == "stripe.com"
    assert root_domain("localhost") == "localhost"


def test_subdomain_stripped():
    assert root_domain("newsletter.stripe.com") == "stripe.com"
    assert root_domain("a.b.c.example.org") == "example.org"


def test_multi_part_tld():
    assert root_domain("mail.example.co.uk") == "example.co.uk"
    assert root_domain("shop.example.com.au") == "example.com.au"
    assert root_domain("deep.mail.example.co.jp") == "example.co.jp"


def test_multi_part_tld_without_subdomain():
    assert root_domain("example.co.uk") == "example.co.uk"
    assert root_domain("co.uk") == "co.uk"


def test_lowercased():
    assert root_domain("Mail.Example.COM") == "example.com"


def test_parse_sender_address():
    assert parse_sender_address("  Receipts@Stripe.com ") == ("receipts@stripe.com", "stripe.com")


@pytest.mark.parametrize("email", ["", None, "not-an-email", "user@"])
def test_parse_sender_address_invalid(email):
    with pytest.raises(InvalidSenderError):
        parse_sender_address(email)
