"""Gift URL validation tests."""

import pytest

from services.url_validator import sanitize_url, validate_url


@pytest.mark.parametrize("url", [
    "",
    None,
    "https://www.fnac.com/a123456/livre",
    "http://shop.example-store.fr/item",
    "https://www.amazon.fr/dp/B000TEST01",
])
def test_valid_urls(url):
    assert validate_url(url) == (True, None)


@pytest.mark.parametrize("url, reason", [
    ("ftp://files.fnac.com/x", "URL must use http or https scheme"),
    ("https://", "URL must have a valid host"),
    ("https://www.example.com/gift", "example/fake domains are not allowed"),
    ("https://shop.gourmetcheese.com/brie", "example/fake domains are not allowed"),
    ("https://www.amazon.fr/dp/B07X9Y2ZYX", "fake Amazon product ID detected: B07X9Y2ZYX"),
    ("https://www.amazon.com/dp/B07ZAAAAAA", "suspicious Amazon product ID pattern detected"),
])
def test_rejected_urls(url, reason):
    assert validate_url(url) == (False, reason)


def test_sanitize_url():
    assert sanitize_url("  www.Fnac.COM/Livre ") == "https://www.fnac.com/Livre"
    assert sanitize_url("http://Shop.fr") == "http://shop.fr"
    assert sanitize_url("") == ""
    assert sanitize_url(None) == ""
