"""
URL checks for user-entered and generated gift links.
"""
from typing import Optional, Tuple
from urllib.parse import urlparse, urlunparse

FAKE_DOMAINS = (
    "example.com",
    "example.org",
    "example.net",
    "test.com",
    "fake.com",
    "dummy.com",
    "gourmetcheese.com",
    "winekit.com",
    "gourmetsalt.com",
    "oliveoilset.com",
    "chocolatier.com",
    "gourmetspices.com",
)

# Product IDs language models tend to invent
FAKE_AMAZON_ASINS = (
    "B07X9Y2ZYX",
    "B07XZ46W4F",
    "B07XZXK84W",
    "B07KK5XKZX",
)

SUSPICIOUS_ASIN_PATTERNS = ("/dp/B07X", "/dp/B07Z")


def validate_url(url: Optional[str]) -> Tuple[bool, Optional[str]]:
    """
    Check a URL's shape and reject known placeholder links.

    Args:
        url: URL to check; empty means "no link" and is accepted

    Returns:
        (is_valid, reason) where reason is None for valid URLs
    """
    if not url:
        return True, None

    try:
        parsed = urlparse(url)
    except ValueError as e:
        return False, f"invalid URL format: {e}"

    if parsed.scheme not in ("http", "https"):
        return False, "URL must use http or https scheme"
    if not parsed.netloc:
        return False, "URL must have a valid host"

    host = parsed.netloc.lower()
    for domain in FAKE_DOMAINS:
        if domain in host:
            return False, "example/fake domains are not allowed"

    if "amazon." in host:
        for asin in FAKE_AMAZON_ASINS:
            if asin in url:
                return False, f"fake Amazon product ID detected: {asin}"
        if any(pattern in url for pattern in SUSPICIOUS_ASIN_PATTERNS):
            return False, "suspicious Amazon product ID pattern detected"

    return True, None


def sanitize_url(url: Optional[str]) -> str:
    """Trim, default the scheme to https and normalize."""
    url = (url or "").strip()
    if not url:
        return ""

    if not url.startswith("http://") and not url.startswith("https://"):
        url = "https://" + url

    try:
        parsed = urlparse(url)
    except ValueError:
        return url
    return urlunparse(parsed._replace(netloc=parsed.netloc.lower()))
