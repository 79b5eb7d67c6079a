"""
Local, synchronous URL heuristics.

Every check here is a pure predicate over a URL or domain string and never
touches the network:
    - normalize_url / extract_domain: input handling shared by the pipeline
    - detect_typosquatting: lookalike / throwaway-domain patterns
    - check_https: secure scheme present
    - is_ip_based: host is an IP literal
"""

import re
from typing import Optional
from urllib.parse import urlparse
import logging

import tldextract

from linkguard.core.errors import InvalidURLError

logger = logging.getLogger(__name__)

DEFAULT_SCHEME = "https://"
ALLOWED_SCHEMES = {"http", "https"}
SCHEME_PREFIX = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*:')
HOST_PORT = re.compile(r'^[^:/]+:\d+([/?#]|$)')

# Offline extractor: bundled public-suffix snapshot, no cache writes
_tld_extract = tldextract.TLDExtract(suffix_list_urls=(), cache_dir=None)

SUSPICIOUS_TLDS = {"ru", "cn", "ml", "tk", "gq", "cf", "xyz"}

TYPOSQUAT_PATTERNS = [
    re.compile(r'\d+[a-z]+', re.IGNORECASE),                     # digits glued to letters
    re.compile(r'--'),                                           # double hyphen
    re.compile(r'(paypa1|faceb00k|amaz0n|g00gle)', re.IGNORECASE),  # known lookalikes
    re.compile(r'^xn--', re.IGNORECASE),                         # punycode
    re.compile(r'(secure|login|verify|update)-', re.IGNORECASE),
    re.compile(r'-(security|verify|auth)$', re.IGNORECASE),
    re.compile(r'([a-z])\1{2,}', re.IGNORECASE),                 # repeated letters
]

# Cyrillic / Greek characters that render like Latin ones
HOMOGLYPH_PATTERN = re.compile(r'[а-яєіїѵӏοѕ]', re.IGNORECASE)

IPV4_PATTERN = re.compile(
    r'^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}'
    r'(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$'
)


def normalize_url(url: str) -> str:
    """
    Validate a raw URL candidate and make sure it carries a scheme.

    Args:
        url: Raw user input

    Returns:
        The URL with ``https://`` prefixed when no scheme was given

    Raises:
        InvalidURLError: empty input, embedded whitespace, non-http(s)
            scheme, or no network location
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidURLError("URL is required")

    candidate = url.strip()
    if re.search(r'\s', candidate):
        raise InvalidURLError(f"Invalid URL format: {candidate!r}")

    if not re.match(r'^[a-zA-Z][a-zA-Z0-9+.-]*://', candidate):
        # "host:port" is a bare host; any other "word:" prefix is a scheme
        if SCHEME_PREFIX.match(candidate) and not HOST_PORT.match(candidate):
            raise InvalidURLError("URL must start with http:// or https://")
        candidate = DEFAULT_SCHEME + candidate

    try:
        parsed = urlparse(candidate)
    except ValueError as e:
        raise InvalidURLError(f"Invalid URL format: {e}") from e

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidURLError("URL must start with http:// or https://")
    if not parsed.netloc:
        raise InvalidURLError(f"Invalid URL format: {candidate!r}")

    return candidate


def extract_domain(url: str) -> Optional[str]:
    """Return the lowercase hostname of a URL, or None if there is none"""
    try:
        hostname = urlparse(url).hostname
    except (ValueError, AttributeError):
        return None
    return hostname or None


def detect_typosquatting(domain: Optional[str]) -> bool:
    """Flag domains matching lookalike, punycode or throwaway-TLD patterns"""
    if not domain:
        return False

    if HOMOGLYPH_PATTERN.search(domain):
        return True

    suffix = _tld_extract(domain).suffix
    if suffix and suffix.rsplit('.', 1)[-1].lower() in SUSPICIOUS_TLDS:
        return True

    # "www" would otherwise trip the repeated-letter rule on every site
    host = domain[4:] if domain.lower().startswith("www.") else domain
    return any(pattern.search(host) for pattern in TYPOSQUAT_PATTERNS)


def check_https(url: str) -> bool:
    return url.strip().lower().startswith("https://")


def is_ip_based(url: str) -> bool:
    """True when the URL host is an IPv4 or IPv6 literal"""
    host = extract_domain(url)
    if not host:
        return False
    if IPV4_PATTERN.match(host):
        return True
    # urlparse strips the brackets of IPv6 literals
    return ':' in host
