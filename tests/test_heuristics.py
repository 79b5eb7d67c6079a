import pytest

from linkguard.core.blacklist import BlacklistProvider
from linkguard.core.errors import InvalidURLError
from linkguard.core.heuristics import (
    check_https,
    detect_typosquatting,
    extract_domain,
    is_ip_based,
    normalize_url,
)
from linkguard.core.short_links import ShortLinkRegistry


@pytest.mark.parametrize("raw, expected", [
    ("example.com", "https://example.com"),
    ("  example.com/path  ", "https://example.com/path"),
    ("http://example.com", "http://example.com"),
    ("HTTPS://Example.com/a?b=1", "HTTPS://Example.com/a?b=1"),
    ("localhost:8080/admin", "https://localhost:8080/admin"),
    ("example.com:443", "https://example.com:443"),
])
def test_normalize_url_adds_secure_scheme(raw, expected):
    assert normalize_url(raw) == expected


@pytest.mark.parametrize("raw", [
    "", "   ", None, "exa mple.com", "ftp://example.com/file", "https://",
    "javascript:alert(1)", "mailto:victim@example.com", "data:text/html,hi", "http:example.com",
])
def test_normalize_url_rejects_invalid_input(raw):
    with pytest.raises(InvalidURLError):
        normalize_url(raw)


def test_extract_domain_lowercases_and_handles_missing_host():
    assert extract_domain("https://WWW.Example.COM/login") == "www.example.com"
    assert extract_domain("not-a-url") is None
    assert extract_domain("") is None


@pytest.mark.parametrize("domain", [
    "paypa1.com",
    "secure-login.example.com",
    "account-verify",
    "xn--pple-43d.com",
    "my--bank.com",
    "free-prizes.tk",
    "update.example.xyz",
    "раypal.com",
])
def test_detect_typosquatting_flags_lookalikes(domain):
    assert detect_typosquatting(domain) is True


@pytest.mark.parametrize("domain", ["example.com", "www.google.com", "github.com", None, ""])
def test_detect_typosquatting_ignores_ordinary_domains(domain):
    assert detect_typosquatting(domain) is False


def test_check_https():
    assert check_https("https://example.com")
    assert not check_https("http://example.com")


@pytest.mark.parametrize("url, expected", [
    ("http://192.168.1.10/login", True),
    ("https://[2001:db8::1]/", True),
    ("https://example.com", False),
    ("http://999.1.1.1", False),
])
def test_is_ip_based(url, expected):
    assert is_ip_based(url) is expected


# ===== Short-link registry =====

def test_registry_matches_suffix_not_substring():
    registry = ShortLinkRegistry()
    assert registry.family_of("bit.ly") == "bit.ly"
    assert registry.family_of("WWW.Bit.Ly") == "bit.ly"
    assert registry.is_short_link("t.co")
    assert not registry.is_short_link("microsoft.com")
    assert not registry.is_short_link(None)


def test_registry_same_family():
    registry = ShortLinkRegistry(["shortsvc.io", "other.link"])
    assert registry.same_family("https://shortsvc.io/abc", "https://shortsvc.io/xyz")
    assert not registry.same_family("https://shortsvc.io/abc", "https://other.link/xyz")
    assert not registry.same_family("https://example.com/a", "https://example.com/b")


# ===== Blacklist =====

def test_blacklist_exact_and_substring_match():
    blacklist = BlacklistProvider(domains=["Evil.com", "phish-kit/login", "# comment", "", 42])
    assert len(blacklist) == 2
    assert blacklist.contains("https://evil.com/", "evil.com")
    assert blacklist.contains("https://cdn.example.com/phish-kit/login.php", "cdn.example.com")
    assert not blacklist.contains("https://example.com/", "example.com")


def test_blacklist_missing_file_is_empty(tmp_path):
    blacklist = BlacklistProvider(tmp_path / "missing.json")
    assert len(blacklist) == 0
    assert not blacklist.contains("https://evil.com", "evil.com")


def test_blacklist_corrupt_file_is_empty(tmp_path):
    path = tmp_path / "intel_db.json"
    path.write_text("{not json", encoding="utf-8")
    assert len(BlacklistProvider(path)) == 0


def test_blacklist_loads_bad_domains_key(tmp_path):
    path = tmp_path / "intel_db.json"
    path.write_text('{"bad_domains": ["evil.com", "bad.net"]}', encoding="utf-8")
    blacklist = BlacklistProvider(path)
    assert blacklist.entries == ["evil.com", "bad.net"]
    assert blacklist.contains("http://bad.net/x", "bad.net")
