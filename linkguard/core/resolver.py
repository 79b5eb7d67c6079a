"""
Short-link expansion.

RedirectResolver.resolve() discovers the destination of a short-linked URL by
trying independent expansion methods strictly in order, each with its own
timeout, and stops at the first result that leaves the input's short-link
family. Ordinary URLs are returned untouched without any network I/O.

Failures of individual methods are recorded and never abort the resolution:
when nothing works the normalized input comes back with expanded=False.
"""

import re
import time
import logging
from dataclasses import asdict, dataclass, field
from html import unescape
from typing import Dict, List, Optional
from urllib.parse import quote, urljoin, urlparse, urlunparse

import requests

from linkguard.core.errors import ExpansionError
from linkguard.core.heuristics import extract_domain, normalize_url
from linkguard.core.short_links import ShortLinkRegistry

logger = logging.getLogger(__name__)

USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)

BROWSER_HEADERS = {
    'User-Agent': USER_AGENT,
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
    'Upgrade-Insecure-Requests': '1',
    'Cache-Control': 'max-age=0',
    'Sec-Fetch-Dest': 'document',
    'Sec-Fetch-Mode': 'navigate',
    'Sec-Fetch-Site': 'none',
    'Sec-Fetch-User': '?1',
}

# Meta refresh in either attribute order, then script-driven navigation
HTML_REDIRECT_PATTERNS = [
    re.compile(
        r'<meta[^>]*http-equiv\s*=\s*["\']?refresh["\']?[^>]*'
        r'content\s*=\s*["\']?[^"\'>]*?url\s*=\s*["\']?([^"\'>\s]+)',
        re.IGNORECASE,
    ),
    re.compile(
        r'<meta[^>]*content\s*=\s*["\']?[^"\'>]*?url\s*=\s*["\']?([^"\'>\s]+)["\']?[^>]*'
        r'http-equiv\s*=\s*["\']?refresh',
        re.IGNORECASE,
    ),
    re.compile(r'window\.location\.href\s*=\s*["\']([^"\']+)["\']', re.IGNORECASE),
    re.compile(r'(?:window|document)\.location\s*=\s*["\']([^"\']+)["\']', re.IGNORECASE),
    re.compile(r'location\.replace\s*\(\s*["\']([^"\']+)["\']', re.IGNORECASE),
    re.compile(r'location\.assign\s*\(\s*["\']([^"\']+)["\']', re.IGNORECASE),
]


@dataclass
class ExpansionAttempt:
    method: str
    result_url: Optional[str] = None
    error: Optional[str] = None
    elapsed: float = 0.0

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class ResolvedURL:
    original_url: str
    normalized_url: str
    resolved_url: str
    expanded: bool = False
    method: Optional[str] = None
    attempts: List[ExpansionAttempt] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'original_url': self.original_url,
            'normalized_url': self.normalized_url,
            'resolved_url': self.resolved_url,
            'expanded': self.expanded,
            'method': self.method,
            'attempts': [a.to_dict() for a in self.attempts],
        }


def redirect_location(response, base_url: str) -> Optional[str]:
    """Absolute Location target of a 3xx response, else None"""
    if 300 <= response.status_code < 400:
        location = response.headers.get('Location')
        if location:
            return urljoin(base_url, location.strip())
    return None


def find_html_redirect(html: str, base_url: str) -> Optional[str]:
    """Extract a meta-refresh or script redirect target from an HTML body"""
    if not html:
        return None
    for pattern in HTML_REDIRECT_PATTERNS:
        match = pattern.search(html)
        if match:
            target = unescape(match.group(1).strip().strip('\'"'))
            if target:
                return urljoin(base_url, target)
    return None


# ===== Generic expansion methods =====

class ExpansionMethod:
    """One way of asking where a short link points"""

    name = "base"
    timeout = 10.0

    def expand(self, session: requests.Session, url: str) -> Optional[str]:
        raise NotImplementedError


class DirectFetchMethod(ExpansionMethod):
    name = "direct_fetch"
    timeout = 10.0

    def expand(self, session, url):
        response = session.get(url, allow_redirects=False, timeout=self.timeout, headers=BROWSER_HEADERS)
        location = redirect_location(response, url)
        if location:
            return location
        return find_html_redirect(response.text or '', url)


class HeadRequestMethod(ExpansionMethod):
    name = "head_request"
    timeout = 10.0

    def expand(self, session, url):
        response = session.head(
            url,
            allow_redirects=False,
            timeout=self.timeout,
            headers={'User-Agent': USER_AGENT, 'Accept': '*/*'},
        )
        return redirect_location(response, url)


class StreamingGetMethod(ExpansionMethod):
    name = "streaming_get"
    timeout = 15.0
    max_bytes = 512 * 1024

    def expand(self, session, url):
        response = session.get(
            url,
            allow_redirects=False,
            stream=True,
            timeout=self.timeout,
            headers={'User-Agent': USER_AGENT, 'Accept': 'text/html'},
        )
        try:
            # headers arrive before the body; no need to read it on a redirect
            location = redirect_location(response, url)
            if location:
                return location

            body = bytearray()
            for chunk in response.iter_content(chunk_size=8192):
                if not chunk:
                    continue
                body.extend(chunk)
                if len(body) >= self.max_bytes:
                    break
            return find_html_redirect(body.decode('utf-8', errors='replace'), url)
        finally:
            response.close()


class UnshortenServiceMethod(ExpansionMethod):
    name = "unshorten_service"
    timeout = 5.0
    service_urls = [
        'https://unshorten.me/json/{url}',
        'https://api.unshorten.io/?shortURL={url}',
        'https://unshort.link/{url}',
    ]
    destination_fields = ('resolved_url', 'destination', 'resolvedURL')

    def expand(self, session, url):
        encoded = quote(url, safe='')
        for template in self.service_urls:
            api_url = template.format(url=encoded)
            try:
                response = session.get(
                    api_url,
                    timeout=self.timeout,
                    headers={'User-Agent': USER_AGENT, 'Accept': 'application/json'},
                )
                if response.status_code != 200:
                    logger.debug(f"Unshorten service {api_url} returned {response.status_code}")
                    continue
                data = response.json()
            except (requests.RequestException, ValueError) as e:
                logger.debug(f"Unshorten service {api_url} failed: {e}")
                continue

            if not isinstance(data, dict):
                continue
            for key in self.destination_fields:
                destination = data.get(key)
                if isinstance(destination, str) and destination.strip():
                    return destination.strip()

        raise ExpansionError("All unshorten services failed")


class ManualChaseMethod(ExpansionMethod):
    name = "manual_chase"
    timeout = 5.0
    max_hops = 5

    def expand(self, session, url):
        current = url
        for _ in range(self.max_hops):
            response = session.get(
                current,
                allow_redirects=False,
                timeout=self.timeout,
                headers={'User-Agent': USER_AGENT},
            )
            location = redirect_location(response, current)
            if not location:
                break
            current = location
        return current


# ===== Provider-specific fallbacks =====

class ServiceFallback(ExpansionMethod):
    """Scrape a provider's preview/info page for the destination anchor"""

    provider = ""
    timeout = 8.0
    patterns: List[re.Pattern] = []

    def page_url(self, url: str) -> str:
        raise NotImplementedError

    def expand(self, session, url):
        response = session.get(self.page_url(url), timeout=self.timeout, headers=BROWSER_HEADERS)
        response.raise_for_status()
        html = response.text or ''

        for pattern in self.patterns:
            match = pattern.search(html)
            if not match:
                continue
            destination = unescape(match.group(1).strip())
            if destination and self.provider not in destination.lower():
                return destination

        raise ExpansionError(f"Could not find destination in {self.provider} page")


class TinyURLPreviewFallback(ServiceFallback):
    name = "tinyurl_preview"
    provider = "tinyurl.com"
    patterns = [
        re.compile(r'<a[^>]*href=["\']([^"\']+)["\'][^>]*>.*?redirected.*?</a>', re.IGNORECASE),
        re.compile(r'<div[^>]*class=["\']?indent["\']?[^>]*>.*?<a[^>]*href=["\']([^"\']+)["\']', re.IGNORECASE | re.DOTALL),
        re.compile(r'The actual URL is.*?<a[^>]*href=["\']([^"\']+)["\']', re.IGNORECASE | re.DOTALL),
        re.compile(r'destination.*?<a[^>]*href=["\']([^"\']+)["\']', re.IGNORECASE | re.DOTALL),
    ]

    def page_url(self, url):
        parsed = urlparse(url)
        return urlunparse(parsed._replace(netloc='preview.tinyurl.com'))


class BitlyInfoFallback(ServiceFallback):
    name = "bitly_info"
    provider = "bit.ly"
    patterns = [
        re.compile(r'<div[^>]*id=["\']?redirect-url["\']?[^>]*>.*?<a[^>]*href=["\']([^"\']+)["\']', re.IGNORECASE | re.DOTALL),
        re.compile(r'<a[^>]*href=["\']([^"\']+)["\'][^>]*>.*?redirected.*?</a>', re.IGNORECASE),
        re.compile(r'The actual URL is.*?<a[^>]*href=["\']([^"\']+)["\']', re.IGNORECASE | re.DOTALL),
    ]

    def page_url(self, url):
        parsed = urlparse(url)
        return urlunparse(parsed._replace(path=parsed.path.rstrip('/') + '+', query='', fragment=''))


def default_methods() -> List[ExpansionMethod]:
    return [
        DirectFetchMethod(),
        HeadRequestMethod(),
        StreamingGetMethod(),
        UnshortenServiceMethod(),
        ManualChaseMethod(),
    ]


def default_fallbacks() -> List[ServiceFallback]:
    return [TinyURLPreviewFallback(), BitlyInfoFallback()]


class RedirectResolver:
    def __init__(self,
                 registry: Optional[ShortLinkRegistry] = None,
                 session: Optional[requests.Session] = None,
                 methods: Optional[List[ExpansionMethod]] = None,
                 fallbacks: Optional[List[ServiceFallback]] = None):
        """
        Args:
            registry: Known short-link services
            session: HTTP session shared by all methods
            methods: Generic expansion methods, tried in order
            fallbacks: Provider-specific methods, tried only for their provider
        """
        self.registry = registry or ShortLinkRegistry()
        if session is None:
            session = requests.Session()
            session.headers.update({'User-Agent': USER_AGENT})
        self.session = session
        self.methods = list(methods) if methods is not None else default_methods()
        self.fallbacks = list(fallbacks) if fallbacks is not None else default_fallbacks()

    def resolve(self, url: str) -> ResolvedURL:
        """
        Find the final destination of a short link.

        Raises:
            InvalidURLError: the input cannot be parsed as an http(s) URL
        """
        normalized = normalize_url(url)
        result = ResolvedURL(original_url=url, normalized_url=normalized, resolved_url=normalized)

        family = self.registry.family_of(extract_domain(normalized))
        if family is None:
            return result

        logger.info(f"🔗 Expanding {normalized} ({family})")

        for method in self.methods:
            destination = self._attempt(method, normalized, result.attempts)
            if self._accept(normalized, destination):
                return self._expanded(result, destination, method.name)

        for fallback in self.fallbacks:
            if fallback.provider != family:
                continue
            destination = self._attempt(fallback, normalized, result.attempts)
            if self._accept(normalized, destination):
                return self._expanded(result, destination, fallback.name)

        logger.warning(f"⚠️ Could not expand {normalized} after {len(result.attempts)} attempts")
        return result

    def _attempt(self, method: ExpansionMethod, url: str, attempts: List[ExpansionAttempt]) -> Optional[str]:
        attempt = ExpansionAttempt(method=method.name)
        start = time.monotonic()
        try:
            attempt.result_url = method.expand(self.session, url)
        except (requests.RequestException, ExpansionError, ValueError) as e:
            attempt.error = str(e) or e.__class__.__name__
            logger.info(f"Method {method.name} failed for {url}: {attempt.error}")
        finally:
            attempt.elapsed = round(time.monotonic() - start, 3)
            attempts.append(attempt)
        return attempt.result_url

    def _accept(self, url: str, destination: Optional[str]) -> bool:
        if not destination or destination == url:
            return False
        if urlparse(destination).scheme.lower() not in ('http', 'https'):
            return False
        if self.registry.same_family(url, destination):
            logger.info(f"↪ {destination} is still a {self.registry.family_of(extract_domain(url))} link, continuing")
            return False
        return True

    def _expanded(self, result: ResolvedURL, destination: str, method_name: str) -> ResolvedURL:
        logger.info(f"✓ Expanded with {method_name}: {result.normalized_url} → {destination}")
        result.resolved_url = destination
        result.expanded = True
        result.method = method_name
        return result
