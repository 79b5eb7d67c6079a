import time
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import requests

logger = logging.getLogger(__name__)

USER_AGENT = 'LinkGuard/1.0'


@dataclass(frozen=True)
class SignalResult:
    """Normalized output of one signal source"""
    source: str
    score: Optional[float] = None
    error: bool = False
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            'source': self.source,
            'score': self.score,
            'error': self.error,
            'message': self.message,
            'details': dict(self.details),
        }


class SignalSource:
    """
    Base adapter for an external oracle.

    Subclasses implement _query(); check() turns every failure into an
    error SignalResult so nothing propagates to the engine.
    """

    name = "source"

    def __init__(self, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        # Optimization: Reuse TCP connections for all API calls
        self.http_session = session or requests.Session()
        self.http_session.headers.update({'User-Agent': USER_AGENT})

    @property
    def deadline(self) -> float:
        """Wall-clock budget for one check(), enforced by the engine"""
        return self.timeout

    def check(self, url: str, domain: Optional[str]) -> SignalResult:
        try:
            return self._query(url, domain)
        except requests.Timeout:
            logger.warning(f"⚠️ {self.name} request timeout")
            return self.failure("request timed out")
        except requests.RequestException as e:
            logger.error(f"❌ {self.name} request error: {e}")
            return self.failure(f"request error: {e}")
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"❌ {self.name} returned an unexpected payload: {e}")
            return self.failure(f"unexpected response: {e}")

    def _query(self, url: str, domain: Optional[str]) -> SignalResult:
        raise NotImplementedError

    def failure(self, message: str) -> SignalResult:
        return SignalResult(source=self.name, score=None, error=True, message=message)

    def _status_failure(self, response) -> SignalResult:
        if response.status_code == 429:
            logger.warning(f"⚠️ {self.name} rate limit exceeded")
            return self.failure("rate limited")
        if response.status_code in (401, 403):
            logger.error(f"❌ {self.name} authentication failed (invalid API key)")
            return self.failure("authentication failed")
        logger.warning(f"⚠️ {self.name} returned status code: {response.status_code}")
        return self.failure(f"HTTP {response.status_code}")


class PhiSharkSource(SignalSource):
    """Primary reputation oracle: malicious probability for a URL"""

    name = "PhiShark"

    def __init__(self, api_url: str, timeout: float = 10.0, private_mode: bool = False,
                 session: Optional[requests.Session] = None):
        super().__init__(timeout=timeout, session=session)
        self.api_url = api_url
        self.private_mode = private_mode

    def _query(self, url, domain):
        response = self.http_session.post(
            self.api_url,
            json={'url': url, 'private_mode': self.private_mode},
            timeout=self.timeout,
        )
        if response.status_code != 200:
            return self._status_failure(response)

        data = response.json() or {}
        if data.get('malicious_probability') is None:
            logger.warning(f"⚠️ {self.name} response has no malicious_probability")
            return self.failure("missing malicious_probability")
        return SignalResult(source=self.name, score=float(data['malicious_probability']))


class URLertSource(SignalSource):
    """
    Secondary oracle with an asynchronous scan API.

    Submits a scan job, then polls its status every poll_interval seconds for
    at most max_polls attempts, all inside a polling window capped at
    MAX_POLL_WINDOW seconds. When either bound is hit the best-known partial
    result is returned instead of waiting for completion.
    """

    name = "URLert"
    MAX_POLL_WINDOW = 20.0

    def __init__(self, api_url: str, api_key: Optional[str], timeout: float = 5.0,
                 poll_interval: float = 2.0, max_polls: int = 10,
                 session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        super().__init__(timeout=timeout, session=session)
        self.api_url = api_url.rstrip('/')
        self.api_key = api_key
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self._sleep = sleep
        self._clock = clock

    @property
    def poll_window(self) -> float:
        return min(self.poll_interval * self.max_polls + self.timeout, self.MAX_POLL_WINDOW)

    @property
    def deadline(self) -> float:
        # submit request + polling window
        return self.timeout + self.poll_window

    @staticmethod
    def score_payload(payload: Dict) -> float:
        if payload.get('is_phishing'):
            return 1.0
        if payload.get('suspicious'):
            return 0.7
        return 0.0

    def _query(self, url, domain):
        if not self.api_key:
            return self.failure("API key not configured")

        headers = {'Authorization': f'Bearer {self.api_key}'}
        response = self.http_session.post(self.api_url, json={'url': url}, headers=headers, timeout=self.timeout)
        if response.status_code not in (200, 201, 202):
            return self._status_failure(response)

        scan_id = response.json()['scan_id']
        status = 'pending'
        payload: Dict = {}
        attempts = 0
        started = self._clock()

        while status == 'pending' and attempts < self.max_polls:
            if self._clock() - started + self.poll_interval >= self.poll_window:
                break
            self._sleep(self.poll_interval)
            attempts += 1

            remaining = self.poll_window - (self._clock() - started)
            poll = self.http_session.get(
                f"{self.api_url}/{scan_id}",
                headers=headers,
                timeout=max(0.1, min(self.timeout, remaining)),
            )
            if poll.status_code != 200:
                return self._status_failure(poll)

            payload = poll.json() or {}
            status = payload.get('status', 'pending')

        completed = status == 'completed'
        if not completed:
            logger.warning(f"⚠️ URLert scan {scan_id} still '{status}' after {attempts} polls, using partial result")

        return SignalResult(
            source=self.name,
            score=self.score_payload(payload),
            details={'scan_id': scan_id, 'status': status, 'completed': completed, 'attempts': attempts},
        )


class WhoisFreakSource(SignalSource):
    """Domain age from the WhoisFreaks live WHOIS API"""

    name = "WhoisFreak"

    def __init__(self, api_url: str, api_key: Optional[str], timeout: float = 5.0,
                 session: Optional[requests.Session] = None):
        super().__init__(timeout=timeout, session=session)
        self.api_url = api_url
        self.api_key = api_key

    @staticmethod
    def parse_creation_date(value: Any) -> Optional[datetime]:
        """Parse the WHOIS create_date (ISO-8601 or bare date) as UTC"""
        if not value or not isinstance(value, str):
            return None
        text = value.strip()
        try:
            created = datetime.fromisoformat(text.replace('Z', '+00:00'))
        except ValueError:
            try:
                created = datetime.strptime(text[:10], '%Y-%m-%d')
            except ValueError:
                return None
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return created

    def _query(self, url, domain):
        if not domain:
            return self.failure("no domain to look up")
        if not self.api_key:
            return self.failure("API key not configured")

        response = self.http_session.get(
            self.api_url,
            params={
                'apiKey': self.api_key,
                'whois': 'live',
                'domainName': domain,
                'specific_sections': 'create_date',
            },
            timeout=self.timeout,
        )
        if response.status_code != 200:
            return self._status_failure(response)

        data = response.json() or {}
        raw_date = data.get('create_date')
        created = self.parse_creation_date(raw_date)
        if created is None:
            return SignalResult(
                source=self.name,
                details={'domain_age_days': None, 'creation_date': raw_date},
            )

        age_days = (datetime.now(timezone.utc) - created).days
        return SignalResult(
            source=self.name,
            details={'domain_age_days': age_days, 'creation_date': created.date().isoformat()},
        )
