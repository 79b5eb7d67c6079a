import time
from typing import Iterable, Optional
from unittest.mock import MagicMock

import pytest

from linkguard.core.blacklist import BlacklistProvider
from linkguard.core.resolver import RedirectResolver
from linkguard.core.signal_sources import SignalResult
from linkguard.services.analysis_service import AnalysisService


def fake_response(status_code=200, headers=None, text='', json_data=None, chunks=None):
    """Stand-in for requests.Response"""
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    response.text = text
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    response.iter_content.return_value = list(chunks or [])
    return response


def make_source(name: str, score: Optional[float] = None, error: bool = False,
                message: Optional[str] = None, details: Optional[dict] = None,
                deadline: float = 1.0, delay: float = 0.0):
    """Signal source double whose check() returns a fixed SignalResult"""
    result = SignalResult(source=name, score=score, error=error, message=message, details=details or {})
    source = MagicMock()
    source.name = name
    source.deadline = deadline

    def check(url, domain):
        if delay:
            time.sleep(delay)
        return result

    source.check.side_effect = check
    return source


@pytest.fixture
def offline_resolver():
    """Resolver whose session fails the test if it is ever used"""
    session = MagicMock()
    session.get.side_effect = AssertionError("unexpected network call")
    session.head.side_effect = AssertionError("unexpected network call")
    return RedirectResolver(session=session)


@pytest.fixture
def service_factory(offline_resolver):
    def build(blacklist: Iterable[str] = (), primary=None, secondary=None, domain_age=None,
              resolver=None, **kwargs) -> AnalysisService:
        return AnalysisService(
            resolver=resolver or offline_resolver,
            blacklist=BlacklistProvider(domains=list(blacklist)),
            primary=primary or make_source("PhiShark", score=0.0),
            secondary=secondary or make_source("URLert", score=0.0),
            domain_age=domain_age or make_source("WhoisFreak", details={'domain_age_days': 4000}),
            **kwargs,
        )
    return build
