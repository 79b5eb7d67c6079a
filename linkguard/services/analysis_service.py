import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from linkguard.config import Settings, settings as default_settings
from linkguard.core.blacklist import BlacklistProvider
from linkguard.core.errors import AnalysisTimeoutError, BatchLimitError, LinkGuardError
from linkguard.core.heuristics import (
    check_https,
    detect_typosquatting,
    extract_domain,
    is_ip_based,
    normalize_url,
)
from linkguard.core.resolver import RedirectResolver, ResolvedURL
from linkguard.core.risk_scorer import RiskScorer
from linkguard.core.short_links import ShortLinkRegistry
from linkguard.core.signal_sources import (
    PhiSharkSource,
    SignalResult,
    SignalSource,
    URLertSource,
    WhoisFreakSource,
)
from linkguard.core.verdict import Verdict, VerdictReport

logger = logging.getLogger(__name__)


@dataclass
class BatchItem:
    url: str
    success: bool
    report: Optional[VerdictReport] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        if self.success:
            return {'success': True, 'url': self.url, 'data': self.report.to_dict()}
        return {'success': False, 'url': self.url, 'error': self.error}


class AnalysisService:
    """
    Resolve short links, then aggregate heuristics and signal sources into a
    VerdictReport.

    Signal sources run concurrently on worker threads and are joined with
    wait-for-all semantics; a failing or slow source only loses its own
    contribution. The whole pipeline runs under one overall deadline.
    """

    def __init__(self,
                 resolver: RedirectResolver,
                 blacklist: BlacklistProvider,
                 primary: SignalSource,
                 secondary: SignalSource,
                 domain_age: SignalSource,
                 scorer: Optional[RiskScorer] = None,
                 default_timeout: float = 30.0,
                 max_timeout: float = 120.0,
                 batch_limit: int = 10,
                 max_workers: Optional[int] = None):
        """
        Args:
            max_workers: Size of the worker pool for blocking calls; defaults
                to one resolver plus three sources per URL of a full batch
        """
        self.resolver = resolver
        self.blacklist = blacklist
        self.primary = primary
        self.secondary = secondary
        self.domain_age = domain_age
        self.scorer = scorer or RiskScorer()
        self.default_timeout = default_timeout
        self.max_timeout = max_timeout
        self.batch_limit = batch_limit
        self.executor = ThreadPoolExecutor(
            max_workers=max_workers or batch_limit * 4,
            thread_name_prefix="linkguard",
        )

    def close(self):
        self.executor.shutdown(wait=False)

    # ===== Public operations =====

    async def expand(self, url: str) -> ResolvedURL:
        """Resolve a short link without analyzing it"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.resolver.resolve, url)

    async def evaluate(self, url: str, original_url: Optional[str] = None,
                       resolved_url: Optional[str] = None) -> VerdictReport:
        """
        Score an already-resolved URL.

        Args:
            url: URL to analyze
            original_url: Input before expansion (defaults to url)
            resolved_url: Expansion result, None when no expansion happened
        """
        original_url = original_url or url
        domain = extract_domain(url)
        https = check_https(url)
        ip_based = is_ip_based(url)

        # 1. Domain-less URLs are ambiguous: fixed SUSPICIOUS penalty
        if not domain:
            score = self.scorer.fixed_scores['no_domain']
            logger.info(f"⚠️ Could not extract a domain from {url}")
            return VerdictReport(
                original_url=original_url,
                resolved_url=resolved_url,
                analyzed_url=url,
                domain=None,
                score=score,
                verdict=Verdict.SUSPICIOUS,
                breakdown=(f"Could not extract domain (+{score})",),
                https=https,
                ip_based=ip_based,
            )

        # 2. Blacklist hit: no remote calls at all
        if self.blacklist.contains(url, domain):
            logger.info(f"🚫 {domain} found in blacklist, skipping signal sources")
            return VerdictReport(
                original_url=original_url,
                resolved_url=resolved_url,
                analyzed_url=url,
                domain=domain,
                score=self.scorer.fixed_scores['blacklisted'],
                verdict=Verdict.BLACKLISTED,
                breakdown=("Domain found in blacklist",),
                blacklisted=True,
                https=https,
                ip_based=ip_based,
            )

        # 3. Signal sources in parallel, heuristics meanwhile
        pending = asyncio.gather(
            self._run_source(self.primary, url, domain),
            self._run_source(self.secondary, url, domain),
            self._run_source(self.domain_age, url, domain),
        )
        typosquatting = detect_typosquatting(domain)
        primary, secondary, domain_age = await pending

        # 4-7. Additive scoring, clamp, verdict, ordered breakdown
        scored = self.scorer.calculate_risk_score({
            'typosquatting': typosquatting,
            'https': https,
            'ip_based': ip_based,
            'primary': primary,
            'secondary': secondary,
            'domain_age': domain_age,
        })

        return VerdictReport(
            original_url=original_url,
            resolved_url=resolved_url,
            analyzed_url=url,
            domain=domain,
            score=scored['score'],
            verdict=scored['verdict'],
            breakdown=tuple(scored['breakdown']),
            sources=(primary, secondary, domain_age),
            typosquatting=typosquatting,
            https=https,
            ip_based=ip_based,
        )

    async def analyze(self, url: str, timeout: Optional[float] = None) -> VerdictReport:
        """
        Full pipeline (expand, then evaluate) under one overall deadline.

        Raises:
            InvalidURLError: before any work when the input is malformed
            AnalysisTimeoutError: the deadline expired
        """
        normalize_url(url)
        deadline = self.effective_timeout(timeout)
        try:
            return await asyncio.wait_for(self._analyze(url), timeout=deadline)
        except asyncio.TimeoutError as e:
            logger.warning(f"⚠️ Analysis of {url} exceeded {deadline:g}s")
            raise AnalysisTimeoutError(url, deadline) from e

    async def analyze_batch(self, urls: Sequence[str], timeout: Optional[float] = None) -> List[BatchItem]:
        """
        Analyze up to batch_limit URLs concurrently.

        Per-URL failures become error items; results keep input order.

        Raises:
            BatchLimitError: empty batch or more than batch_limit URLs
        """
        if not urls:
            raise BatchLimitError("URLs array is required and must not be empty")
        if len(urls) > self.batch_limit:
            raise BatchLimitError(f"Maximum {self.batch_limit} URLs allowed per batch")

        logger.info(f"🔍 Checking {len(urls)} URLs in batch")
        outcomes = await asyncio.gather(
            *(self.analyze(url, timeout) for url in urls),
            return_exceptions=True,
        )

        items = []
        for url, outcome in zip(urls, outcomes):
            if isinstance(outcome, VerdictReport):
                items.append(BatchItem(url=url, success=True, report=outcome))
                continue
            if not isinstance(outcome, LinkGuardError):
                logger.error(f"❌ Batch analysis of {url} failed: {outcome!r}")
            items.append(BatchItem(url=url, success=False, error=str(outcome) or outcome.__class__.__name__))
        return items

    def effective_timeout(self, timeout: Optional[float]) -> float:
        if timeout is None or timeout <= 0:
            return self.default_timeout
        return min(float(timeout), self.max_timeout)

    # ===== Internals =====

    async def _analyze(self, url: str) -> VerdictReport:
        resolved = await self.expand(url)
        return await self.evaluate(
            resolved.resolved_url,
            original_url=url,
            resolved_url=resolved.resolved_url if resolved.expanded else None,
        )

    async def _run_source(self, source: SignalSource, url: str, domain: str) -> SignalResult:
        """
        One adapter call under its own deadline; never raises.

        The deadline starts when a worker picks the call up, so time spent
        queued behind other calls is never charged to the source.
        """
        loop = asyncio.get_running_loop()
        started = asyncio.Event()

        def call() -> SignalResult:
            loop.call_soon_threadsafe(started.set)
            return source.check(url, domain)

        future = loop.run_in_executor(self.executor, call)
        try:
            await started.wait()
            return await asyncio.wait_for(future, timeout=source.deadline)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except asyncio.TimeoutError:
            logger.warning(f"⚠️ {source.name} exceeded {source.deadline:g}s")
            return SignalResult(source=source.name, error=True, message=f"timed out after {source.deadline:g}s")
        except Exception as e:
            logger.error(f"❌ {source.name} raised unexpectedly: {e!r}")
            return SignalResult(source=source.name, error=True, message=str(e) or e.__class__.__name__)


def build_analysis_service(config: Optional[Settings] = None) -> AnalysisService:
    """Wire the production collaborators from settings"""
    config = config or default_settings

    return AnalysisService(
        resolver=RedirectResolver(registry=ShortLinkRegistry()),
        blacklist=BlacklistProvider(config.BLACKLIST_PATH),
        primary=PhiSharkSource(api_url=config.PHISHARK_API_URL, timeout=config.PHISHARK_TIMEOUT),
        secondary=URLertSource(
            api_url=config.URLERT_API_URL,
            api_key=config.URLERT_API_KEY,
            timeout=config.URLERT_TIMEOUT,
            poll_interval=config.URLERT_POLL_INTERVAL,
            max_polls=config.URLERT_MAX_POLLS,
        ),
        domain_age=WhoisFreakSource(
            api_url=config.WHOIS_API_URL,
            api_key=config.WHOIS_API_KEY,
            timeout=config.WHOIS_TIMEOUT,
        ),
        default_timeout=config.DEFAULT_ANALYSIS_TIMEOUT,
        max_timeout=config.MAX_ANALYSIS_TIMEOUT,
        batch_limit=config.BATCH_MAX_URLS,
    )
