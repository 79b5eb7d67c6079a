from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from linkguard.core.signal_sources import SignalResult


class Verdict(str, Enum):
    SAFE = "SAFE"
    SUSPICIOUS = "SUSPICIOUS"
    DANGEROUS = "DANGEROUS"
    CRITICAL = "CRITICAL"
    BLACKLISTED = "BLACKLISTED"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {
    Verdict.SAFE: 0,
    Verdict.SUSPICIOUS: 1,
    Verdict.DANGEROUS: 2,
    Verdict.CRITICAL: 3,
    Verdict.BLACKLISTED: 4,
}


@dataclass(frozen=True)
class VerdictReport:
    """Final, immutable result of one analysis"""
    original_url: str
    resolved_url: Optional[str]
    domain: Optional[str]
    score: int
    verdict: Verdict
    breakdown: Tuple[str, ...] = ()
    sources: Tuple[SignalResult, ...] = ()
    blacklisted: bool = False
    typosquatting: bool = False
    https: bool = False
    ip_based: bool = False
    analyzed_url: Optional[str] = None

    def source(self, name: str) -> Optional[SignalResult]:
        for result in self.sources:
            if result.source == name:
                return result
        return None

    def to_dict(self) -> Dict:
        return {
            'url': self.analyzed_url or self.original_url,
            'original_url': self.original_url,
            'resolved_url': self.resolved_url,
            'domain': self.domain,
            'score': self.score,
            'verdict': self.verdict.value,
            'breakdown': list(self.breakdown),
            'sources': [s.to_dict() for s in self.sources],
            'blacklisted': self.blacklisted,
            'typosquatting': self.typosquatting,
            'https': self.https,
            'ip_based': self.ip_based,
        }
