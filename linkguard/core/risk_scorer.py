from typing import Dict, List, Optional, Tuple
import math

from linkguard.core.signal_sources import SignalResult
from linkguard.core.verdict import Verdict

class RiskScorer:
    def __init__(self):
        """
        Initialize RiskScorer with additive rule points.

        Every triggered rule adds a fixed number of points; rules are
        independent and the total is clamped to [0, 100].
        """
        self.weights = {
            'typosquatting': 10,
            'insecure_scheme': 5,
            'ip_host': 5,
        }

        # Primary reputation bands, evaluated highest first
        self.reputation_bands: List[Tuple[float, int]] = [
            (0.90, 60),
            (0.80, 55),
            (0.50, 45),
            (0.20, 30),
        ]

        # Domain age bands: (upper bound in days, points, label)
        self.age_bands: List[Tuple[int, int, str]] = [
            (100, 20, "Domain Age < 100 days"),
            (300, 17, "Domain Age 100-300 days"),
        ]

        # Verdict thresholds (score >= threshold)
        self.thresholds = {
            'critical': 80,
            'dangerous': 50,
            'suspicious': 20,
        }

        self.min_score = 0
        self.max_score = 100

        # Short-circuit outcomes that skip rule scoring
        self.fixed_scores = {
            'blacklisted': 100,
            # falls in the SUSPICIOUS band
            'no_domain': 35,
        }

    def calculate_risk_score(self, analysis_data: Dict) -> Dict:
        """
        Score one analysis.

        Args:
            analysis_data: heuristic flags ('typosquatting', 'https',
                'ip_based') and SignalResults ('primary', 'domain_age',
                'secondary'); any result may be missing

        Returns:
            {'score': int, 'verdict': Verdict, 'breakdown': [str, ...]}
        """
        total = 0
        breakdown = []

        if analysis_data.get('typosquatting'):
            total += self.weights['typosquatting']
            breakdown.append(f"Typosquatting Detected (+{self.weights['typosquatting']})")

        if not analysis_data.get('https'):
            total += self.weights['insecure_scheme']
            breakdown.append(f"No HTTPS (+{self.weights['insecure_scheme']})")

        if analysis_data.get('ip_based'):
            total += self.weights['ip_host']
            breakdown.append(f"IP Based URL (+{self.weights['ip_host']})")

        points, reason = self._reputation_contribution(analysis_data.get('primary'))
        total += points
        if reason:
            breakdown.append(reason)

        points, reason = self._age_contribution(analysis_data.get('domain_age'))
        total += points
        if reason:
            breakdown.append(reason)

        # Secondary source is advisory only: reported, never scored
        reason = self._advisory_note(analysis_data.get('secondary'))
        if reason:
            breakdown.append(reason)

        score = self.clamp(total)
        return {
            'score': score,
            'verdict': self.determine_verdict(score),
            'breakdown': breakdown,
        }

    def clamp(self, score: float) -> int:
        if score is None or (isinstance(score, float) and math.isnan(score)):
            return self.min_score
        return int(max(self.min_score, min(self.max_score, score)))

    def determine_verdict(self, risk_score: int) -> Verdict:
        if risk_score >= self.thresholds['critical']:
            return Verdict.CRITICAL
        elif risk_score >= self.thresholds['dangerous']:
            return Verdict.DANGEROUS
        elif risk_score >= self.thresholds['suspicious']:
            return Verdict.SUSPICIOUS
        else:
            return Verdict.SAFE

    def _reputation_contribution(self, result: Optional[SignalResult]) -> Tuple[int, Optional[str]]:
        if result is None:
            return 0, None
        if result.error:
            return 0, self._unavailable(result, "no contribution")

        probability = self._as_number(result.score)
        if probability is None:
            return 0, None

        for threshold, points in self.reputation_bands:
            if probability > threshold:
                return points, f"{result.source} > {threshold:.2f} (+{points})"
        return 0, None

    def _age_contribution(self, result: Optional[SignalResult]) -> Tuple[int, Optional[str]]:
        if result is None:
            return 0, None
        if result.error:
            return 0, self._unavailable(result, "no contribution")

        age = self._as_number(result.details.get('domain_age_days'))
        # negative ages come from future-dated records; treated as unknown
        if age is None or age < 0:
            return 0, None

        for upper, points, label in self.age_bands:
            if age < upper:
                return points, f"{label} (+{points})"
        return 0, None

    def _advisory_note(self, result: Optional[SignalResult]) -> Optional[str]:
        if result is None:
            return None
        if result.error:
            return self._unavailable(result, "not counted")
        if result.score is None:
            return None
        return f"{result.source} Score: {result.score:g} (not counted)"

    @staticmethod
    def _unavailable(result: SignalResult, suffix: str) -> str:
        message = result.message or "error"
        return f"{result.source} unavailable: {message} ({suffix})"

    @staticmethod
    def _as_number(value) -> Optional[float]:
        if isinstance(value, bool) or value is None:
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if math.isnan(number):
            return None
        return number
