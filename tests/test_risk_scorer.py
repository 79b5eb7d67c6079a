import itertools

import pytest

from linkguard.core.risk_scorer import RiskScorer
from linkguard.core.signal_sources import SignalResult
from linkguard.core.verdict import Verdict


def primary(score=None, error=False, message=None):
    return SignalResult(source="PhiShark", score=score, error=error, message=message)


def age(days, error=False):
    return SignalResult(source="WhoisFreak", error=error, details={'domain_age_days': days})


@pytest.fixture
def scorer():
    return RiskScorer()


@pytest.mark.parametrize("score, verdict", [
    (0, Verdict.SAFE),
    (15, Verdict.SAFE),
    (19, Verdict.SAFE),
    (20, Verdict.SUSPICIOUS),
    (49, Verdict.SUSPICIOUS),
    (50, Verdict.DANGEROUS),
    (79, Verdict.DANGEROUS),
    (80, Verdict.CRITICAL),
    (100, Verdict.CRITICAL),
])
def test_verdict_is_function_of_score(scorer, score, verdict):
    assert scorer.determine_verdict(score) == verdict


def test_verdict_ordering():
    ranks = [v.rank for v in (Verdict.SAFE, Verdict.SUSPICIOUS, Verdict.DANGEROUS, Verdict.CRITICAL, Verdict.BLACKLISTED)]
    assert ranks == sorted(ranks)


@pytest.mark.parametrize("probability, points", [
    (0.95, 60), (0.90, 55), (0.85, 55), (0.80, 45), (0.6, 45), (0.5, 30), (0.21, 30), (0.2, 0), (0.0, 0),
])
def test_reputation_bands_are_exclusive(scorer, probability, points):
    result = scorer.calculate_risk_score({'https': True, 'primary': primary(probability)})
    assert result['score'] == points


@pytest.mark.parametrize("days, points", [(0, 20), (99, 20), (100, 17), (299, 17), (300, 0), (5000, 0), (None, 0)])
def test_domain_age_bands(scorer, days, points):
    result = scorer.calculate_risk_score({'https': True, 'domain_age': age(days)})
    assert result['score'] == points


def test_breakdown_follows_rule_order(scorer):
    result = scorer.calculate_risk_score({
        'typosquatting': True,
        'https': False,
        'ip_based': True,
        'primary': primary(0.95),
        'domain_age': age(10),
        'secondary': SignalResult(source="URLert", score=1.0),
    })

    assert result['breakdown'] == [
        "Typosquatting Detected (+10)",
        "No HTTPS (+5)",
        "IP Based URL (+5)",
        "PhiShark > 0.90 (+60)",
        "Domain Age < 100 days (+20)",
        "URLert Score: 1 (not counted)",
    ]
    assert result['score'] == 100
    assert result['verdict'] == Verdict.CRITICAL


def test_secondary_source_never_changes_score(scorer):
    base = {'https': True, 'primary': primary(0.6)}
    without = scorer.calculate_risk_score(base)
    with_secondary = scorer.calculate_risk_score(dict(base, secondary=SignalResult(source="URLert", score=1.0)))
    assert without['score'] == with_secondary['score'] == 45


def test_errored_sources_contribute_nothing_but_are_reported(scorer):
    result = scorer.calculate_risk_score({
        'https': True,
        'primary': primary(error=True, message="request timed out"),
        'domain_age': age(None, error=True),
        'secondary': SignalResult(source="URLert", error=True, message="API key not configured"),
    })

    assert result['score'] == 0
    assert result['verdict'] == Verdict.SAFE
    assert result['breakdown'] == [
        "PhiShark unavailable: request timed out (no contribution)",
        "WhoisFreak unavailable: error (no contribution)",
        "URLert unavailable: API key not configured (not counted)",
    ]


@pytest.mark.parametrize("probability", [7.5, -3.0, float('nan'), float('inf'), "0.95", True])
def test_adversarial_reputation_stays_in_range(scorer, probability):
    result = scorer.calculate_risk_score({
        'typosquatting': True, 'https': False, 'ip_based': True,
        'primary': primary(probability), 'domain_age': age(-500),
    })
    assert 0 <= result['score'] <= 100


def test_negative_age_is_unknown(scorer):
    assert scorer.calculate_risk_score({'https': True, 'domain_age': age(-10)})['score'] == 0


def test_score_monotonic_in_triggered_rules(scorer):
    rules = {
        'typosquatting': ('typosquatting', True),
        'insecure': ('https', False),
        'ip': ('ip_based', True),
        'reputation': ('primary', primary(0.85)),
        'age': ('domain_age', age(150)),
    }

    def score_for(active):
        data = {'https': True}
        for name in active:
            key, value = rules[name]
            data[key] = value
        return scorer.calculate_risk_score(data)['score']

    for size in range(len(rules)):
        for active in itertools.combinations(rules, size):
            for extra in set(rules) - set(active):
                assert score_for(active + (extra,)) >= score_for(active)


def test_clamp(scorer):
    assert scorer.clamp(150) == 100
    assert scorer.clamp(-5) == 0
    assert scorer.clamp(float('nan')) == 0
