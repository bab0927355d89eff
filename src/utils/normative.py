"""
Normative comparison of reading metrics against grade-level baselines.

Each metric is converted to a z-score against the baseline for the reader's
grade band and mapped to a percentile through the normal CDF. For metrics
where lower is better (fixation duration, regressions, chaos) the percentile
is inverted so that a high percentile always means better reading.
"""

import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict

from scipy.stats import norm

logger = logging.getLogger(__name__)

# Mean and standard deviation per grade band
CLINICAL_BASELINES: Dict[str, Dict[str, Dict[str, float]]] = {
    'K-1': {
        'wpm': {'mean': 30.0, 'std': 10.0},
        'fixation_duration': {'mean': 300.0, 'std': 80.0},
        'regression_count': {'mean': 8.0, 'std': 3.0},
        'chaos_index': {'mean': 0.30, 'std': 0.10},
    },
    '2-3': {
        'wpm': {'mean': 60.0, 'std': 15.0},
        'fixation_duration': {'mean': 270.0, 'std': 60.0},
        'regression_count': {'mean': 6.0, 'std': 2.0},
        'chaos_index': {'mean': 0.25, 'std': 0.08},
    },
    '4-5': {
        'wpm': {'mean': 100.0, 'std': 20.0},
        'fixation_duration': {'mean': 240.0, 'std': 50.0},
        'regression_count': {'mean': 4.0, 'std': 2.0},
        'chaos_index': {'mean': 0.20, 'std': 0.06},
    },
    '6-8': {
        'wpm': {'mean': 140.0, 'std': 25.0},
        'fixation_duration': {'mean': 220.0, 'std': 40.0},
        'regression_count': {'mean': 3.0, 'std': 1.5},
        'chaos_index': {'mean': 0.15, 'std': 0.05},
    },
    'adult': {
        'wpm': {'mean': 200.0, 'std': 40.0},
        'fixation_duration': {'mean': 200.0, 'std': 35.0},
        'regression_count': {'mean': 2.0, 'std': 1.0},
        'chaos_index': {'mean': 0.10, 'std': 0.04},
    },
}

# Metrics where a lower value is better
INVERTED_METRICS = ('fixation_duration', 'regression_count', 'chaos_index')

DESCRIPTIONS = {
    'wpm': {
        'critical': 'Reading speed is significantly below age expectations',
        'below_average': 'Reading speed is below age expectations',
        'average': 'Reading speed is within normal range for age',
        'above_average': 'Reading speed is above age expectations',
        'excellent': 'Exceptional reading speed for age group',
    },
    'fixation_duration': {
        'critical': 'Prolonged fixations indicate processing difficulties',
        'below_average': 'Fixation duration slightly elevated',
        'average': 'Fixation patterns within normal range',
        'above_average': 'Efficient visual processing',
        'excellent': 'Highly efficient eye movement patterns',
    },
    'regression_count': {
        'critical': 'Excessive regressions suggest comprehension issues',
        'below_average': 'Elevated regression rate',
        'average': 'Normal regression patterns',
        'above_average': 'Minimal regressions',
        'excellent': 'Excellent forward reading flow',
    },
    'chaos_index': {
        'critical': 'Highly disorganized reading patterns',
        'below_average': 'Somewhat irregular reading patterns',
        'average': 'Normal reading pattern consistency',
        'above_average': 'Organized reading patterns',
        'excellent': 'Highly organized, efficient reading',
    },
}


@dataclass(frozen=True)
class MetricComparison:
    """One metric placed against its grade baseline."""
    value: float
    percentile: int  # 1-99, higher is better
    z_score: float
    classification: str  # critical, below_average, average, above_average, excellent
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def grade_from_age(age: float) -> str:
    """Grade band for a reader's age in years."""
    if age <= 6:
        return 'K-1'
    if age <= 8:
        return '2-3'
    if age <= 10:
        return '4-5'
    if age <= 13:
        return '6-8'
    return 'adult'


def classify_percentile(percentile: float) -> str:
    if percentile <= 10:
        return 'critical'
    if percentile <= 25:
        return 'below_average'
    if percentile <= 75:
        return 'average'
    if percentile <= 90:
        return 'above_average'
    return 'excellent'


def compare_metric_to_norm(value: float, metric: str, grade: str,
                           inverted: bool = False) -> MetricComparison:
    """
    Compare a metric value against its normative baseline.

    Args:
        value: Observed metric value
        metric: Baseline key (wpm, fixation_duration, regression_count, chaos_index)
        grade: Grade band; unknown bands fall back to adult
        inverted: True for metrics where lower is better

    Returns:
        MetricComparison; a neutral comparison when no baseline exists
    """
    baselines = CLINICAL_BASELINES.get(grade, CLINICAL_BASELINES['adult'])
    baseline = baselines.get(metric)
    if baseline is None:
        logger.debug(f"No baseline for metric '{metric}'")
        return MetricComparison(value, 50, 0.0, 'average', 'No baseline data available')

    std = baseline['std']
    z_score = (value - baseline['mean']) / std if std else 0.0
    raw_percentile = int(max(1, min(99, round(float(norm.cdf(z_score)) * 100))))
    percentile = 100 - raw_percentile if inverted else raw_percentile
    classification = classify_percentile(percentile)
    description = DESCRIPTIONS.get(metric, {}).get(classification, 'Metric within expected range')

    return MetricComparison(float(value), percentile, float(z_score), classification, description)


def comprehensive_comparison(values: Dict[str, Optional[float]], age: float) -> Dict[str, MetricComparison]:
    """
    Compare every supplied metric against the baseline for the reader's age.

    Args:
        values: Metric name to value; None entries are skipped
        age: Reader age in years

    Returns:
        Metric name to comparison for each metric supplied
    """
    grade = grade_from_age(age)
    results = {}
    for metric, value in values.items():
        if value is None:
            continue
        results[metric] = compare_metric_to_norm(value, metric, grade, inverted=metric in INVERTED_METRICS)

    logger.info(f"Normative comparison for grade {grade}: {len(results)} metrics")
    return results
