"""
Utility modules for the gaze pipeline.

Metrics aggregation, clinical scoring, normative comparison, validation
and performance monitoring.
"""

from .movement_metrics import REMoDNaVMetrics, compute_metrics, events_to_dataframe
from .clinical_scoring import (
    ETDD70Engine, ETDD70Score, Indicator, IndicatorValues, RiskLevel,
    ScoringInput, ScoringThresholds, FixationRecord, SaccadeRecord, calculate_etdd70_score
)
from .normative import MetricComparison, compare_metric_to_norm, comprehensive_comparison, grade_from_age

__all__ = [
    'REMoDNaVMetrics', 'compute_metrics', 'events_to_dataframe',
    'ETDD70Engine', 'ETDD70Score', 'Indicator', 'IndicatorValues', 'RiskLevel',
    'ScoringInput', 'ScoringThresholds', 'FixationRecord', 'SaccadeRecord', 'calculate_etdd70_score',
    'MetricComparison', 'compare_metric_to_norm', 'comprehensive_comparison', 'grade_from_age'
]
