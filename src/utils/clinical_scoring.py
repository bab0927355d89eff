"""
Weighted dyslexia-risk scoring from reading eye movements.

Derives six indicators from fixation and saccade geometry (fixation
duration, prolonged fixations, regressions, reading speed, chaos index and
fixation intersection coefficient), combines five of them into a weighted
probability and explains the result with deterministic clinical notes.

Thresholds and weights follow the ETDD70 reference values. They are
empirically chosen and kept configurable through ScoringThresholds.
"""

import math
import logging
from typing import Dict, Any, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

logger = logging.getLogger(__name__)


class RiskLevel(str, Enum):
    """Risk tiers for the probability index."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"

    @classmethod
    def from_probability(cls, probability: float, moderate: float = 0.35,
                         high: float = 0.65) -> "RiskLevel":
        """Convert a probability (0-1) to a risk tier."""
        if probability >= high:
            return cls.HIGH
        elif probability >= moderate:
            return cls.MODERATE
        return cls.LOW


@dataclass
class ScoringThresholds:
    """Clinical thresholds, saturation points and weights."""
    fixation_duration: float = 250.0  # ms
    prolonged_fixation: float = 400.0  # ms, per fixation
    prolonged_ratio: float = 15.0  # % of fixations
    regression_rate: float = 20.0  # % of saccades
    regression_tolerance_px: float = 20.0
    reading_speed_low: float = 80.0  # WPM
    reading_speed_very_low: float = 50.0  # WPM
    chaos_index: float = 0.35
    fic: float = 0.6
    fic_grid_size: float = 50.0  # px
    chars_per_word: float = 5.0

    # Values at which each indicator contributes fully
    fixation_duration_saturation: float = 400.0
    regression_rate_saturation: float = 40.0
    prolonged_ratio_saturation: float = 30.0
    chaos_index_saturation: float = 0.6
    fic_saturation: float = 0.8

    moderate_risk: float = 0.35
    high_risk: float = 0.65

    weights: Dict[str, float] = field(default_factory=lambda: {
        'fixation_duration': 0.25,
        'regression_rate': 0.25,
        'prolonged_fixations': 0.20,
        'chaos_index': 0.15,
        'fic': 0.15,
    })

    def __post_init__(self):
        expected = {'fixation_duration', 'regression_rate', 'prolonged_fixations', 'chaos_index', 'fic'}
        if set(self.weights) != expected:
            raise ValueError(f"Scoring weights must cover exactly {sorted(expected)}")
        total = sum(self.weights.values())
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total:.4f}")


@dataclass(frozen=True)
class FixationRecord:
    """Fixation position and duration used for scoring."""
    x: float
    y: float
    duration: float  # ms
    timestamp: float = 0.0  # ms


@dataclass(frozen=True)
class SaccadeRecord:
    """Saccade geometry used for scoring."""
    start_x: float
    start_y: float
    end_x: float
    end_y: float
    velocity: Optional[float] = None


@dataclass
class ScoringInput:
    """Everything the engine needs from a reading session."""
    fixations: List[FixationRecord] = field(default_factory=list)
    saccades: List[SaccadeRecord] = field(default_factory=list)
    total_reading_time: float = 0.0  # ms
    text_length: int = 0  # characters

    @classmethod
    def from_events(cls, events: Sequence[Any], text_length: int,
                    total_reading_time: Optional[float] = None) -> "ScoringInput":
        """
        Build scoring input from classified movement events.

        Args:
            events: Finalized movement events, oldest first
            text_length: Characters in the text that was read
            total_reading_time: Reading time in ms; defaults to the span of the events

        Returns:
            ScoringInput with fixation centroids and saccade endpoints
        """
        events = list(events)
        fixations = [
            FixationRecord(x=e.centroid_x, y=e.centroid_y, duration=e.duration, timestamp=e.start_time)
            for e in events if e.type == 'fixation'
        ]
        saccades = [
            SaccadeRecord(start_x=e.start_x, start_y=e.start_y, end_x=e.end_x, end_y=e.end_y,
                          velocity=e.peak_velocity)
            for e in events if e.type == 'saccade'
        ]
        if total_reading_time is None:
            total_reading_time = (events[-1].end_time - events[0].start_time) if events else 0.0

        return cls(fixations=fixations, saccades=saccades,
                   total_reading_time=float(total_reading_time), text_length=int(text_length))


@dataclass(frozen=True)
class IndicatorValues:
    """Raw indicator values before thresholding."""
    avg_fixation_duration: float = 0.0  # ms
    prolonged_fixation_ratio: float = 0.0  # %
    regression_rate: float = 0.0  # %
    chaos_index: float = 0.0  # 0-1
    fic: float = 0.0  # 0-1
    reading_speed: Optional[float] = None  # WPM, None when unknown


@dataclass(frozen=True)
class Indicator:
    """A single named indicator with its threshold check."""
    value: float
    threshold: float
    exceeded: bool

    def to_dict(self) -> Dict[str, Any]:
        return {'value': round(self.value, 3), 'threshold': self.threshold, 'exceeded': self.exceeded}


@dataclass(frozen=True)
class ETDD70Score:
    """Probability index, risk tier and explanation."""
    probability: float
    risk_level: RiskLevel
    indicators: Dict[str, Indicator]
    clinical_notes: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'probability': round(self.probability, 4),
            'risk_level': self.risk_level.value,
            'indicators': {name: ind.to_dict() for name, ind in self.indicators.items()},
            'clinical_notes': list(self.clinical_notes),
        }


class ETDD70Engine:
    """
    Computes indicators and the weighted probability index.
    """

    def __init__(self, thresholds: Optional[ScoringThresholds] = None):
        self.thresholds = thresholds or ScoringThresholds()
        logger.debug("ETDD70Engine initialized")

    def score(self, scoring_input: ScoringInput) -> ETDD70Score:
        """Indicators and score for one reading session."""
        return self.score_indicators(self.compute_indicators(scoring_input))

    def compute_indicators(self, scoring_input: ScoringInput) -> IndicatorValues:
        """
        Derive indicator values from fixation and saccade geometry.

        Args:
            scoring_input: Session fixations, saccades, reading time and text length

        Returns:
            IndicatorValues
        """
        th = self.thresholds
        fixations = scoring_input.fixations
        saccades = scoring_input.saccades

        durations = np.array([f.duration for f in fixations], dtype=float)
        avg_duration = float(durations.mean()) if len(durations) else 0.0
        prolonged_ratio = (float(np.mean(durations > th.prolonged_fixation)) * 100.0
                           if len(durations) else 0.0)

        regressions = self.count_regressions(saccades, th.regression_tolerance_px)
        regression_rate = (regressions / len(saccades) * 100.0) if saccades else 0.0

        reading_speed = None
        minutes = scoring_input.total_reading_time / 60000.0
        if minutes > 0 and scoring_input.text_length > 0:
            reading_speed = (scoring_input.text_length / th.chars_per_word) / minutes

        return IndicatorValues(
            avg_fixation_duration=avg_duration,
            prolonged_fixation_ratio=prolonged_ratio,
            regression_rate=regression_rate,
            chaos_index=self.chaos_index(fixations),
            fic=self.fixation_intersection_coefficient(fixations, th.fic_grid_size),
            reading_speed=reading_speed
        )

    def score_indicators(self, values: IndicatorValues) -> ETDD70Score:
        """
        Threshold, weight and explain indicator values.

        Args:
            values: Indicator values

        Returns:
            ETDD70Score
        """
        th = self.thresholds
        notes: List[str] = []

        fixation_exceeded = values.avg_fixation_duration > th.fixation_duration
        if fixation_exceeded:
            notes.append(f"Average fixation duration ({values.avg_fixation_duration:.0f}ms) "
                         f"exceeds clinical threshold of {th.fixation_duration:.0f}ms")

        prolonged_exceeded = values.prolonged_fixation_ratio > th.prolonged_ratio
        if prolonged_exceeded:
            notes.append(f"High rate of prolonged fixations ({values.prolonged_fixation_ratio:.1f}%) "
                         f"indicates word-level processing difficulties")

        regression_exceeded = values.regression_rate > th.regression_rate
        if regression_exceeded:
            notes.append(f"Regression rate ({values.regression_rate:.1f}%) exceeds "
                         f"{th.regression_rate:.0f}% threshold, suggesting decoding challenges")

        speed = values.reading_speed
        speed_exceeded = speed is not None and speed < th.reading_speed_low
        if speed is not None and speed < th.reading_speed_very_low:
            notes.append(f"Very low reading speed ({speed:.0f} WPM) requires immediate attention")
        elif speed_exceeded:
            notes.append(f"Below-average reading speed ({speed:.0f} WPM)")

        chaos_exceeded = values.chaos_index > th.chaos_index
        if chaos_exceeded:
            notes.append(f"High gaze chaos index ({values.chaos_index:.2f}) "
                         f"indicates irregular reading pattern")

        fic_exceeded = values.fic > th.fic
        if fic_exceeded:
            notes.append(f"High fixation intersection ({values.fic:.2f}) suggests frequent re-reading")

        contributions = {
            'fixation_duration': _saturate(values.avg_fixation_duration, th.fixation_duration_saturation),
            'regression_rate': _saturate(values.regression_rate, th.regression_rate_saturation),
            'prolonged_fixations': _saturate(values.prolonged_fixation_ratio, th.prolonged_ratio_saturation),
            'chaos_index': _saturate(values.chaos_index, th.chaos_index_saturation),
            'fic': _saturate(values.fic, th.fic_saturation),
        }
        probability = sum(contributions[name] * weight for name, weight in th.weights.items())

        risk_level = RiskLevel.from_probability(probability, th.moderate_risk, th.high_risk)
        if risk_level == RiskLevel.HIGH:
            notes.append("High probability of dyslexia. Professional evaluation recommended.")
        elif risk_level == RiskLevel.MODERATE:
            notes.append("Moderate indicators present. Continued monitoring advised.")

        indicators = {
            'fixation_duration': Indicator(values.avg_fixation_duration, th.fixation_duration, fixation_exceeded),
            'prolonged_fixations': Indicator(values.prolonged_fixation_ratio, th.prolonged_ratio,
                                             prolonged_exceeded),
            'regression_rate': Indicator(values.regression_rate, th.regression_rate, regression_exceeded),
            'reading_speed': Indicator(speed if speed is not None else 0.0, th.reading_speed_low,
                                       speed_exceeded),
            'chaos_index': Indicator(values.chaos_index, th.chaos_index, chaos_exceeded),
            'fic': Indicator(values.fic, th.fic, fic_exceeded),
        }

        logger.info(f"Risk score {probability:.3f} ({risk_level.value}), "
                    f"{sum(i.exceeded for i in indicators.values())} indicators exceeded")

        return ETDD70Score(
            probability=probability,
            risk_level=risk_level,
            indicators=indicators,
            clinical_notes=tuple(notes)
        )

    @staticmethod
    def chaos_index(fixations: Sequence[FixationRecord]) -> float:
        """
        Mean normalized turning angle between consecutive fixation vectors.

        0 means a perfectly straight scan path, 1 means every step reverses.
        """
        if len(fixations) < 3:
            return 0.0

        points = np.array([(f.x, f.y) for f in fixations], dtype=float)
        vectors = np.diff(points, axis=0)
        lengths = np.hypot(vectors[:, 0], vectors[:, 1])
        angles = np.arctan2(vectors[:, 1], vectors[:, 0])

        turns = np.diff(angles)
        turns = np.abs((turns + math.pi) % (2 * math.pi) - math.pi)
        valid = (lengths[:-1] > 0) & (lengths[1:] > 0)
        if not valid.any():
            return 0.0
        return float(np.mean(turns[valid]) / math.pi)

    @staticmethod
    def fixation_intersection_coefficient(fixations: Sequence[FixationRecord],
                                          grid_size: float = 50.0) -> float:
        """Fraction of fixations landing in an already visited grid cell."""
        if len(fixations) < 4 or grid_size <= 0:
            return 0.0

        visited = set()
        revisits = 0
        for f in fixations:
            cell = (math.floor(f.x / grid_size), math.floor(f.y / grid_size))
            if cell in visited:
                revisits += 1
            visited.add(cell)
        return revisits / len(fixations)

    @staticmethod
    def count_regressions(saccades: Sequence[SaccadeRecord], tolerance_px: float = 20.0) -> int:
        """Saccades landing at least the tolerance left of their start."""
        return sum(1 for s in saccades if s.start_x - s.end_x >= tolerance_px)


def _saturate(value: float, saturation: float) -> float:
    """Normalize to [0, 1] against a saturation point."""
    if saturation <= 0 or not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, value / saturation))


def calculate_etdd70_score(scoring_input: ScoringInput,
                           thresholds: Optional[ScoringThresholds] = None) -> ETDD70Score:
    """Score a reading session with the default (or given) thresholds."""
    return ETDD70Engine(thresholds).score(scoring_input)
