"""
Summary metrics over classified eye movement events.

Metrics are always recomputed from the finalized event list; nothing is
cached between calls.
"""

import logging
from typing import Dict, Any, List, Sequence
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

EVENT_COLUMNS = [
    'type', 'start_time', 'end_time', 'duration', 'start_x', 'start_y', 'end_x', 'end_y',
    'peak_velocity', 'amplitude', 'is_regression', 'centroid_x', 'centroid_y',
    'dispersion', 'sample_count'
]


@dataclass
class REMoDNaVMetrics:
    """Aggregate statistics of a reading session."""
    saccade_count: int = 0
    regression_count: int = 0
    regression_rate: float = 0.0  # Percent of saccades
    pso_count: int = 0
    glissade_count: int = 0
    fixation_count: int = 0
    average_fixation_duration: float = 0.0  # ms
    average_saccade_amplitude: float = 0.0  # deg
    total_reading_time: float = 0.0  # ms, first event start to last event end
    microsaccade_count: int = 0
    long_fixation_count: int = 0
    events: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'saccade_count': self.saccade_count,
            'regression_count': self.regression_count,
            'regression_rate': self.regression_rate,
            'pso_count': self.pso_count,
            'glissade_count': self.glissade_count,
            'fixation_count': self.fixation_count,
            'average_fixation_duration': self.average_fixation_duration,
            'average_saccade_amplitude': self.average_saccade_amplitude,
            'total_reading_time': self.total_reading_time,
            'microsaccade_count': self.microsaccade_count,
            'long_fixation_count': self.long_fixation_count,
        }


def compute_metrics(events: Sequence[Any], microsaccade_amplitude_threshold: float = 1.0,
                    fixation_duration_threshold: float = 200.0) -> REMoDNaVMetrics:
    """
    Reduce a chronological event list to summary metrics.

    Args:
        events: Finalized movement events, oldest first
        microsaccade_amplitude_threshold: Saccades below this amplitude (deg) count as microsaccades
        fixation_duration_threshold: Fixations at or above this duration (ms) count as long

    Returns:
        REMoDNaVMetrics snapshot
    """
    events = list(events)
    saccades = [e for e in events if e.type == 'saccade']
    fixations = [e for e in events if e.type == 'fixation']
    regressions = [s for s in saccades if s.is_regression]

    metrics = REMoDNaVMetrics(
        saccade_count=len(saccades),
        regression_count=len(regressions),
        regression_rate=(len(regressions) / len(saccades) * 100.0) if saccades else 0.0,
        pso_count=sum(1 for e in events if e.type == 'pso'),
        glissade_count=sum(1 for e in events if e.type == 'glissade'),
        fixation_count=len(fixations),
        average_fixation_duration=float(np.mean([f.duration for f in fixations])) if fixations else 0.0,
        average_saccade_amplitude=float(np.mean([s.amplitude for s in saccades])) if saccades else 0.0,
        total_reading_time=(events[-1].end_time - events[0].start_time) if events else 0.0,
        microsaccade_count=sum(1 for s in saccades if s.amplitude < microsaccade_amplitude_threshold),
        long_fixation_count=sum(1 for f in fixations if f.duration >= fixation_duration_threshold),
        events=events
    )

    logger.debug(f"Metrics over {len(events)} events: {metrics.fixation_count} fixations, "
                 f"{metrics.saccade_count} saccades, regression rate {metrics.regression_rate:.1f}%")
    return metrics


def events_to_dataframe(events: Sequence[Any]) -> pd.DataFrame:
    """
    Tabulate events for timeline rendering and export.

    Args:
        events: Finalized movement events

    Returns:
        DataFrame with one row per event and the event type as a plain string
    """
    rows = [e.to_dict() for e in events]
    if not rows:
        return pd.DataFrame(columns=EVENT_COLUMNS)
    return pd.DataFrame(rows, columns=EVENT_COLUMNS)
