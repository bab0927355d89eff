"""
Temporal smoothing and calibration stage for raw gaze samples.

Each raw sample goes through:
1. Velocity estimation against the previous raw sample
2. Recency-weighted smoothing over a short sliding window (fixations only)
3. A gated blend with the previous output that passes saccades through untouched
4. The ridge-regression calibration model

The stage keeps its runtime state in an explicit GateState and a bounded
window, so one GazeFilter instance corresponds to one tracking session.
"""

import math
import logging
from typing import List, Optional, Tuple
from dataclasses import dataclass
from collections import deque

import numpy as np
from scipy.special import expit

from config import TrackingConfig
from utils.validation import ValidationUtils
from .calibration import CalibrationModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GazeSample:
    """A single raw observation from the gaze source."""
    x: float  # Screen pixels
    y: float  # Screen pixels
    timestamp: float  # Milliseconds


@dataclass(frozen=True)
class FilteredFrame:
    """Stabilized, calibrated gaze position."""
    x: float
    y: float
    timestamp: float
    velocity: float  # Degrees of visual angle per second
    is_saccade: bool = False


@dataclass
class GateState:
    """Hidden position carried between samples by the gated blend."""
    hidden_x: float = 0.0
    hidden_y: float = 0.0
    reset_gate: float = 0.0
    update_gate: float = 0.0
    initialized: bool = False


def compute_velocity(prev: GazeSample, curr: GazeSample, pixels_per_degree: float) -> float:
    """
    Angular velocity between two samples.

    Args:
        prev: Earlier sample
        curr: Later sample
        pixels_per_degree: Pixels per degree of visual angle

    Returns:
        Velocity in deg/s, 0 when the time step is not positive
    """
    dt = (curr.timestamp - prev.timestamp) / 1000.0
    if not dt > 0 or pixels_per_degree <= 0:
        return 0.0

    distance = math.hypot(curr.x - prev.x, curr.y - prev.y)
    velocity = (distance / pixels_per_degree) / dt
    return velocity if math.isfinite(velocity) else 0.0


def gate_position(hidden: Tuple[float, float], current: Tuple[float, float], velocity: float,
                  saccade_threshold: float, decay: float) -> Tuple[Tuple[float, float], float, float]:
    """
    Blend the previous output with the current smoothed input.

    The reset gate rises with velocity, which lowers the update gate and lets
    more of the current input through. At or above the saccade threshold the
    input passes through unchanged.

    Args:
        hidden: Previous output position
        current: Current smoothed position
        velocity: Current velocity in deg/s
        saccade_threshold: Saccade velocity threshold in deg/s
        decay: Gate decay constant

    Returns:
        (new position, reset gate, update gate)
    """
    velocity_normalized = min(velocity / saccade_threshold, 3.0) if saccade_threshold > 0 else 3.0
    reset_gate = float(expit(velocity_normalized * 2.0 - 1.0))
    update_gate = 1.0 - reset_gate * decay

    if velocity >= saccade_threshold:
        return current, reset_gate, update_gate

    new_x = update_gate * hidden[0] + (1.0 - update_gate) * current[0]
    new_y = update_gate * hidden[1] + (1.0 - update_gate) * current[1]
    return (new_x, new_y), reset_gate, update_gate


class GazeFilter:
    """
    Per-session smoothing, gating and calibration of raw gaze samples.
    """

    def __init__(self, config: Optional[TrackingConfig] = None,
                 calibration: Optional[CalibrationModel] = None):
        """
        Initialize gaze filter.

        Args:
            config: Tracking configuration
            calibration: Calibration model applied to the gated output
        """
        self.config = config or TrackingConfig()
        self.calibration = calibration or CalibrationModel(
            viewport_width=self.config.viewport_width,
            viewport_height=self.config.viewport_height,
            ridge_lambda=self.config.ridge_lambda,
            min_points=self.config.min_calibration_points
        )

        self._window = deque(maxlen=max(1, self.config.window_size))
        self._weights = np.arange(1, self._window.maxlen + 1, dtype=float)
        self.gate = GateState()
        self.last_gated_point: Optional[Tuple[float, float]] = None

        logger.info(f"GazeFilter initialized: window={self._window.maxlen}, "
                    f"saccade threshold={self.config.saccade_velocity_threshold}deg/s")

    @property
    def window(self) -> List[GazeSample]:
        """Snapshot of the sliding window, oldest first."""
        return list(self._window)

    def process_sample(self, x: float, y: float, timestamp: float) -> Optional[FilteredFrame]:
        """
        Run one raw sample through the stage.

        Args:
            x: Raw gaze x in pixels
            y: Raw gaze y in pixels
            timestamp: Sample time in milliseconds

        Returns:
            FilteredFrame, or None if the sample is unusable (tracking loss)
        """
        if not ValidationUtils.validate_gaze_sample(x, y, timestamp):
            return None

        sample = GazeSample(float(x), float(y), float(timestamp))

        velocity = 0.0
        if self._window:
            velocity = compute_velocity(self._window[-1], sample, self.config.pixels_per_degree)

        self._window.append(sample)

        is_saccade = velocity >= self.config.saccade_velocity_threshold
        if is_saccade:
            smoothed = (sample.x, sample.y)
        else:
            smoothed = self._weighted_average()

        if not self.gate.initialized:
            self.gate.hidden_x, self.gate.hidden_y = smoothed
            self.gate.initialized = True

        gated, reset_gate, update_gate = gate_position(
            (self.gate.hidden_x, self.gate.hidden_y), smoothed, velocity,
            self.config.saccade_velocity_threshold, self.config.gate_decay)

        self.gate.hidden_x, self.gate.hidden_y = gated
        self.gate.reset_gate = reset_gate
        self.gate.update_gate = update_gate
        self.last_gated_point = gated

        screen_x, screen_y = self.calibration.apply(*gated)

        return FilteredFrame(
            x=screen_x,
            y=screen_y,
            timestamp=sample.timestamp,
            velocity=velocity,
            is_saccade=is_saccade
        )

    def _weighted_average(self) -> Tuple[float, float]:
        """Recency-weighted mean of the window (newest sample weighs most)."""
        points = np.array([(s.x, s.y) for s in self._window], dtype=float)
        weights = self._weights[:len(points)]
        avg = np.average(points, axis=0, weights=weights)
        return float(avg[0]), float(avg[1])

    def reset(self):
        """Clear window and gate state; the calibration is kept."""
        self._window.clear()
        self.gate = GateState()
        self.last_gated_point = None
        logger.info("GazeFilter reset")
