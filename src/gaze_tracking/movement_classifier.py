"""
Eye movement event classification for gaze tracking.

Segments a velocity-tagged gaze stream into fixations, saccades,
post-saccadic oscillations (PSO) and glissades with a hysteresis state
machine in the spirit of REMoDNaV:

- saccade:  velocity above the saccade threshold
- pso:      within pso_window ms of a saccade end, velocity above the PSO threshold
- glissade: between pso_window and glissade_window ms, velocity above the PSO threshold
- fixation: velocity below the PSO threshold, or glissade_window ms after a saccade;
            inside the window a slow sample continues an open PSO/glissade
- unknown:  anything else (including tracking loss); never emitted as an event

An event accumulates samples while the detected type is stable and is
finalized into a bounded history when the type changes or on demand.
"""

import math
import logging
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field, asdict
from collections import deque
from enum import Enum

import numpy as np

from config import TrackingConfig
from utils.validation import ValidationUtils
from utils.movement_metrics import REMoDNaVMetrics, compute_metrics

logger = logging.getLogger(__name__)


class MovementType(str, Enum):
    """Eye movement categories."""
    FIXATION = "fixation"
    SACCADE = "saccade"
    PSO = "pso"
    GLISSADE = "glissade"
    BLINK = "blink"
    UNKNOWN = "unknown"


# Types that are never written to the event history
UNEMITTED_TYPES = (MovementType.UNKNOWN, MovementType.BLINK)
POST_SACCADIC_TYPES = (MovementType.PSO, MovementType.GLISSADE)


@dataclass(frozen=True)
class MovementEvent:
    """A finalized eye movement event."""
    type: MovementType
    start_time: float  # ms
    end_time: float  # ms
    duration: float  # ms
    start_x: float
    start_y: float
    end_x: float
    end_y: float
    peak_velocity: float  # deg/s
    amplitude: float  # deg, first to last sample
    is_regression: bool
    centroid_x: float = 0.0
    centroid_y: float = 0.0
    dispersion: float = 0.0  # deg, bounding-box diagonal
    sample_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['type'] = self.type.value
        return data


@dataclass(frozen=True)
class ClassifiedSample:
    """Position and velocity as seen by the classifier."""
    x: float
    y: float
    timestamp: float
    velocity: float


@dataclass
class OpenEvent:
    """The in-flight (unfinalized) event."""
    type: MovementType
    start_time: float
    start_x: float
    start_y: float
    samples: List[ClassifiedSample] = field(default_factory=list)
    peak_velocity: float = 0.0


@dataclass
class PostSaccadeState:
    """Tracking of the interval following a saccade."""
    active: bool = False
    saccade_end_time: float = 0.0
    last_direction: float = 0.0  # radians


@dataclass
class ClassifierState:
    """Runtime state of the classifier, replaced as a whole on reset."""
    samples: deque
    current_event: Optional[OpenEvent] = None
    post_saccade: PostSaccadeState = field(default_factory=PostSaccadeState)
    current_movement: MovementType = MovementType.UNKNOWN


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of classifying one sample."""
    movement_type: MovementType
    velocity: float
    finalized_event: Optional[MovementEvent] = None


class MovementClassifier:
    """
    Real-time movement classification with a bounded event history.
    """

    def __init__(self, config: Optional[TrackingConfig] = None):
        """
        Initialize movement classifier.

        Args:
            config: Tracking configuration
        """
        self.config = config or TrackingConfig()
        self.state = self._new_state()
        self._history = deque(maxlen=self.config.event_history_size)

        logger.info(f"MovementClassifier initialized: saccade>{self.config.saccade_velocity_threshold}, "
                    f"pso>{self.config.pso_velocity_threshold} deg/s")

    def _new_state(self) -> ClassifierState:
        return ClassifierState(samples=deque(maxlen=self.config.sample_buffer_size))

    @property
    def events(self) -> List[MovementEvent]:
        """Finalized events, oldest first."""
        return list(self._history)

    @property
    def current_movement(self) -> MovementType:
        return self.state.current_movement

    def process_sample(self, x: float, y: float, timestamp: float,
                       velocity: Optional[float] = None) -> ClassificationResult:
        """
        Classify a new sample and update the in-flight event.

        Args:
            x: Gaze x in pixels
            y: Gaze y in pixels
            timestamp: Sample time in milliseconds
            velocity: Velocity in deg/s; computed from the previous sample if None

        Returns:
            ClassificationResult with the detected type and any event finalized by it
        """
        if not ValidationUtils.validate_gaze_sample(x, y, timestamp):
            finalized = self.mark_tracking_loss()
            return ClassificationResult(MovementType.UNKNOWN, 0.0, finalized)

        previous = self.state.samples[-1] if self.state.samples else None
        if velocity is None or not ValidationUtils.is_finite_number(velocity):
            velocity = self._velocity(previous, x, y, timestamp)

        sample = ClassifiedSample(float(x), float(y), float(timestamp), max(0.0, float(velocity)))
        self.state.samples.append(sample)

        detected = self._detect_type(sample)
        finalized = None
        current = self.state.current_event

        if current is None:
            self.state.current_event = self._open_event(detected, previous, sample)
        elif current.type != detected and detected != MovementType.UNKNOWN:
            finalized = self._finalize_current()
            self.state.current_event = self._open_event(detected, previous, sample)
        else:
            current.samples.append(sample)
            current.peak_velocity = max(current.peak_velocity, sample.velocity)

        self.state.current_movement = detected
        return ClassificationResult(detected, sample.velocity, finalized)

    def _velocity(self, previous: Optional[ClassifiedSample], x: float, y: float,
                  timestamp: float) -> float:
        if previous is None:
            return 0.0
        dt = (timestamp - previous.timestamp) / 1000.0
        if not dt > 0:
            return 0.0
        distance = math.hypot(x - previous.x, y - previous.y)
        return (distance / self.config.pixels_per_degree) / dt

    def _detect_type(self, sample: ClassifiedSample) -> MovementType:
        """Hysteresis state machine over velocity and time since the last saccade."""
        cfg = self.config
        post = self.state.post_saccade
        current = self.state.current_event

        if sample.velocity > cfg.saccade_velocity_threshold:
            post.active = False
            return MovementType.SACCADE

        # The in-flight saccade ended at the previous sample
        if current is not None and current.type == MovementType.SACCADE:
            self._arm_post_saccade(current)

        if post.active:
            elapsed = sample.timestamp - post.saccade_end_time
            if elapsed >= cfg.glissade_window:
                post.active = False
                return MovementType.FIXATION
            if sample.velocity > cfg.pso_velocity_threshold:
                if elapsed < cfg.pso_window:
                    return MovementType.PSO
                return MovementType.GLISSADE
            # Turning points of an oscillation stay in the open post-saccadic event
            if current is not None and current.type in POST_SACCADIC_TYPES:
                return current.type

        if sample.velocity < cfg.pso_velocity_threshold:
            return MovementType.FIXATION

        return MovementType.UNKNOWN

    def _arm_post_saccade(self, saccade: OpenEvent):
        last = saccade.samples[-1]
        post = self.state.post_saccade
        post.active = True
        post.saccade_end_time = last.timestamp
        post.last_direction = math.atan2(last.y - saccade.start_y, last.x - saccade.start_x)
        logger.debug(f"Saccade ended at {last.timestamp:.1f}ms, tracking post-saccadic movement")

    def _open_event(self, movement_type: MovementType, previous: Optional[ClassifiedSample],
                    sample: ClassifiedSample) -> OpenEvent:
        """Start a new event anchored at the onset sample."""
        anchor = previous if previous is not None else sample
        samples = [anchor, sample] if previous is not None else [sample]
        return OpenEvent(
            type=movement_type,
            start_time=anchor.timestamp,
            start_x=anchor.x,
            start_y=anchor.y,
            samples=samples,
            peak_velocity=sample.velocity
        )

    def _finalize_current(self) -> Optional[MovementEvent]:
        """Close the in-flight event; noise and unknown segments are dropped."""
        current = self.state.current_event
        self.state.current_event = None

        if current is None or len(current.samples) < 2:
            return None
        if current.type == MovementType.SACCADE and not self.state.post_saccade.active:
            self._arm_post_saccade(current)
        if current.type in UNEMITTED_TYPES:
            return None

        last = current.samples[-1]
        duration = last.timestamp - current.start_time
        if duration < self.config.min_event_duration:
            logger.debug(f"Discarded {current.type.value} of {duration:.1f}ms")
            return None

        ppd = self.config.pixels_per_degree
        points = np.array([(s.x, s.y) for s in current.samples], dtype=float)
        centroid = points.mean(axis=0)
        extent = points.max(axis=0) - points.min(axis=0)

        event = MovementEvent(
            type=current.type,
            start_time=current.start_time,
            end_time=last.timestamp,
            duration=duration,
            start_x=current.start_x,
            start_y=current.start_y,
            end_x=last.x,
            end_y=last.y,
            peak_velocity=current.peak_velocity,
            amplitude=math.hypot(last.x - current.start_x, last.y - current.start_y) / ppd,
            is_regression=self._is_regression(current.start_x, last.x),
            centroid_x=float(centroid[0]),
            centroid_y=float(centroid[1]),
            dispersion=float(np.hypot(extent[0], extent[1])) / ppd,
            sample_count=len(current.samples)
        )

        self._history.append(event)
        logger.debug(f"{event.type.value} finalized: {event.duration:.1f}ms, "
                     f"amplitude={event.amplitude:.2f}deg")
        return event

    def _is_regression(self, start_x: float, end_x: float) -> bool:
        """Backward displacement against the reading direction."""
        if self.config.reading_direction == 'rtl':
            displacement = end_x - start_x
        else:
            displacement = start_x - end_x
        return displacement >= self.config.regression_tolerance_px

    def finalize(self) -> Optional[MovementEvent]:
        """
        Force-finalize the in-flight event (e.g. at session end).

        Returns:
            The finalized event, or None if it was too short or empty
        """
        event = self._finalize_current()
        self.state.current_movement = MovementType.UNKNOWN
        return event

    def mark_tracking_loss(self) -> Optional[MovementEvent]:
        """
        Handle a gap in the gaze stream.

        The in-flight event is closed and the velocity reference is dropped so
        the next valid sample starts fresh instead of measuring across the gap.
        """
        event = self._finalize_current()
        self.state.samples.clear()
        self.state.current_movement = MovementType.UNKNOWN
        logger.debug("Tracking loss, classification suspended until next valid sample")
        return event

    def get_metrics(self) -> REMoDNaVMetrics:
        """Summary metrics over the finalized events."""
        return compute_metrics(
            self.events,
            microsaccade_amplitude_threshold=self.config.microsaccade_amplitude_threshold,
            fixation_duration_threshold=self.config.fixation_duration_threshold
        )

    def reset(self):
        """Drop window, in-flight event, post-saccade state and history together."""
        self.state = self._new_state()
        self._history = deque(maxlen=self.config.event_history_size)
        logger.info("MovementClassifier reset")
