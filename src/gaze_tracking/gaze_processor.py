"""
Real-time Gaze Processing Pipeline.

Integrates the smoothing/calibration stage, movement classification,
metrics aggregation and clinical scoring into one session object for a
host application.

Each GazeProcessor owns exactly one GazeFilter, CalibrationModel and
MovementClassifier. During a calibration phase samples are smoothed but
not classified, so the calibration model and the classifier never have
two writers.
"""

import logging
from typing import Optional, Dict, Any, List
from dataclasses import dataclass
from PyQt6.QtCore import QObject, pyqtSignal

from config import TrackingConfig
from utils.performance import PerformanceMonitor
from utils.validation import ErrorHandlingUtils
from utils.clinical_scoring import ETDD70Engine, ETDD70Score, ScoringInput, ScoringThresholds
from .calibration import CalibrationModel
from .gaze_filter import GazeFilter, FilteredFrame
from .movement_classifier import MovementClassifier, MovementEvent, MovementType

logger = logging.getLogger(__name__)

# Samples between statistics_updated emissions
STATS_INTERVAL = 100


@dataclass
class ProcessingStats:
    """Statistics for gaze processing pipeline performance."""
    total_samples: int = 0
    invalid_samples: int = 0
    events_finalized: int = 0
    calibration_points: int = 0
    average_latency_ms: float = 0.0
    peak_latency_ms: float = 0.0
    memory_mb: float = 0.0
    error_count: int = 0


class GazeProcessor(QObject):
    """
    Session-level gaze processing pipeline.

    Handles the complete workflow:
    1. Smooth, gate and calibrate raw gaze samples
    2. Classify the filtered stream into movement events
    3. Aggregate metrics and score reading behaviour on demand
    """

    # PyQt signals for communication with the host
    movement_classified = pyqtSignal(str)  # MovementType value of the latest sample
    event_finalized = pyqtSignal(object)  # MovementEvent
    calibration_finished = pyqtSignal(bool)  # True if training succeeded
    processing_error = pyqtSignal(str)  # Error message
    statistics_updated = pyqtSignal(object)  # ProcessingStats

    def __init__(self, config: Optional[TrackingConfig] = None,
                 thresholds: Optional[ScoringThresholds] = None):
        """
        Initialize gaze processor.

        Args:
            config: Tracking configuration
            thresholds: Clinical scoring thresholds
        """
        super().__init__()

        self.config = config or TrackingConfig()
        self.calibration = self._create_calibration(self.config)
        self.gaze_filter = GazeFilter(self.config, self.calibration)
        self.classifier = MovementClassifier(self.config)
        self.scoring_engine = ETDD70Engine(thresholds)

        self.performance = PerformanceMonitor()
        self.stats = ProcessingStats()
        self._calibrating = False

        logger.info("GazeProcessor initialized")

    @staticmethod
    def _create_calibration(config: TrackingConfig) -> CalibrationModel:
        return CalibrationModel(
            viewport_width=config.viewport_width,
            viewport_height=config.viewport_height,
            ridge_lambda=config.ridge_lambda,
            min_points=config.min_calibration_points
        )

    def configure(self, options: Dict[str, Any]) -> TrackingConfig:
        """
        Apply host options and start a fresh session with them.

        The calibration survives unless the viewport or the calibration
        parameters change.

        Args:
            options: Tracking options (snake_case or camelCase names)

        Returns:
            The configuration now in effect
        """
        new_config = TrackingConfig.from_dict(options)

        calibration_keys = ('viewport_width', 'viewport_height', 'ridge_lambda', 'min_calibration_points')
        if any(getattr(new_config, k) != getattr(self.config, k) for k in calibration_keys):
            logger.warning("Calibration parameters changed, discarding calibration")
            self.calibration = self._create_calibration(new_config)

        self.config = new_config
        self.gaze_filter = GazeFilter(self.config, self.calibration)
        self.classifier = MovementClassifier(self.config)
        self._calibrating = False

        logger.info(f"Gaze processor configured: window={self.config.window_size}, "
                    f"saccade>{self.config.saccade_velocity_threshold}deg/s")
        return self.config

    @property
    def is_calibrated(self) -> bool:
        return self.calibration.is_calibrated

    @property
    def is_calibrating(self) -> bool:
        return self._calibrating

    def process_sample(self, x: float, y: float, timestamp: float) -> Optional[FilteredFrame]:
        """
        Process a single raw gaze sample through the pipeline.

        Args:
            x: Raw gaze x in pixels
            y: Raw gaze y in pixels
            timestamp: Sample time in milliseconds

        Returns:
            FilteredFrame, or None for an unusable sample or a processing error
        """
        started = self.performance.start()
        self.stats.total_samples += 1

        try:
            frame = self.gaze_filter.process_sample(x, y, timestamp)

            if frame is None:
                self.stats.invalid_samples += 1
                if not self._calibrating:
                    self._emit_event(self.classifier.mark_tracking_loss())
                    self.movement_classified.emit(MovementType.UNKNOWN.value)
                return None

            if self._calibrating:
                return frame

            result = self.classifier.process_sample(frame.x, frame.y, frame.timestamp, frame.velocity)
            self._emit_event(result.finalized_event)
            self.movement_classified.emit(result.movement_type.value)
            return frame

        except Exception as e:
            self.stats.error_count += 1
            error_msg = f"Error processing gaze sample: {str(e)}"
            context = ErrorHandlingUtils.create_error_context("process_sample", x=x, y=y, timestamp=timestamp)
            logger.error(f"{error_msg} [{context}]", exc_info=True)
            self.processing_error.emit(error_msg)
            return None

        finally:
            self.performance.record(started)
            if self.stats.total_samples % STATS_INTERVAL == 0:
                self.statistics_updated.emit(self.get_statistics())

    def _emit_event(self, event: Optional[MovementEvent]):
        if event is None:
            return
        self.stats.events_finalized += 1
        self.event_finalized.emit(event)

    def begin_calibration(self):
        """
        Enter the calibration phase.

        The in-flight event is finalized and previous calibration pairs are
        dropped; classification is suspended until end_calibration(). The
        current weights stay in effect until a new training succeeds.
        """
        self._emit_event(self.classifier.finalize())
        self.calibration.clear_points()
        self.stats.calibration_points = 0
        self._calibrating = True
        logger.info("Calibration started")

    def add_calibration_target(self, target_x: float, target_y: float) -> bool:
        """
        Pair a screen target with the latest uncalibrated gaze position.

        Args:
            target_x: Target x in screen pixels
            target_y: Target y in screen pixels

        Returns:
            True if the pair was recorded
        """
        if not self._calibrating:
            logger.warning("Calibration target ignored outside the calibration phase")
            return False

        gaze = self.gaze_filter.last_gated_point
        if gaze is None:
            logger.warning("Calibration target ignored, no gaze sample yet")
            return False

        added = self.calibration.add_point(gaze[0], gaze[1], target_x, target_y)
        self.stats.calibration_points = self.calibration.point_count
        return added

    def end_calibration(self) -> bool:
        """
        Leave the calibration phase and train the model.

        Returns:
            True if training succeeded; on failure the previous weights stay in place
        """
        if not self._calibrating:
            logger.warning("end_calibration called without an active calibration")
            return False

        self._calibrating = False
        success = self.calibration.train()
        if not success:
            logger.warning(f"Calibration failed with {self.calibration.point_count} points")

        self.calibration_finished.emit(success)
        return success

    def clear_calibration(self):
        """Return to the identity transform."""
        self.calibration.clear()
        self.stats.calibration_points = 0

    def finalize_session(self) -> Optional[MovementEvent]:
        """
        Close the in-flight event at the end of a recording.

        Returns:
            The finalized event, or None
        """
        event = self.classifier.finalize()
        self._emit_event(event)
        logger.info(f"Session finalized with {len(self.classifier.events)} events")
        return event

    def get_events(self) -> List[MovementEvent]:
        """Finalized events, oldest first."""
        return self.classifier.events

    def get_metrics(self):
        """Summary metrics over the finalized events."""
        return self.classifier.get_metrics()

    def get_score(self, text_length: int, total_reading_time: Optional[float] = None) -> ETDD70Score:
        """
        Score the session's finalized events.

        Args:
            text_length: Characters in the text that was read
            total_reading_time: Reading time in ms; defaults to the span of the events

        Returns:
            ETDD70Score
        """
        scoring_input = ScoringInput.from_events(self.classifier.events, text_length, total_reading_time)
        return self.scoring_engine.score(scoring_input)

    def get_statistics(self) -> ProcessingStats:
        """
        Get current processing statistics.

        Returns:
            Current statistics
        """
        summary = self.performance.get_performance_summary()
        self.stats.average_latency_ms = summary['avg_latency']
        self.stats.peak_latency_ms = summary['peak_latency']
        self.stats.memory_mb = summary['memory_mb']
        return self.stats

    def reset(self):
        """Start a new session; the calibration is kept."""
        self.gaze_filter.reset()
        self.classifier.reset()
        self.performance.reset()
        self.stats = ProcessingStats(calibration_points=self.calibration.point_count)
        self._calibrating = False
        logger.info("GazeProcessor reset")
