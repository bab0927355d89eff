"""
Gaze Pipeline Configuration Module
Contains tracking defaults, stage constants and configuration loading.
"""

import json
import logging
import math
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Dict, Any, Tuple

logger = logging.getLogger(__name__)

# Recognized tracking options and their defaults
TRACKING_DEFAULTS = {
    'window_size': 5,  # samples in the smoothing window
    'saccade_velocity_threshold': 30.0,  # deg/s
    'pso_velocity_threshold': 15.0,  # deg/s
    'fixation_dispersion_threshold': 1.0,  # deg
    'fixation_duration_threshold': 200.0,  # ms
    'microsaccade_amplitude_threshold': 1.0,  # deg
    'pixels_per_degree': 35.0,  # at typical viewing distance
}

# Host-facing option names accepted alongside the snake_case ones
CAMEL_CASE_ALIASES = {
    'windowSize': 'window_size',
    'saccadeVelocityThreshold': 'saccade_velocity_threshold',
    'psoVelocityThreshold': 'pso_velocity_threshold',
    'fixationDispersionThreshold': 'fixation_dispersion_threshold',
    'fixationDurationThreshold': 'fixation_duration_threshold',
    'microsaccadeAmplitudeThreshold': 'microsaccade_amplitude_threshold',
    'pixelsPerDegree': 'pixels_per_degree',
}

READING_DIRECTIONS = ('ltr', 'rtl')


@dataclass
class TrackingConfig:
    """Parameters shared by the smoothing stage and the movement classifier."""
    window_size: int = TRACKING_DEFAULTS['window_size']
    saccade_velocity_threshold: float = TRACKING_DEFAULTS['saccade_velocity_threshold']
    pso_velocity_threshold: float = TRACKING_DEFAULTS['pso_velocity_threshold']
    fixation_dispersion_threshold: float = TRACKING_DEFAULTS['fixation_dispersion_threshold']
    fixation_duration_threshold: float = TRACKING_DEFAULTS['fixation_duration_threshold']
    microsaccade_amplitude_threshold: float = TRACKING_DEFAULTS['microsaccade_amplitude_threshold']
    pixels_per_degree: float = TRACKING_DEFAULTS['pixels_per_degree']

    # Smoothing and calibration
    gate_decay: float = 0.15
    ridge_lambda: float = 1e-6
    min_calibration_points: int = 5
    viewport_width: int = 1920
    viewport_height: int = 1080

    # Classification
    min_event_duration: float = 10.0  # ms
    pso_window: float = 80.0  # ms after saccade end
    glissade_window: float = 120.0  # ms after saccade end
    regression_tolerance_px: float = 20.0
    reading_direction: str = 'ltr'

    # Buffer capacities
    sample_buffer_size: int = 100
    event_history_size: int = 500

    def validate(self) -> Tuple[bool, str]:
        """Check that the configuration is internally consistent."""
        if self.window_size < 1:
            return False, "Window size must be at least 1"
        if self.pixels_per_degree <= 0:
            return False, "Pixels per degree must be positive"
        if self.pso_velocity_threshold > self.saccade_velocity_threshold:
            return False, "PSO threshold cannot exceed saccade threshold"
        if self.pso_window > self.glissade_window:
            return False, "PSO window must end before the glissade window"
        if self.viewport_width <= 0 or self.viewport_height <= 0:
            return False, "Viewport dimensions must be positive"
        if self.ridge_lambda < 0:
            return False, "Ridge lambda cannot be negative"
        if self.reading_direction not in READING_DIRECTIONS:
            return False, f"Unknown reading direction: {self.reading_direction}"
        return True, "Configuration is valid"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, options: Dict[str, Any]) -> "TrackingConfig":
        """
        Build a configuration from a host options mapping.

        Accepts snake_case field names and the camelCase option names used
        by gaze sources. Unknown keys are ignored, invalid values fall back
        to the defaults.

        Args:
            options: Mapping of option name to value

        Returns:
            TrackingConfig instance
        """
        config = cls()
        if not options:
            return config

        known = {f.name: f for f in fields(cls)}
        for key, value in options.items():
            name = CAMEL_CASE_ALIASES.get(key, key)
            if name not in known:
                logger.warning(f"Ignoring unknown tracking option: {key}")
                continue

            default = getattr(config, name)
            coerced = _coerce_option(value, default)
            if coerced is None:
                logger.warning(f"Invalid value for {key}: {value!r}, keeping {default!r}")
                continue
            setattr(config, name, coerced)

        ok, message = config.validate()
        if not ok:
            logger.warning(f"Rejected tracking configuration ({message}), using defaults")
            return cls()
        return config

    @classmethod
    def from_json_file(cls, path) -> "TrackingConfig":
        """Load a configuration from a JSON file, falling back to defaults."""
        try:
            with open(Path(path), 'r', encoding='utf-8') as f:
                options = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Could not read tracking configuration {path}: {e}")
            return cls()

        if not isinstance(options, dict):
            logger.error(f"Tracking configuration {path} is not a JSON object")
            return cls()
        return cls.from_dict(options)


def _coerce_option(value: Any, default: Any):
    """Coerce an option to the type of its default, None if not possible."""
    if isinstance(default, str):
        return value if isinstance(value, str) else None
    if isinstance(value, bool):
        return None
    try:
        if isinstance(default, int):
            coerced = int(value)
            return coerced if coerced >= 0 and coerced == value else None
        coerced = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(coerced) or coerced < 0:
        return None
    return coerced
