"""
Validation and Error Handling Utilities
Centralized input validation and error handling for the gaze pipeline.
"""

import os
import math
import logging
from typing import Any, Tuple


class ValidationUtils:
    """Centralized validation utilities to reduce code duplication"""

    @staticmethod
    def is_finite_number(value: Any) -> bool:
        """True for real, finite numbers (bools excluded)"""
        if isinstance(value, bool) or value is None:
            return False
        try:
            return math.isfinite(float(value))
        except (TypeError, ValueError):
            return False

    @staticmethod
    def validate_gaze_sample(x: Any, y: Any, timestamp: Any, context="gaze sample") -> bool:
        """Check that a raw gaze observation carries usable coordinates and time"""
        for name, value in (('x', x), ('y', y), ('timestamp', timestamp)):
            if not ValidationUtils.is_finite_number(value):
                logging.debug(f"{context}: invalid {name} value {value!r}")
                return False
        return True

    @staticmethod
    def validate_viewport(width: Any, height: Any) -> Tuple[bool, str]:
        """Validate viewport dimensions used for calibration"""
        if not ValidationUtils.is_finite_number(width) or not ValidationUtils.is_finite_number(height):
            return False, "Viewport dimensions must be numbers"
        if float(width) <= 0 or float(height) <= 0:
            return False, f"Invalid viewport {width}x{height}"
        return True, "Viewport is valid"


class ErrorHandlingUtils:
    """Centralized error handling utilities"""

    @staticmethod
    def log_performance_warning(operation: str, duration: float, threshold: float = 1.0):
        """Log performance warnings for slow operations (durations in ms)"""
        if duration > threshold:
            logging.warning(f"Performance warning: {operation} took {duration:.2f}ms "
                            f"(threshold: {threshold:.2f}ms)")

    @staticmethod
    def create_error_context(operation: str, **kwargs) -> str:
        """Create detailed error context for logging"""
        context_parts = [operation]
        for key, value in kwargs.items():
            context_parts.append(f"{key}={value}")
        return " | ".join(context_parts)


# Logging configuration with multiple handlers
def setup_logging(log_file: str = 'gaze_pipeline.log', console_level: int = logging.WARNING):
    """Configure logging with file and console handlers; latency warnings also go to <log_file>_performance"""
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)

    # Clear existing handlers to prevent duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    simple_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    )

    # File handler for detailed logs
    file_handler = logging.FileHandler(log_file, mode='a')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(detailed_formatter)
    logger.addHandler(file_handler)

    # Console handler for important messages
    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(simple_formatter)
    logger.addHandler(console_handler)

    # Performance log for latency warnings
    root, ext = os.path.splitext(log_file)
    perf_handler = logging.FileHandler(f"{root}_performance{ext or '.log'}", mode='a')
    perf_handler.setLevel(logging.INFO)
    perf_handler.setFormatter(simple_formatter)
    perf_handler.addFilter(lambda record: 'performance' in record.getMessage().lower())
    logger.addHandler(perf_handler)

    return logger
