"""
Ridge-regression calibration for gaze tracking.

Maps stabilized gaze positions to screen coordinates with a per-axis linear
model over (normalized x, normalized y, bias) features. The model is fitted
during an explicit calibration phase and is read-only while tracking.
"""

import math
import logging
from typing import List, Optional, Tuple
from dataclasses import dataclass

import numpy as np

from utils.validation import ValidationUtils

logger = logging.getLogger(__name__)

FEATURE_DIM = 3  # normalized x, normalized y, bias
SINGULAR_TOLERANCE = 1e-6  # relative to the largest diagonal entry


@dataclass(frozen=True)
class CalibrationPoint:
    """A single training pair collected during calibration."""
    features: Tuple[float, float, float]  # normalized x, normalized y, 1
    target_x: float  # Screen pixels
    target_y: float  # Screen pixels


def solve_linear_system(a: np.ndarray, b: np.ndarray) -> Optional[np.ndarray]:
    """
    Solve a dense square system with Gaussian elimination and partial pivoting.

    Args:
        a: Coefficient matrix (n x n)
        b: Right-hand side (n)

    Returns:
        Solution vector, or None if the system is singular or near-singular
    """
    a = np.array(a, dtype=float)
    b = np.array(b, dtype=float)
    n = a.shape[0]
    if a.shape != (n, n) or b.shape != (n,):
        return None

    aug = np.column_stack([a, b])
    scale = float(np.max(np.abs(np.diag(a)))) if n else 0.0
    if not math.isfinite(scale) or scale <= 0.0:
        return None
    tolerance = SINGULAR_TOLERANCE * scale

    # Forward elimination
    for i in range(n):
        pivot_row = i + int(np.argmax(np.abs(aug[i:, i])))
        if pivot_row != i:
            aug[[i, pivot_row]] = aug[[pivot_row, i]]

        if abs(aug[i, i]) < tolerance:
            return None

        for k in range(i + 1, n):
            factor = aug[k, i] / aug[i, i]
            aug[k, i:] -= factor * aug[i, i:]

    # Back substitution
    x = np.zeros(n)
    for i in range(n - 1, -1, -1):
        x[i] = (aug[i, n] - np.dot(aug[i, i + 1:n], x[i + 1:])) / aug[i, i]

    if not np.all(np.isfinite(x)):
        return None
    return x


class CalibrationModel:
    """
    Per-axis ridge regression from gaze to screen coordinates.

    Untrained, the model is the identity transform. Training needs at least
    `min_points` collected pairs and either replaces both weight vectors or
    leaves the model untouched.
    """

    def __init__(self, viewport_width: int = 1920, viewport_height: int = 1080,
                 ridge_lambda: float = 1e-6, min_points: int = 5):
        """
        Initialize calibration model.

        Args:
            viewport_width: Viewport width in pixels (feature normalization and clamping)
            viewport_height: Viewport height in pixels
            ridge_lambda: Regularization strength
            min_points: Minimum number of calibration pairs required for training

        Raises:
            ValueError: If the viewport dimensions are not positive numbers
        """
        valid, message = ValidationUtils.validate_viewport(viewport_width, viewport_height)
        if not valid:
            raise ValueError(message)

        self.viewport_width = float(viewport_width)
        self.viewport_height = float(viewport_height)
        self.ridge_lambda = float(ridge_lambda)
        self.min_points = int(min_points)

        self.points: List[CalibrationPoint] = []
        self._set_identity()

        logger.info(f"CalibrationModel initialized for {viewport_width}x{viewport_height} viewport")

    def _set_identity(self):
        self.weights_x = np.array([self.viewport_width, 0.0, 0.0])
        self.weights_y = np.array([0.0, self.viewport_height, 0.0])
        self.is_calibrated = False

    def _features(self, x: float, y: float) -> Tuple[float, float, float]:
        return (x / self.viewport_width, y / self.viewport_height, 1.0)

    @property
    def point_count(self) -> int:
        return len(self.points)

    def add_point(self, raw_x: float, raw_y: float, target_x: float, target_y: float) -> bool:
        """
        Record a (gaze, target) training pair.

        Args:
            raw_x: Gaze x in pixels
            raw_y: Gaze y in pixels
            target_x: Screen target x in pixels
            target_y: Screen target y in pixels

        Returns:
            True if the pair was recorded, False for non-finite input
        """
        try:
            raw_x, raw_y, target_x, target_y = (float(v) for v in (raw_x, raw_y, target_x, target_y))
        except (TypeError, ValueError):
            logger.warning("Rejected non-numeric calibration point")
            return False
        if not all(math.isfinite(v) for v in (raw_x, raw_y, target_x, target_y)):
            logger.warning(f"Rejected calibration point {(raw_x, raw_y, target_x, target_y)}")
            return False

        self.points.append(CalibrationPoint(
            features=self._features(raw_x, raw_y),
            target_x=target_x,
            target_y=target_y
        ))
        logger.debug(f"Calibration point {len(self.points)}: "
                     f"({raw_x:.1f}, {raw_y:.1f}) -> ({target_x:.1f}, {target_y:.1f})")
        return True

    def train(self) -> bool:
        """
        Fit both axes by ridge regression: (X^T X + lambda I) w = X^T y.

        Returns:
            True if the model was trained, False if there were too few points
            or the system was singular (previous weights are kept)
        """
        if len(self.points) < self.min_points:
            logger.warning(f"Calibration needs {self.min_points} points, "
                           f"have {len(self.points)}")
            return False

        X = np.array([p.features for p in self.points], dtype=float)
        targets_x = np.array([p.target_x for p in self.points], dtype=float)
        targets_y = np.array([p.target_y for p in self.points], dtype=float)

        xtx = X.T @ X + self.ridge_lambda * np.eye(FEATURE_DIM)

        weights_x = solve_linear_system(xtx, X.T @ targets_x)
        weights_y = solve_linear_system(xtx, X.T @ targets_y)

        if weights_x is None or weights_y is None:
            logger.warning("Calibration system is singular, keeping previous weights")
            return False

        self.weights_x = weights_x
        self.weights_y = weights_y
        self.is_calibrated = True

        logger.info(f"Calibration trained on {len(self.points)} points, "
                    f"mean error {self.mean_error():.2f}px")
        return True

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        """
        Map a gaze position to calibrated screen coordinates.

        Args:
            x: Gaze x in pixels
            y: Gaze y in pixels

        Returns:
            Calibrated (x, y), clamped to the viewport; unchanged if untrained
        """
        if not self.is_calibrated:
            return x, y

        features = np.array(self._features(x, y))
        screen_x = float(np.dot(self.weights_x, features))
        screen_y = float(np.dot(self.weights_y, features))

        return (max(0.0, min(self.viewport_width, screen_x)),
                max(0.0, min(self.viewport_height, screen_y)))

    def mean_error(self) -> float:
        """Mean pixel residual of the training pairs under the current weights."""
        if not self.is_calibrated or not self.points:
            return 0.0

        X = np.array([p.features for p in self.points], dtype=float)
        predicted = np.column_stack([X @ self.weights_x, X @ self.weights_y])
        targets = np.array([(p.target_x, p.target_y) for p in self.points], dtype=float)
        return float(np.mean(np.linalg.norm(predicted - targets, axis=1)))

    def clear_points(self):
        """Drop the collected points; trained weights stay in effect."""
        self.points = []

    def clear(self):
        """Drop all collected points and return to the identity transform."""
        self.points = []
        self._set_identity()
        logger.info("Calibration cleared")
