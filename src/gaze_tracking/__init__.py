"""
Gaze tracking module for the gaze pipeline.
Provides smoothing, calibration and eye movement classification.
"""

from .calibration import CalibrationModel, CalibrationPoint, solve_linear_system
from .gaze_filter import GazeFilter, GazeSample, FilteredFrame, GateState, compute_velocity, gate_position
from .movement_classifier import (
    MovementClassifier, MovementEvent, MovementType, ClassificationResult, UNEMITTED_TYPES
)
from .gaze_processor import GazeProcessor, ProcessingStats

__all__ = [
    'CalibrationModel', 'CalibrationPoint', 'solve_linear_system',
    'GazeFilter', 'GazeSample', 'FilteredFrame', 'GateState', 'compute_velocity', 'gate_position',
    'MovementClassifier', 'MovementEvent', 'MovementType', 'ClassificationResult', 'UNEMITTED_TYPES',
    'GazeProcessor', 'ProcessingStats'
]
