#!/usr/bin/env python3
"""
Test script for the session-level gaze processing pipeline.

Drives GazeProcessor with synthetic samples and checks signals, the
calibration phase, event emission, scoring and statistics.
"""

import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

import numpy as np
from PyQt6.QtCore import QCoreApplication

from gaze_tracking.gaze_processor import GazeProcessor, ProcessingStats
from gaze_tracking.movement_classifier import MovementType
from utils.clinical_scoring import ETDD70Score, RiskLevel

CALIBRATION_POINTS = [(100.0, 100.0), (800.0, 100.0), (100.0, 600.0), (800.0, 600.0), (450.0, 350.0)]


def ensure_app():
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app


def affine_target(x, y):
    return 1.1 * x + 40.0, 0.95 * y + 25.0


def reading_stream():
    """Two fixations joined by a forward saccade, then a regression."""
    samples = [(200.0, 300.0, float(t)) for t in range(0, 301, 10)]
    samples.append((500.0, 300.0, 310.0))
    samples.extend((500.0, 300.0, float(t)) for t in range(320, 621, 10))
    samples.append((250.0, 300.0, 630.0))
    samples.extend((250.0, 300.0, float(t)) for t in range(640, 941, 10))
    return samples


def test_processing_pipeline():
    """Test samples flowing through filter and classifier."""
    print("Testing processing pipeline...")
    ensure_app()

    processor = GazeProcessor()
    classified = []
    finalized = []
    processor.movement_classified.connect(classified.append)
    processor.event_finalized.connect(finalized.append)

    samples = reading_stream()
    for x, y, t in samples:
        frame = processor.process_sample(x, y, t)
        assert frame is not None

    processor.finalize_session()
    events = processor.get_events()

    assert len(classified) == len(samples)
    assert MovementType.SACCADE.value in classified
    assert len(finalized) == len(events)
    assert [e.type for e in events].count(MovementType.SACCADE) == 2
    assert [e.type for e in events].count(MovementType.FIXATION) == 3

    metrics = processor.get_metrics()
    assert metrics.saccade_count == 2
    assert metrics.regression_count == 1
    print(f"✓ {len(events)} events from {len(samples)} samples")


def test_invalid_sample_is_tracking_loss():
    """Test that an unusable sample closes the in-flight event."""
    print("Testing tracking loss handling...")
    ensure_app()

    processor = GazeProcessor()
    classified = []
    processor.movement_classified.connect(classified.append)

    for t in range(0, 201, 10):
        processor.process_sample(300.0, 300.0, float(t))
    assert processor.process_sample(float('nan'), 300.0, 210.0) is None

    assert classified[-1] == MovementType.UNKNOWN.value
    assert len(processor.get_events()) == 1
    assert processor.get_statistics().invalid_samples == 1
    print("✓ Tracking loss finalized the fixation")


def test_calibration_phase():
    """Test collecting targets, training and applying calibration."""
    print("Testing calibration phase...")
    ensure_app()

    processor = GazeProcessor()
    results = []
    processor.calibration_finished.connect(results.append)

    processor.begin_calibration()
    assert processor.is_calibrating

    t = 0.0
    for x, y in CALIBRATION_POINTS:
        processor.process_sample(x, y, t)
        assert processor.add_calibration_target(*affine_target(x, y))
        t += 10.0

    assert processor.get_events() == []
    assert processor.end_calibration()
    assert results == [True]
    assert processor.is_calibrated
    assert not processor.is_calibrating

    # A saccadic jump passes through unsmoothed, so the output is the calibrated raw point
    frame = processor.process_sample(450.0, 350.0, t + 200.0)
    frame = processor.process_sample(100.0, 100.0, t + 210.0)
    tx, ty = affine_target(100.0, 100.0)
    assert abs(frame.x - tx) < 1.0
    assert abs(frame.y - ty) < 1.0
    print("✓ Calibration trained and applied")


def test_calibration_failure():
    """Test that too few targets leave the identity transform."""
    print("Testing failed calibration...")
    ensure_app()

    processor = GazeProcessor()
    results = []
    processor.calibration_finished.connect(results.append)

    assert not processor.add_calibration_target(10.0, 10.0)

    processor.begin_calibration()
    assert not processor.add_calibration_target(10.0, 10.0)
    for i, (x, y) in enumerate(CALIBRATION_POINTS[:3]):
        processor.process_sample(x, y, i * 10.0)
        processor.add_calibration_target(*affine_target(x, y))

    assert not processor.end_calibration()
    assert results == [False]
    assert not processor.is_calibrated
    assert not processor.end_calibration()
    print("✓ Calibration failure reported")


def test_failed_recalibration_keeps_model():
    """Test that a failed retrain leaves the previous calibration in effect."""
    print("Testing failed recalibration...")
    ensure_app()

    processor = GazeProcessor()
    processor.begin_calibration()
    for i, (x, y) in enumerate(CALIBRATION_POINTS):
        processor.process_sample(x, y, i * 10.0)
        processor.add_calibration_target(*affine_target(x, y))
    assert processor.end_calibration()
    weights_x = processor.calibration.weights_x.copy()
    weights_y = processor.calibration.weights_y.copy()

    processor.begin_calibration()
    assert processor.is_calibrated
    assert processor.calibration.point_count == 0
    processor.process_sample(450.0, 350.0, 500.0)
    assert processor.add_calibration_target(*affine_target(450.0, 350.0))

    assert not processor.end_calibration()
    assert processor.is_calibrated
    assert np.array_equal(processor.calibration.weights_x, weights_x)
    assert np.array_equal(processor.calibration.weights_y, weights_y)
    print("✓ Previous calibration kept")


def test_processing_error_signal():
    """Test that unexpected failures are reported, not raised."""
    print("Testing processing error handling...")
    ensure_app()

    processor = GazeProcessor()
    errors = []
    processor.processing_error.connect(errors.append)

    def broken(*args, **kwargs):
        raise RuntimeError("classifier failure")

    processor.classifier.process_sample = broken
    assert processor.process_sample(10.0, 10.0, 0.0) is None

    assert len(errors) == 1
    assert "classifier failure" in errors[0]
    assert processor.get_statistics().error_count == 1
    print("✓ Error signal emitted")


def test_scoring_and_statistics():
    """Test scoring a session and reading statistics."""
    print("Testing scoring and statistics...")
    ensure_app()

    processor = GazeProcessor()
    updates = []
    processor.statistics_updated.connect(updates.append)

    for x, y, t in reading_stream():
        processor.process_sample(x, y, t)
    processor.finalize_session()

    score = processor.get_score(text_length=60)
    assert isinstance(score, ETDD70Score)
    assert score.risk_level in RiskLevel
    assert abs(score.indicators['regression_rate'].value - 50.0) < 1e-9

    stats = processor.get_statistics()
    assert isinstance(stats, ProcessingStats)
    assert stats.total_samples == len(reading_stream())
    assert stats.events_finalized == len(processor.get_events())
    assert stats.peak_latency_ms >= stats.average_latency_ms >= 0.0
    assert stats.memory_mb >= 0.0
    assert len(updates) == stats.total_samples // 100
    print("✓ Score and statistics available")


def test_configure_and_reset():
    """Test reconfiguration and session reset."""
    print("Testing configure and reset...")
    ensure_app()

    processor = GazeProcessor()
    processor.begin_calibration()
    for i, (x, y) in enumerate(CALIBRATION_POINTS):
        processor.process_sample(x, y, i * 10.0)
        processor.add_calibration_target(*affine_target(x, y))
    assert processor.end_calibration()

    config = processor.configure({'windowSize': 3, 'saccadeVelocityThreshold': 45})
    assert config.window_size == 3
    assert processor.classifier.config.saccade_velocity_threshold == 45.0
    assert processor.is_calibrated

    processor.configure({'viewport_width': 1280})
    assert not processor.is_calibrated

    for x, y, t in reading_stream():
        processor.process_sample(x, y, t)
    processor.reset()
    assert processor.get_events() == []
    assert processor.get_statistics().total_samples == 0
    print("✓ Configure and reset")


def run_all_tests():
    """Run all gaze processor tests."""
    print("="*50)
    print("GAZE PROCESSOR TESTS")
    print("="*50)

    tests = [
        test_processing_pipeline,
        test_invalid_sample_is_tracking_loss,
        test_calibration_phase,
        test_calibration_failure,
        test_failed_recalibration_keeps_model,
        test_processing_error_signal,
        test_scoring_and_statistics,
        test_configure_and_reset
    ]

    passed = 0
    for test_func in tests:
        print(f"\n{test_func.__name__}:")
        try:
            test_func()
            passed += 1
        except AssertionError as e:
            print(f"  Test failed! {e}")

    print("\n" + "="*50)
    print(f"RESULTS: {passed}/{len(tests)} tests passed")
    print("="*50)

    return passed == len(tests)


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
