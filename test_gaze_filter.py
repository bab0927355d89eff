#!/usr/bin/env python3
"""
Test script for the gaze smoothing and gating stage.

Covers velocity estimation, the recency-weighted window, the gated blend
and saccade pass-through without requiring a camera or a GUI.
"""

import sys
import os
import math

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from config import TrackingConfig
from gaze_tracking.gaze_filter import GazeFilter, GazeSample, compute_velocity, gate_position


def test_velocity_computation():
    """Test angular velocity from two samples."""
    print("Testing velocity computation...")

    # 35 px at 35 px/deg in 100 ms -> 10 deg/s
    velocity = compute_velocity(GazeSample(0, 0, 0), GazeSample(35, 0, 100), 35.0)
    assert abs(velocity - 10.0) < 1e-9

    velocity = compute_velocity(GazeSample(0, 0, 0), GazeSample(21, 28, 1000), 35.0)
    assert abs(velocity - 1.0) < 1e-9
    print("✓ Velocity computed in deg/s")


def test_velocity_zero_guard():
    """Test that non-positive time steps yield zero velocity."""
    print("Testing velocity zero guard...")

    assert compute_velocity(GazeSample(0, 0, 100), GazeSample(500, 500, 100), 35.0) == 0.0
    assert compute_velocity(GazeSample(0, 0, 100), GazeSample(500, 500, 50), 35.0) == 0.0
    print("✓ Zero and negative dt give zero velocity")


def test_gate_values():
    """Test reset and update gates at rest and above the saccade threshold."""
    print("Testing gate values...")

    position, reset_gate, update_gate = gate_position((0.0, 0.0), (10.0, 10.0), 0.0, 30.0, 0.15)
    expected_reset = 1.0 / (1.0 + math.exp(1.0))
    assert abs(reset_gate - expected_reset) < 1e-9
    assert abs(update_gate - (1.0 - expected_reset * 0.15)) < 1e-9
    assert abs(position[0] - (1.0 - update_gate) * 10.0) < 1e-9

    position, reset_gate, update_gate = gate_position((0.0, 0.0), (10.0, 10.0), 45.0, 30.0, 0.15)
    assert position == (10.0, 10.0)
    assert reset_gate > 0.5
    print("✓ Gates follow velocity and bypass at saccade speed")


def test_first_sample_passthrough():
    """Test that the hidden state is seeded from the first sample."""
    print("Testing first sample...")

    gaze_filter = GazeFilter()
    frame = gaze_filter.process_sample(640.0, 480.0, 0.0)

    assert frame is not None
    assert abs(frame.x - 640.0) < 1e-9
    assert abs(frame.y - 480.0) < 1e-9
    assert frame.velocity == 0.0
    print("✓ First sample is not pulled toward the origin")


def test_saccade_sharpness():
    """Test that a saccadic jump is output exactly as observed."""
    print("Testing saccade sharpness preservation...")

    gaze_filter = GazeFilter()
    for i in range(6):
        gaze_filter.process_sample(100.0 + (i % 2), 200.0, i * 10.0)

    frame = gaze_filter.process_sample(400.0, 260.0, 60.0)

    assert frame.is_saccade
    assert frame.velocity >= 30.0
    assert frame.x == 400.0
    assert frame.y == 260.0
    print("✓ Saccade output equals raw input")


def test_fixation_smoothing():
    """Test that jitter around a point is damped."""
    print("Testing fixation smoothing...")

    gaze_filter = GazeFilter()
    outputs = []
    for i in range(30):
        jitter = 2.0 if i % 2 else -2.0
        frame = gaze_filter.process_sample(500.0 + jitter, 300.0 - jitter, i * 33.0)
        outputs.append(frame)

    late_x = [f.x for f in outputs[10:]]
    assert max(late_x) - min(late_x) < 4.0
    assert all(not f.is_saccade for f in outputs)
    assert all(abs(f.x - 500.0) <= 2.0 for f in outputs)
    print("✓ Fixation jitter reduced")


def test_window_bounded():
    """Test that the sliding window keeps only the newest samples."""
    print("Testing window size...")

    gaze_filter = GazeFilter(TrackingConfig(window_size=5))
    for i in range(12):
        gaze_filter.process_sample(float(i), 0.0, i * 10.0)

    window = gaze_filter.window
    assert len(window) == 5
    assert window[0].x == 7.0
    assert window[-1].x == 11.0
    print("✓ Window holds the last 5 samples")


def test_invalid_samples():
    """Test that unusable samples are rejected without touching state."""
    print("Testing invalid samples...")

    gaze_filter = GazeFilter()
    assert gaze_filter.process_sample(float('nan'), 10.0, 0.0) is None
    assert gaze_filter.process_sample(10.0, None, 0.0) is None
    assert gaze_filter.process_sample(10.0, 10.0, float('inf')) is None
    assert gaze_filter.window == []
    assert not gaze_filter.gate.initialized
    print("✓ Invalid samples rejected")


def test_reset_keeps_calibration():
    """Test that reset clears runtime state only."""
    print("Testing filter reset...")

    gaze_filter = GazeFilter()
    gaze_filter.calibration.is_calibrated = True
    gaze_filter.process_sample(10.0, 10.0, 0.0)
    gaze_filter.reset()

    assert gaze_filter.window == []
    assert gaze_filter.last_gated_point is None
    assert gaze_filter.calibration.is_calibrated
    print("✓ Reset keeps calibration")


def run_all_tests():
    """Run all gaze filter tests."""
    print("="*50)
    print("GAZE FILTER TESTS")
    print("="*50)

    tests = [
        test_velocity_computation,
        test_velocity_zero_guard,
        test_gate_values,
        test_first_sample_passthrough,
        test_saccade_sharpness,
        test_fixation_smoothing,
        test_window_bounded,
        test_invalid_samples,
        test_reset_keeps_calibration
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
