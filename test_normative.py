#!/usr/bin/env python3
"""
Test script for normative comparison against grade-level baselines.
"""

import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from utils.normative import compare_metric_to_norm, comprehensive_comparison, grade_from_age


def test_grade_from_age():
    """Test age to grade band mapping."""
    print("Testing grade bands...")

    assert grade_from_age(5) == 'K-1'
    assert grade_from_age(6) == 'K-1'
    assert grade_from_age(7) == '2-3'
    assert grade_from_age(10) == '4-5'
    assert grade_from_age(13) == '6-8'
    assert grade_from_age(14) == 'adult'
    print("✓ Ages mapped to grade bands")


def test_value_at_mean():
    """Test that the baseline mean is the 50th percentile."""
    print("Testing value at baseline mean...")

    comparison = compare_metric_to_norm(100.0, 'wpm', '4-5')
    assert comparison.z_score == 0.0
    assert comparison.percentile == 50
    assert comparison.classification == 'average'
    assert comparison.description == 'Reading speed is within normal range for age'
    print("✓ Mean maps to 50th percentile")


def test_percentile_clamped():
    """Test that extreme values stay within 1-99."""
    print("Testing percentile clamping...")

    slow = compare_metric_to_norm(20.0, 'wpm', 'adult')
    assert slow.percentile == 1
    assert slow.classification == 'critical'

    fast = compare_metric_to_norm(500.0, 'wpm', 'adult')
    assert fast.percentile == 99
    assert fast.classification == 'excellent'
    print("✓ Percentiles clamped")


def test_inverted_metric():
    """Test that long fixations rank low when lower is better."""
    print("Testing inverted metric...")

    comparison = compare_metric_to_norm(270.0, 'fixation_duration', 'adult', inverted=True)
    assert abs(comparison.z_score - 2.0) < 1e-9
    assert comparison.percentile == 2
    assert comparison.classification == 'critical'
    assert comparison.description == 'Prolonged fixations indicate processing difficulties'
    print("✓ Inverted percentile")


def test_unknown_metric_and_grade():
    """Test neutral comparison and adult fallback."""
    print("Testing missing baselines...")

    comparison = compare_metric_to_norm(42.0, 'blink_rate', 'adult')
    assert comparison.percentile == 50
    assert comparison.classification == 'average'
    assert comparison.description == 'No baseline data available'

    fallback = compare_metric_to_norm(200.0, 'wpm', 'graduate')
    assert fallback.percentile == 50
    print("✓ Missing baselines handled")


def test_comprehensive_comparison():
    """Test comparing a set of metrics for one reader."""
    print("Testing comprehensive comparison...")

    results = comprehensive_comparison({
        'wpm': 60.0,
        'fixation_duration': 270.0,
        'regression_count': 10.0,
        'chaos_index': None,
    }, age=8)

    assert set(results) == {'wpm', 'fixation_duration', 'regression_count'}
    assert results['wpm'].classification == 'average'
    assert results['fixation_duration'].percentile == 50
    assert results['regression_count'].classification == 'critical'
    assert results['wpm'].to_dict()['percentile'] == 50
    print("✓ Metrics compared for grade 2-3")


def run_all_tests():
    """Run all normative comparison tests."""
    print("="*50)
    print("NORMATIVE COMPARISON TESTS")
    print("="*50)

    tests = [
        test_grade_from_age,
        test_value_at_mean,
        test_percentile_clamped,
        test_inverted_metric,
        test_unknown_metric_and_grade,
        test_comprehensive_comparison
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
