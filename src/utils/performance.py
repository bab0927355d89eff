"""
Performance Monitoring Utilities
Per-sample latency tracking and process memory reporting for the gaze pipeline.
"""

import time
import logging
from collections import deque
from typing import Dict, Any

import numpy as np
import psutil

from utils.validation import ErrorHandlingUtils


class MemoryMonitor:
    """Process memory reporting"""

    @staticmethod
    def get_memory_info() -> Dict[str, float]:
        """Get current memory usage information"""
        try:
            process = psutil.Process()
            memory_info = process.memory_info()
            return {
                'rss': memory_info.rss / (1024 * 1024),  # MB
                'vms': memory_info.vms / (1024 * 1024),  # MB
                'percent': process.memory_percent()
            }
        except (psutil.Error, OSError) as e:
            logging.error(f"Failed to get memory info: {e}")
            return {'rss': 0.0, 'vms': 0.0, 'percent': 0.0}


class PerformanceMonitor:
    """Per-sample latency monitoring over a bounded window"""

    def __init__(self, window: int = 100, warning_threshold_ms: float = 5.0):
        self.latencies = deque(maxlen=window)
        self.warning_threshold_ms = warning_threshold_ms
        self.sample_count = 0
        self.peak_latency = 0.0

    def start(self) -> float:
        """Timestamp for a measurement started now"""
        return time.perf_counter()

    def record(self, started: float, operation: str = "sample processing") -> float:
        """Record the latency of an operation started at `started`, in ms"""
        latency = (time.perf_counter() - started) * 1000.0
        self.latencies.append(latency)
        self.sample_count += 1
        self.peak_latency = max(self.peak_latency, latency)
        ErrorHandlingUtils.log_performance_warning(operation, latency, self.warning_threshold_ms)
        return latency

    def get_performance_summary(self) -> Dict[str, Any]:
        """Get performance summary"""
        summary = {
            'avg_latency': 0.0,
            'peak_latency': self.peak_latency,
            'sample_count': self.sample_count,
            'memory_mb': MemoryMonitor.get_memory_info()['rss']
        }
        if self.latencies:
            summary['avg_latency'] = float(np.mean(self.latencies))
        return summary

    def reset(self):
        self.latencies.clear()
        self.sample_count = 0
        self.peak_latency = 0.0
