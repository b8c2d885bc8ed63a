"""
Benchmark runner.
"""

from .runner import (
    BenchmarkRunner,
    build_summary,
    classify_benchmark,
    compute_deviation,
    default_benchmark_configs,
)


__all__ = [
    "BenchmarkRunner",
    "build_summary",
    "classify_benchmark",
    "compute_deviation",
    "default_benchmark_configs",
]
