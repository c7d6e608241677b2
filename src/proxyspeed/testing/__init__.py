"""Latency and throughput probes."""

from .latency import LatencyProber, calculate_latency_stats
from .throughput import ThroughputProber, ZeroReader, aggregate_transfers

__all__ = [
    "LatencyProber",
    "ThroughputProber",
    "ZeroReader",
    "aggregate_transfers",
    "calculate_latency_stats",
]
