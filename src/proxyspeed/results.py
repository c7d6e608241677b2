"""Collection and post-processing of per-proxy results."""
from __future__ import annotations

import statistics
from collections import Counter
from typing import Any, Dict, Iterator, List, Optional

from .config.request import TestConfig
from .constants import MODE_UNLOCK_ONLY
from .models import Result

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


def result_status(result: Result, config: TestConfig) -> str:
    """Return ``success`` or ``failed`` for ``result`` under ``config``."""
    if config.test_mode == MODE_UNLOCK_ONLY:
        if result.unlock_summary.total_supported > 0:
            return STATUS_SUCCESS
        return STATUS_FAILED
    if result.packet_loss >= 100 or result.latency > config.max_latency:
        return STATUS_FAILED
    if (
        result.download_speed < config.min_download_speed
        or result.upload_speed < config.min_upload_speed
    ):
        return STATUS_FAILED
    return STATUS_SUCCESS


class ResultSet:
    """Ordered results of one sweep.

    :meth:`add` matches the callback signature of
    :meth:`SpeedTester.test_proxies`, so an instance can collect results
    directly.
    """

    def __init__(self) -> None:
        self._results: List[Result] = []

    def add(self, result: Result) -> None:
        self._results.append(result)

    def __iter__(self) -> Iterator[Result]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self._results]

    def filter_results(self, config: TestConfig) -> List[Result]:
        """Drop results over the latency cap or under a speed floor.

        A zero threshold disables its check.
        """
        kept = []
        for result in self._results:
            if config.max_latency > 0 and result.latency > config.max_latency:
                continue
            if config.min_download_speed > 0 and result.download_speed < config.min_download_speed:
                continue
            if config.min_upload_speed > 0 and result.upload_speed < config.min_upload_speed:
                continue
            kept.append(result)
        return kept

    def result_status(self, result: Result, config: TestConfig) -> str:
        return result_status(result, config)

    @staticmethod
    def _best(results: List[Result], attr: str, lowest: bool = False) -> Optional[Result]:
        candidates = [r for r in results if getattr(r, attr) > 0]
        if not candidates:
            return None
        pick = min if lowest else max
        return pick(candidates, key=lambda r: getattr(r, attr))

    def summarize(self, config: Optional[TestConfig] = None) -> Dict[str, Any]:
        """Counts, protocol distribution and best performers of the sweep."""
        reachable = [r for r in self._results if r.packet_loss < 100 and r.latency > 0]
        summary: Dict[str, Any] = {
            "total": len(self._results),
            "reachable": len(reachable),
            "protocols": dict(Counter(r.proxy_type for r in self._results)),
            "average_latency": (
                round(statistics.fmean(r.latency for r in reachable), 2) if reachable else 0.0
            ),
        }
        if config is not None:
            statuses = Counter(result_status(r, config) for r in self._results)
            summary["success"] = statuses[STATUS_SUCCESS]
            summary["failed"] = statuses[STATUS_FAILED]

        for label, attr, lowest in (
            ("best_latency", "latency", True),
            ("best_download", "download_speed", False),
            ("best_upload", "upload_speed", False),
        ):
            best = self._best(self._results, attr, lowest)
            summary[label] = best.proxy_name if best else None
        return summary
