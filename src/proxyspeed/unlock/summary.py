from __future__ import annotations

from typing import Sequence

from ..models import UnlockResult, UnlockSummary

SUMMARY_MAX_LENGTH = 100


def _label(result: UnlockResult) -> str:
    if result.region:
        return f"{result.platform}:{result.region}"
    return result.platform


def summarize_unlock(results: Sequence[UnlockResult]) -> UnlockSummary:
    """Split results into supported and unsupported platform labels."""
    summary = UnlockSummary(total_tested=len(results))
    for result in results:
        if result.supported:
            summary.supported_platforms.append(_label(result))
        else:
            summary.unsupported_platforms.append(result.platform)
    summary.total_supported = len(summary.supported_platforms)
    return summary


def format_unlock_summary(results: Sequence[UnlockResult]) -> str:
    """One-line summary for tables: ``N/A``, ``None`` or the unlocked platforms."""
    if not results:
        return "N/A"
    supported = summarize_unlock(results).supported_platforms
    if not supported:
        return "None"
    text = ", ".join(supported)
    if len(text) > SUMMARY_MAX_LENGTH:
        text = text[:SUMMARY_MAX_LENGTH] + "..."
    return text
