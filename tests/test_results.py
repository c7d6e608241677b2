import json

from proxyspeed.config import build_test_config
from proxyspeed.constants import MEGABYTE
from proxyspeed.models import Result, TestError, UnlockResult, UnlockStatus, format_speed
from proxyspeed.results import ResultSet, result_status
from proxyspeed.unlock.summary import format_unlock_summary, summarize_unlock


def _result(name, **fields):
    return Result(proxy_name=name, proxy_type=fields.pop("proxy_type", "ss"), **fields)


def test_format_helpers():
    result = _result("a", latency=123.7, jitter=0, packet_loss=12.5, download_speed=1536)
    assert result.format_latency() == "123ms"
    assert result.format_jitter() == "N/A"
    assert result.format_packet_loss() == "12.5%"
    assert result.format_download_speed() == "1.50KB/s"
    assert result.format_upload_speed() == "0.00B/s"
    assert format_speed(3 * MEGABYTE) == "3.00MB/s"


def test_to_dict_is_json_serialisable():
    result = _result(
        "a",
        test_error=TestError("dns", "DNS_RESOLUTION_FAILED", "no such host", "a"),
        unlock_results=[UnlockResult("Netflix", UnlockStatus.UNLOCKED, "US")],
    )
    data = result.to_dict()
    assert data["test_error"]["code"] == "DNS_RESOLUTION_FAILED"
    assert data["unlock_results"][0]["status"] == "unlocked"
    json.dumps(data)


def test_unlock_summary_labels():
    results = [
        UnlockResult("Netflix", UnlockStatus.UNLOCKED, "US"),
        UnlockResult("YouTube", UnlockStatus.UNLOCKED),
        UnlockResult("Disney+", UnlockStatus.LOCKED),
        UnlockResult("ChatGPT", UnlockStatus.ERROR),
    ]
    summary = summarize_unlock(results)
    assert summary.supported_platforms == ["Netflix:US", "YouTube"]
    assert summary.unsupported_platforms == ["Disney+", "ChatGPT"]
    assert summary.total_tested == 4
    assert summary.total_supported == 2
    assert format_unlock_summary(results) == "Netflix:US, YouTube"


def test_unlock_summary_strings():
    assert format_unlock_summary([]) == "N/A"
    assert format_unlock_summary([UnlockResult("Netflix", UnlockStatus.LOCKED)]) == "None"

    many = [UnlockResult(f"Platform{i:02d}", UnlockStatus.UNLOCKED, "US") for i in range(12)]
    text = format_unlock_summary(many)
    assert text.endswith("...")
    assert len(text) == 103


def test_result_status():
    speed = build_test_config({"configPaths": "a", "maxLatency": 500, "minDownloadSpeed": 1})
    assert result_status(_result("ok", latency=100, download_speed=2 * MEGABYTE), speed) == "success"
    assert result_status(_result("slow", latency=600, download_speed=2 * MEGABYTE), speed) == "failed"
    assert result_status(_result("lost", packet_loss=100), speed) == "failed"
    assert result_status(_result("weak", latency=100, download_speed=MEGABYTE / 2), speed) == "failed"

    unlock = build_test_config({"configPaths": "a", "testMode": "unlock_only"})
    supported = _result("u")
    supported.unlock_summary = summarize_unlock([UnlockResult("Netflix", UnlockStatus.UNLOCKED)])
    assert result_status(supported, unlock) == "success"
    assert result_status(_result("none"), unlock) == "failed"


def test_result_set_filter_and_summary():
    config = build_test_config({"configPaths": "a", "maxLatency": 500, "minUploadSpeed": 1})
    results = ResultSet()
    results.add(_result("fast", latency=50, download_speed=8 * MEGABYTE, upload_speed=2 * MEGABYTE))
    results.add(
        _result("slow", proxy_type="vmess", latency=900, download_speed=9 * MEGABYTE, upload_speed=3 * MEGABYTE)
    )
    results.add(_result("weak", latency=100, download_speed=MEGABYTE, upload_speed=MEGABYTE / 4))
    results.add(_result("dead", proxy_type="vmess", packet_loss=100))

    assert [r.proxy_name for r in results.filter_results(config)] == ["fast"]

    summary = results.summarize(config)
    assert summary["total"] == 4
    assert summary["reachable"] == 3
    assert summary["protocols"] == {"ss": 2, "vmess": 2}
    assert summary["average_latency"] == 350.0
    assert summary["best_latency"] == "fast"
    assert summary["best_download"] == "slow"
    assert summary["best_upload"] == "slow"
    assert summary["success"] == 1
    assert summary["failed"] == 3
    assert len(results.to_dicts()) == 4
