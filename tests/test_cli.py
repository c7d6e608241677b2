import json
import logging

import pytest

from proxyspeed import cli
from proxyspeed.config import Settings, build_test_config


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


def test_platforms_command_lists_detectors(fs, capsys):
    assert cli.main(["platforms"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 7
    assert lines[0].startswith("ChatGPT")
    assert lines[-1].startswith("Spotify")


def test_run_without_catalog_is_a_config_error(fs, capsys):
    assert cli.main(["run"]) == 2
    assert "config paths cannot be empty" in capsys.readouterr().err


def test_arguments_override_settings():
    parser = cli.build_parser()
    args = parser.parse_args(
        [
            "--log-level",
            "debug",
            "run",
            "a.yaml,b.yaml",
            "--concurrent",
            "8",
            "--mode",
            "both",
            "--include",
            "hk, jp",
            "--platforms",
            "Netflix,Gemini",
            "--no-unlock-retry",
        ]
    )
    cfg = Settings()
    cli._update_settings_from_args(cfg, args)

    assert cfg.speedtest.config_paths == "a.yaml,b.yaml"
    assert cfg.speedtest.concurrent == 8
    assert cfg.speedtest.test_mode == "both"
    assert cfg.filtering.include_nodes == ["hk", "jp"]
    assert cfg.unlock.platforms == ["Netflix", "Gemini"]
    assert cfg.unlock.retry is False
    assert cfg.logging.level == "debug"
    assert cfg.speedtest.fast_mode is False


def test_config_file_is_loaded(fs, capsys):
    fs.create_file("catalog.yaml", "proxies:\n  - {name: a, type: direct}\n  - {name: b, type: socks5, server: 1.1.1.1, port: 1}\n")
    fs.create_file("custom.yaml", "speedtest:\n  config_paths: catalog.yaml\n")

    assert cli.main(["--config", "custom.yaml", "protocols"]) == 0
    assert capsys.readouterr().out.split() == ["direct", "socks5"]


@pytest.mark.asyncio
async def test_run_sweep_writes_results(fs, speed_server, capsys):
    fs.create_file("catalog.yaml", "proxies:\n  - {name: local-1, type: direct}\n  - {name: local-2, type: direct}\n")
    output = fs.root / "results.json"

    async with speed_server() as server:
        cfg = Settings()
        config = build_test_config(
            {
                "configPaths": "catalog.yaml",
                "serverUrl": server.url,
                "downloadSize": 1,
                "uploadSize": 1,
                "concurrent": 2,
                "maxLatency": 2000,
            }
        )
        outcome = await cli.run_sweep(cfg, config, output)

    assert outcome is cli.RunOutcome.COMPLETED
    data = json.loads(output.read_text(encoding="utf-8"))
    assert [item["proxy_name"] for item in data] == ["local-1", "local-2"]
    assert all(item["download_speed"] > 0 for item in data)

    out = capsys.readouterr().out
    assert "Wrote 2 results" in out
    assert '"total": 2' in out


def test_unlock_flag_is_not_offered():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["run", "a.yaml", "--unlock"])


@pytest.mark.asyncio
async def test_run_sweep_prints_one_json_object_per_result(fs, speed_server, capsys):
    fs.create_file("catalog.yaml", "proxies:\n  - {name: local-1, type: direct}\n")

    async with speed_server() as server:
        config = build_test_config(
            {"configPaths": "catalog.yaml", "serverUrl": server.url, "fastMode": True}
        )
        await cli.run_sweep(Settings(), config)

    first_line = capsys.readouterr().out.splitlines()[0]
    record = json.loads(first_line)
    assert record["proxy_name"] == "local-1"
    assert record["status"] == "success"
    assert record["latency"] > 0
