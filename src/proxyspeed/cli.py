"""Command-line interface for proxyspeed.

This module provides the entry point for the `proxyspeed` command-line tool.
It uses `argparse` to define the `run` and `platforms` subcommands, loads
the application settings, overrides them with command-line arguments and
then builds the validated test configuration the sweep runs with.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Callable, Dict, Optional

from tqdm import tqdm

from .config import Settings, TestConfig, UnlockConfig, build_test_config, load_config
from .constants import TEST_MODES
from .core.catalog import available_protocols, load_catalog
from .exceptions import ConfigError, LoadError
from .logging_config import setup_logging
from .models import Result
from .results import ResultSet, result_status
from .speedtester import RunOutcome, SpeedTester
from .tunnel.dialers import BridgeFactory
from .unlock import UnlockCache, UnlockDispatcher, default_registry

logger = logging.getLogger(__name__)


def _split_list(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def _add_shared_arguments(parser: argparse.ArgumentParser, *groups: str):
    """Add common argument groups to a parser."""
    if "speed" in groups:
        group = parser.add_argument_group("speed test arguments")
        group.add_argument("--server-url", help="Speed test server serving /__down and /__up")
        group.add_argument("--download-size", type=int, help="Total download size in MB")
        group.add_argument("--upload-size", type=int, help="Total upload size in MB")
        group.add_argument("--timeout", type=int, help="Per-request timeout in seconds")
        group.add_argument(
            "--concurrent", type=int, help="Parallel transfer workers per direction"
        )
        group.add_argument("--max-latency", type=int, help="Latency ceiling in ms")
        group.add_argument("--min-download-speed", type=float, help="Download floor in MB/s")
        group.add_argument("--min-upload-speed", type=float, help="Upload floor in MB/s")
        group.add_argument("--mode", dest="test_mode", choices=TEST_MODES, help="Test mode")
        group.add_argument(
            "--fast", dest="fast_mode", action="store_true", default=None,
            help="Measure latency only",
        )
    if "filter" in groups:
        group = parser.add_argument_group("filter arguments")
        group.add_argument("--filter-regex", help="Regular expression proxy names must match")
        group.add_argument(
            "--include", dest="include_nodes", type=_split_list,
            help="Comma-separated name substrings to keep",
        )
        group.add_argument(
            "--exclude", dest="exclude_nodes", type=_split_list,
            help="Comma-separated name substrings to drop",
        )
        group.add_argument(
            "--protocols", dest="protocol_filter", type=_split_list,
            help="Comma-separated proxy types to keep",
        )
        group.add_argument(
            "--stash-compatible", action="store_true", default=None,
            help="Keep only proxies Stash can import",
        )
    if "unlock" in groups:
        group = parser.add_argument_group("unlock arguments")
        group.add_argument(
            "--platforms", dest="unlock_platforms", type=_split_list,
            help="Comma-separated platforms to probe",
        )
        group.add_argument(
            "--unlock-concurrent", type=int, help="Parallel platform probes per proxy"
        )
        group.add_argument(
            "--unlock-timeout", type=int, help="Timeout per platform probe in seconds"
        )
        group.add_argument(
            "--no-unlock-retry", dest="unlock_retry", action="store_false", default=None,
            help="Do not retry probes that end in an error",
        )


def build_parser() -> argparse.ArgumentParser:
    """Build the main `argparse` parser with all subcommands and arguments."""
    parser = argparse.ArgumentParser(
        prog="proxyspeed", description="Proxy speed test and unlock detection"
    )
    parser.add_argument("--config", help="Path to proxyspeed.yaml")
    parser.add_argument("--log-level", help="Override the configured log level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_p = subparsers.add_parser("run", help="Test every proxy in the given catalogs")
    run_p.add_argument(
        "config_paths", nargs="?", help="Comma-separated catalog files or URLs"
    )
    _add_shared_arguments(run_p, "speed", "filter", "unlock")
    run_p.add_argument(
        "--output", metavar="FILE", help="Write all results to FILE as a JSON array"
    )
    run_p.add_argument(
        "--passed-only", action="store_true", help="Only report results that pass the thresholds"
    )

    subparsers.add_parser("platforms", help="List the registered unlock detectors")

    proto_p = subparsers.add_parser("protocols", help="List proxy types in the given catalogs")
    proto_p.add_argument(
        "config_paths", nargs="?", help="Comma-separated catalog files or URLs"
    )
    _add_shared_arguments(proto_p, "filter")

    return parser


def _update_settings_from_args(cfg: Settings, args: argparse.Namespace):
    """Update the `Settings` object with values from parsed CLI arguments."""
    arg_dict = {k: v for k, v in vars(args).items() if v is not None}

    MAPPING = {
        "config_paths": ("speedtest", "config_paths"),
        "server_url": ("speedtest", "server_url"),
        "download_size": ("speedtest", "download_size"),
        "upload_size": ("speedtest", "upload_size"),
        "timeout": ("speedtest", "timeout"),
        "concurrent": ("speedtest", "concurrent"),
        "max_latency": ("speedtest", "max_latency"),
        "min_download_speed": ("speedtest", "min_download_speed"),
        "min_upload_speed": ("speedtest", "min_upload_speed"),
        "test_mode": ("speedtest", "test_mode"),
        "fast_mode": ("speedtest", "fast_mode"),
        "stash_compatible": ("speedtest", "stash_compatible"),
        "filter_regex": ("filtering", "filter_regex"),
        "include_nodes": ("filtering", "include_nodes"),
        "exclude_nodes": ("filtering", "exclude_nodes"),
        "protocol_filter": ("filtering", "protocol_filter"),
        "unlock_platforms": ("unlock", "platforms"),
        "unlock_concurrent": ("unlock", "concurrent"),
        "unlock_timeout": ("unlock", "timeout"),
        "unlock_retry": ("unlock", "retry"),
        "log_level": ("logging", "level"),
    }

    for arg_name, (group, attr) in MAPPING.items():
        if (value := arg_dict.get(arg_name)) is not None:
            setattr(getattr(cfg, group), attr, value)


def _print_result(result: Result, config: TestConfig) -> None:
    record = result.to_dict()
    record["status"] = result_status(result, config)
    tqdm.write(json.dumps(record, ensure_ascii=False, default=str))


async def run_sweep(
    cfg: Settings,
    config: TestConfig,
    output: Optional[Path] = None,
    passed_only: bool = False,
) -> RunOutcome:
    """Load the catalog, test every proxy and report the results."""
    bridges = BridgeFactory.from_settings(cfg.bridge)
    proxies = await load_catalog(config, bridges=bridges)
    if not proxies:
        print("No proxies left after loading and filtering.")
        return RunOutcome.COMPLETED

    results = ResultSet()
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers unsupported; Ctrl-C will abort immediately")

    with UnlockCache() as cache:
        dispatcher = UnlockDispatcher(config.unlock or UnlockConfig(), default_registry(), cache)
        tester = SpeedTester(config, dispatcher)
        with tqdm(total=len(proxies), desc="Testing", unit="proxy") as progress:

            def on_result(result: Result) -> None:
                results.add(result)
                progress.update(1)
                if passed_only and result_status(result, config) != "success":
                    return
                if output is None:
                    _print_result(result, config)

            outcome = await tester.test_proxies_with_cancel(proxies, on_result, cancel_event)

    if outcome is RunOutcome.CANCELLED:
        print(f"Cancelled after {len(results)} of {len(proxies)} proxies.")

    reported = results.filter_results(config) if passed_only else list(results)
    if output is not None:
        output.write_text(
            json.dumps([r.to_dict() for r in reported], indent=2, ensure_ascii=False, default=str),
            encoding="utf-8",
        )
        print(f"Wrote {len(reported)} results to {output}")

    print(json.dumps(results.summarize(config), indent=2, ensure_ascii=False))
    return outcome


def _handle_run(args: argparse.Namespace, cfg: Settings) -> int:
    """Handler for the 'run' command."""
    try:
        config = build_test_config(cfg.to_request())
    except ConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2
    output = Path(args.output) if args.output else None
    try:
        outcome = asyncio.run(run_sweep(cfg, config, output, args.passed_only))
    except LoadError as exc:
        print(f"Failed to load proxies: {exc}", file=sys.stderr)
        return 1
    return 130 if outcome is RunOutcome.CANCELLED else 0


def _handle_platforms(args: argparse.Namespace, cfg: Settings) -> int:
    """Handler for the 'platforms' command."""
    for detector in default_registry().by_priority():
        print(f"{detector.platform_name:<12} priority {detector.priority}")
    return 0


def _handle_protocols(args: argparse.Namespace, cfg: Settings) -> int:
    """Handler for the 'protocols' command."""
    try:
        config = build_test_config(cfg.to_request())
        proxies = asyncio.run(
            load_catalog(config, bridges=BridgeFactory.from_settings(cfg.bridge))
        )
    except (ConfigError, LoadError) as exc:
        print(f"Failed to load proxies: {exc}", file=sys.stderr)
        return 1
    for protocol in available_protocols(proxies):
        print(protocol)
    return 0


HANDLERS: Dict[str, Callable[[argparse.Namespace, Settings], int]] = {
    "run": _handle_run,
    "platforms": _handle_platforms,
    "protocols": _handle_protocols,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the `proxyspeed` command."""
    parser = build_parser()
    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    cfg = load_config(Path(args.config) if args.config else None)
    _update_settings_from_args(cfg, args)
    setup_logging(cfg.logging.level, cfg.logging.file, cfg.logging.mask_sensitive)

    return HANDLERS[args.command](args, cfg)


if __name__ == "__main__":
    sys.exit(main())
