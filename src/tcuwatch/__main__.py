"""Command line entry point: ``python -m tcuwatch --config monitor.json``."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import signal
import sys
from typing import Any

from tcuwatch._redact import redact_for_log
from tcuwatch.config import MonitorConfig
from tcuwatch.exceptions import TcuConfigError, TcuStartupError
from tcuwatch.monitor import TcuMonitor
from tcuwatch.notify import LoggingNotifier

_LOG = logging.getLogger("tcuwatch")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tcuwatch",
        description="Monitor TCU status topics and alert on silent devices.",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="JSON configuration file (TCUWATCH_* variables override it).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log notifications instead of sending them.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args(argv)


def _config_for_log(config: MonitorConfig) -> dict[str, Any]:
    return {
        "broker": dataclasses.asdict(config.broker),
        "gateway": dataclasses.asdict(config.gateway),
        "targets": dataclasses.asdict(config.targets),
        "registry": {str(key): entry.model_dump() for key, entry in config.registry.items()},
        "monitoring_tz": config.monitoring_tz,
        "reporting_tz": config.reporting_tz,
        "timeout_minutes": config.timeout_minutes,
        "check_interval_minutes": config.check_interval_minutes,
    }


async def _run(config: MonitorConfig, *, dry_run: bool) -> None:
    notifier = LoggingNotifier() if dry_run else None
    monitor = TcuMonitor(config, notifier=notifier)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop.set)
        except NotImplementedError:  # pragma: no cover - Windows
            signal.signal(signum, lambda _s, _f: loop.call_soon_threadsafe(stop.set))

    async with monitor:
        await stop.wait()
        _LOG.info("Shutdown requested")


def _main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = MonitorConfig.from_file(args.config) if args.config else MonitorConfig.from_env()
    except TcuConfigError as exc:
        print(f"[tcuwatch] Invalid configuration: {exc}", file=sys.stderr)
        return 2
    _LOG.debug("Configuration: %s", redact_for_log(_config_for_log(config)))

    try:
        asyncio.run(_run(config, dry_run=args.dry_run))
    except TcuStartupError as exc:
        print(f"[tcuwatch] Startup failed: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
