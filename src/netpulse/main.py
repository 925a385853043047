from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Callable, Optional

import yaml

from .config import load_config, Config
from .engine import ConnectivityMonitor
from .logging_setup import setup_logging
from .probes import native_online
from .status import write_status, write_prometheus

logger = logging.getLogger(__name__)


async def watch_native_link(
    monitor: ConnectivityMonitor,
    interval_ms: int,
    read_flag: Callable[[], bool] = native_online,
    initial: Optional[bool] = None,
) -> None:
    """Turn the polled host link flag into online/offline events."""
    last = initial
    while not monitor.stopped:
        try:
            current = read_flag()
        except Exception as e:  # pragma: no cover
            logger.warning("native_flag_failed", extra={"extra_fields": {"error": str(e)}})
        else:
            if current != last:
                last = current
                monitor.handle_native_event(current)
        await asyncio.sleep(interval_ms / 1000.0)


def report(cfg: Config, monitor: ConnectivityMonitor) -> None:
    snap = monitor.snapshot()
    logger.info(
        "status_cycle",
        extra={
            "extra_fields": {
                "online": snap.is_online,
                "uptime": snap.uptime_label,
                "jitter_ms": snap.jitter_ms,
                "packet_loss_percent": snap.packet_loss_percent,
                "transitions": len(snap.connection_log),
            }
        },
    )
    write_status(cfg, snap)
    write_prometheus(cfg, snap)


async def run(cfg: Config) -> None:
    setup_logging(cfg.logging)
    initial = native_online()
    logger.info("netpulse_start", extra={"extra_fields": {"native_online": initial}})

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except NotImplementedError:  # pragma: no cover
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(shutdown.set))

    async with ConnectivityMonitor(cfg, initial_online=initial) as monitor:
        watcher = asyncio.create_task(watch_native_link(monitor, cfg.native_poll_interval_ms, initial=initial))
        try:
            while not shutdown.is_set():
                try:
                    await asyncio.wait_for(shutdown.wait(), timeout=cfg.features.status_interval_seconds)
                except asyncio.TimeoutError:
                    pass
                try:
                    report(cfg, monitor)
                except Exception as e:  # pragma: no cover
                    logger.exception("status_cycle_error", extra={"extra_fields": {"error": str(e)}})
        finally:
            watcher.cancel()

    logger.info("netpulse_shutdown")


def main() -> int:
    if len(sys.argv) < 2:
        print("Usage: python -m netpulse.main <config.yml>", file=sys.stderr)
        return 1
    try:
        cfg = load_config(sys.argv[1])
    except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
        print(f"netpulse: invalid configuration: {e}", file=sys.stderr)
        return 2
    asyncio.run(run(cfg))
    return 0

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
