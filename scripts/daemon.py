#!/usr/bin/env python3
"""Background monitor for alerts, conditional orders and DCA.

Usage:
    python scripts/daemon.py run                # foreground
    python scripts/daemon.py run --once         # single tick, then exit
    python scripts/daemon.py start              # detached child
    python scripts/daemon.py stop
    python scripts/daemon.py status
"""

import argparse
import subprocess
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import logging

log = logging.getLogger(__name__)


def cmd_run(args) -> int:
    from omnitrade.config import settings
    from omnitrade.connectors.exchange import ExchangeManager
    from omnitrade.logging_config import setup_logging
    from omnitrade.scheduler.daemon import daemon_status, run_daemon

    setup_logging(structured=args.json_logs)
    status = daemon_status()
    if status.running:
        log.error("Daemon already running (PID %d)", status.pid)
        return 1

    manager = ExchangeManager.from_settings()
    if not len(manager):
        log.warning("No exchanges configured, only paper data will be touched")
    interval = args.interval or settings.daemon_poll_interval_sec
    run_daemon(manager, interval=interval, max_ticks=1 if args.once else None)
    return 0


def cmd_start(args) -> int:
    from omnitrade.scheduler.daemon import daemon_status
    from omnitrade.store.paths import data_dir

    status = daemon_status()
    if status.running:
        print(f"Daemon already running (PID {status.pid})")
        return 1

    cmd = [sys.executable, str(Path(__file__).resolve()), "run"]
    if args.interval:
        cmd += ["--interval", str(args.interval)]
    if args.json_logs:
        cmd.append("--json-logs")

    log_dir = data_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    with open(log_dir / "daemon.out", "ab") as out:
        child = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=out,
            stderr=subprocess.STDOUT,
            start_new_session=True,
        )
    print(f"Daemon started (PID {child.pid})")
    return 0


def cmd_stop(_args) -> int:
    from omnitrade.scheduler.daemon import stop_daemon

    if stop_daemon():
        print("Stop signal sent")
        return 0
    print("Daemon is not running")
    return 1


def cmd_status(_args) -> int:
    from omnitrade.scheduler.daemon import daemon_status

    status = daemon_status()
    if status.running:
        age = status.heartbeat_age_sec
        beat = f"{age:.0f}s ago" if age is not None else "never"
        print(f"Running (PID {status.pid}), last heartbeat {beat}")
        return 0
    if status.stale_pid_file:
        print(f"Not running (stale pid file for PID {status.pid})")
    else:
        print("Not running")
    return 1


def main() -> int:
    parser = argparse.ArgumentParser(description="OmniTrade background daemon")
    sub = parser.add_subparsers(dest="command", required=True)
    for name in ("run", "start"):
        p = sub.add_parser(name)
        p.add_argument("--interval", type=float, default=None, help="Seconds between ticks")
        p.add_argument("--json-logs", action="store_true", help="JSON lines in the log file")
        if name == "run":
            p.add_argument("--once", action="store_true", help="Run a single tick and exit")
    sub.add_parser("stop")
    sub.add_parser("status")

    args = parser.parse_args()
    handlers = {"run": cmd_run, "start": cmd_start, "stop": cmd_stop, "status": cmd_status}
    return handlers[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
