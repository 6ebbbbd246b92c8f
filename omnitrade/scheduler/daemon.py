"""Background polling loop: alerts, conditional orders and DCA every tick.

Ticks run back to back on one thread and never overlap. SIGTERM/SIGINT stop
the loop after the current pass; the pid file is removed on the way out and
the heartbeat file is touched after every tick.
"""

from __future__ import annotations

import logging
import os
import signal
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from omnitrade.config import settings
from omnitrade.connectors.exchange import ExchangeManager
from omnitrade.logging_config import TickLoggerAdapter, new_tick_id
from omnitrade.notifications.dispatcher import enabled_channels
from omnitrade.scheduler.alerts import check_alerts
from omnitrade.scheduler.conditional_orders import check_conditional_orders
from omnitrade.scheduler.dca_executor import process_due_dca
from omnitrade.store.paths import document_path

logger = logging.getLogger(__name__)


@dataclass
class TickSummary:
    tick_id: str
    alerts_triggered: int = 0
    orders_triggered: int = 0
    dca_executed: int = 0
    dca_failed: int = 0
    errors: int = 0


@dataclass(frozen=True)
class DaemonStatus:
    running: bool
    pid: int | None = None
    heartbeat_age_sec: float | None = None
    stale_pid_file: bool = False


def _touch_heartbeat() -> None:
    heartbeat = document_path("heartbeat")
    heartbeat.parent.mkdir(parents=True, exist_ok=True)
    heartbeat.write_text(datetime.now(timezone.utc).isoformat() + "\n")


def run_tick(manager: ExchangeManager, tick_id: str | None = None) -> TickSummary:
    """One due-check pass. A failing pass is logged and does not stop the others."""
    summary = TickSummary(tick_id=tick_id or new_tick_id())
    log = TickLoggerAdapter(logger, {"tick_id": summary.tick_id})
    log.info("=== Daemon tick ===")

    try:
        summary.alerts_triggered = len(check_alerts(manager, notify=True))
    except Exception:
        log.exception("Alert pass failed")
        summary.errors += 1

    try:
        summary.orders_triggered = len(check_conditional_orders(manager, notify=True))
    except Exception:
        log.exception("Conditional order pass failed")
        summary.errors += 1

    try:
        dca = process_due_dca(manager, notify=True)
        summary.dca_executed = dca.executed
        summary.dca_failed = dca.failed
    except Exception:
        log.exception("DCA pass failed")
        summary.errors += 1

    _touch_heartbeat()
    log.info(
        "Tick done: alerts=%d orders=%d dca=%d/%d errors=%d",
        summary.alerts_triggered,
        summary.orders_triggered,
        summary.dca_executed,
        summary.dca_executed + summary.dca_failed,
        summary.errors,
    )
    return summary


def write_pid() -> None:
    pid_file = document_path("pid")
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    pid_file.write_text(str(os.getpid()))
    logger.info("PID %d written to %s", os.getpid(), pid_file)


def remove_pid() -> None:
    document_path("pid").unlink(missing_ok=True)


def read_pid() -> int | None:
    pid_file = document_path("pid")
    if not pid_file.exists():
        return None
    try:
        return int(pid_file.read_text().strip())
    except ValueError:
        logger.warning("Unreadable pid file %s", pid_file)
        return None


def _process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def daemon_status() -> DaemonStatus:
    heartbeat = document_path("heartbeat")
    age = time.time() - heartbeat.stat().st_mtime if heartbeat.exists() else None
    pid = read_pid()
    if pid is None:
        return DaemonStatus(running=False, heartbeat_age_sec=age)
    alive = _process_alive(pid)
    return DaemonStatus(running=alive, pid=pid, heartbeat_age_sec=age, stale_pid_file=not alive)


def stop_daemon() -> bool:
    """Send SIGTERM to the running daemon. Returns False when none is running."""
    pid = read_pid()
    if pid is None:
        return False
    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        logger.warning("PID %d not found, removing stale pid file", pid)
        remove_pid()
        return False
    logger.info("Sent SIGTERM to daemon PID %d", pid)
    return True


def run_daemon(
    manager: ExchangeManager,
    interval: float | None = None,
    max_ticks: int | None = None,
    stop_event: threading.Event | None = None,
) -> int:
    """Poll until signalled (or max_ticks). Returns the number of ticks run."""
    interval = settings.daemon_poll_interval_sec if interval is None else interval
    stop = stop_event or threading.Event()

    def _stop(signum, _frame):
        logger.info("Received signal %d, shutting down", signum)
        stop.set()

    in_main_thread = threading.current_thread() is threading.main_thread()
    previous = {}
    if in_main_thread:
        for sig in (signal.SIGTERM, signal.SIGINT):
            previous[sig] = signal.signal(sig, _stop)

    write_pid()
    logger.info(
        "Daemon started: exchanges=%s interval=%ss notifications=%s",
        ", ".join(manager.names()) or "none",
        interval,
        ", ".join(enabled_channels()) or "none",
    )
    ticks = 0
    try:
        while not stop.is_set():
            run_tick(manager)
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            stop.wait(interval)
    finally:
        remove_pid()
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        logger.info("Daemon stopped after %d tick(s)", ticks)
    return ticks
