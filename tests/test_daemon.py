"""Tests for the daemon tick, pid file and loop."""

from __future__ import annotations

import os
import threading

from omnitrade.scheduler import daemon
from omnitrade.scheduler.alerts import create_alert
from omnitrade.store.paths import document_path
from tests.helpers import FakeExchange, make_manager


class TestRunTick:
    def test_runs_all_passes_and_touches_heartbeat(self):
        ex = FakeExchange("binance", tickers={"BTC/USDT": (61_000, 61_000, 61_000)})
        manager = make_manager(ex)
        create_alert(manager, "BTC/USDT", "above", 60_000)

        summary = daemon.run_tick(manager, tick_id="t1")
        assert summary.tick_id == "t1"
        assert summary.alerts_triggered == 1
        assert summary.errors == 0
        assert document_path("heartbeat").exists()

    def test_failing_pass_does_not_stop_others(self, monkeypatch):
        def boom(*a, **kw):
            raise RuntimeError("disk full")

        monkeypatch.setattr("omnitrade.scheduler.daemon.check_alerts", boom)
        summary = daemon.run_tick(make_manager(FakeExchange()))
        assert summary.errors == 1
        assert document_path("heartbeat").exists()


class TestPidFile:
    def test_status_not_running(self):
        status = daemon.daemon_status()
        assert status.running is False
        assert status.pid is None

    def test_status_running_for_own_pid(self):
        daemon.write_pid()
        status = daemon.daemon_status()
        assert status.running is True
        assert status.pid == os.getpid()
        daemon.remove_pid()

    def test_stale_pid_file(self, monkeypatch):
        daemon.write_pid()
        monkeypatch.setattr("omnitrade.scheduler.daemon._process_alive", lambda pid: False)
        status = daemon.daemon_status()
        assert status.running is False
        assert status.stale_pid_file is True

    def test_stop_without_daemon(self):
        assert daemon.stop_daemon() is False

    def test_stop_removes_stale_pid(self, monkeypatch):
        pid_file = document_path("pid")
        pid_file.parent.mkdir(parents=True, exist_ok=True)
        pid_file.write_text("999999\n")

        def gone(pid, sig):
            raise ProcessLookupError

        monkeypatch.setattr("omnitrade.scheduler.daemon.os.kill", gone)
        assert daemon.stop_daemon() is False
        assert not pid_file.exists()

    def test_garbage_pid_file(self):
        pid_file = document_path("pid")
        pid_file.parent.mkdir(parents=True, exist_ok=True)
        pid_file.write_text("not-a-pid")
        assert daemon.read_pid() is None


class TestRunDaemon:
    def test_max_ticks(self):
        ticks = daemon.run_daemon(make_manager(FakeExchange()), interval=0, max_ticks=2)
        assert ticks == 2
        assert not document_path("pid").exists()

    def test_stop_event_from_other_thread(self, monkeypatch):
        stop = threading.Event()
        seen = []

        def fake_tick(manager, tick_id=None):
            seen.append(tick_id)
            assert document_path("pid").exists()
            stop.set()

        monkeypatch.setattr("omnitrade.scheduler.daemon.run_tick", fake_tick)
        t = threading.Thread(
            target=daemon.run_daemon, args=(make_manager(FakeExchange()),), kwargs={"interval": 60, "stop_event": stop}
        )
        t.start()
        t.join(timeout=5)
        assert not t.is_alive()
        assert len(seen) == 1
        assert not document_path("pid").exists()
