"""Tests for launching and quitting LinkedHelper with the process layer faked."""

import sys
import threading
from pathlib import Path

import psutil
import pytest

from lhremote.services import app
from lhremote.services.app import AppService, default_binary_path, find_binary
from lhremote.services.errors import AppLaunchError, AppNotFoundError, ServiceError

from conftest import unused_port

FAST = {"launch_settle_delay": 0.01, "quit_timeout": 0.01, "kill_timeout": 0.01}


class FakeProcess:
    """Exits on SIGTERM unless ``ignores_term``; ``exit_code`` None means still running."""

    def __init__(self, pid=4242, exit_code=None, ignores_term=False):
        self.pid = pid
        self.exit_code = exit_code
        self.ignores_term = ignores_term
        self.signals = []
        self.threads = set()

    def wait(self, timeout=None):
        self.threads.add(threading.get_ident())
        if self.exit_code is None:
            raise psutil.TimeoutExpired(timeout, self.pid)
        return self.exit_code

    def terminate(self):
        self.signals.append("TERM")
        if not self.ignores_term:
            self.exit_code = 0

    def kill(self):
        self.signals.append("KILL")
        self.exit_code = -9


@pytest.fixture
def binary(tmp_path, monkeypatch):
    path = tmp_path / "linked-helper"
    path.write_text("#!/bin/sh\n")
    path.chmod(0o755)
    monkeypatch.setattr(app, "LINKEDHELPER_PATH", str(path))
    return path


@pytest.fixture
def spawned(monkeypatch):
    """Replaces process creation; ``spawned.process`` is what Popen returns."""

    class Spawn:
        process = FakeProcess()
        error = None
        calls = []

    def popen(args, **kwargs):
        Spawn.calls.append((args, kwargs))
        if Spawn.error is not None:
            raise Spawn.error
        return Spawn.process

    Spawn.calls = []
    monkeypatch.setattr(psutil, "Popen", popen)
    return Spawn


@pytest.fixture
def not_running(monkeypatch):
    async def answers(port, *args, **kwargs):
        return False

    monkeypatch.setattr(app, "is_cdp_port", answers)


async def test_launch_on_given_port(binary, spawned, not_running):
    service = AppService(9333, **FAST)

    assert await service.launch() == 9333

    args, kwargs = spawned.calls[0]
    assert args == [str(binary), "--remote-debugging-port=9333"]
    assert kwargs["start_new_session"] is True


async def test_launch_picks_free_port(binary, spawned):
    service = AppService(**FAST)

    port = await service.launch()

    assert port > 0
    assert service.cdp_port == port
    assert spawned.calls[0][0][1] == f"--remote-debugging-port={port}"


async def test_launch_when_already_running_spawns_nothing(binary, spawned, monkeypatch):
    async def answers(port, *args, **kwargs):
        return True

    monkeypatch.setattr(app, "is_cdp_port", answers)

    assert await AppService(9222, **FAST).launch() == 9222
    assert spawned.calls == []


async def test_launch_waits_off_the_event_loop(binary, spawned, not_running):
    await AppService(9333, **FAST).launch()
    assert threading.get_ident() not in spawned.process.threads


async def test_missing_binary(tmp_path, spawned, not_running, monkeypatch):
    missing = tmp_path / "nowhere" / "linked-helper"
    monkeypatch.setattr(app, "LINKEDHELPER_PATH", str(missing))

    with pytest.raises(AppNotFoundError, match="Set LINKEDHELPER_PATH") as exc_info:
        await AppService(9333, **FAST).launch()
    assert str(missing) in str(exc_info.value)
    assert spawned.calls == []


def test_binary_must_be_executable(tmp_path, monkeypatch):
    path = tmp_path / "linked-helper"
    path.write_text("")
    path.chmod(0o644)
    monkeypatch.setattr(app, "LINKEDHELPER_PATH", str(path))

    with pytest.raises(AppNotFoundError):
        find_binary()


def test_default_binary_locations(monkeypatch):
    monkeypatch.setattr(sys, "platform", "linux")
    assert default_binary_path() == Path("/opt/linked-helper/linked-helper")

    monkeypatch.setattr(sys, "platform", "darwin")
    assert default_binary_path() == Path("/Applications/linked-helper.app/Contents/MacOS/linked-helper")

    monkeypatch.setattr(sys, "platform", "win32")
    monkeypatch.setenv("LOCALAPPDATA", "/users/ada/AppData/Local")
    assert default_binary_path() == Path("/users/ada/AppData/Local/Programs/linked-helper/linked-helper.exe")


async def test_spawn_failure(binary, spawned, not_running):
    spawned.error = PermissionError("Permission denied")

    with pytest.raises(AppLaunchError, match="Failed to launch LinkedHelper: Permission denied"):
        await AppService(9333, **FAST).launch()


async def test_immediate_exit_is_a_launch_failure(binary, spawned, not_running):
    spawned.process = FakeProcess(exit_code=1)

    with pytest.raises(AppLaunchError, match="exit code 1"):
        await AppService(9333, **FAST).launch()


async def test_quit_terminates_launched_process(binary, spawned, not_running):
    service = AppService(9333, **FAST)
    await service.launch()

    await service.quit()

    assert spawned.process.signals == ["TERM"]


async def test_quit_kills_process_ignoring_sigterm(binary, spawned, not_running):
    spawned.process = FakeProcess(ignores_term=True)
    service = AppService(9333, **FAST)
    await service.launch()

    await service.quit()

    assert spawned.process.signals == ["TERM", "KILL"]


async def test_quit_finds_process_by_port(monkeypatch):
    process = FakeProcess(pid=555)

    async def listener(port):
        return 555 if port == 9222 else None

    monkeypatch.setattr(app, "find_pid_listening_on", listener)
    monkeypatch.setattr(psutil, "Process", lambda pid: process)

    await AppService(9222, **FAST).quit()

    assert process.signals == ["TERM"]
    assert threading.get_ident() not in process.threads


async def test_quit_process_already_gone(monkeypatch):
    async def listener(port):
        return 555

    def gone(pid):
        raise psutil.NoSuchProcess(pid)

    monkeypatch.setattr(app, "find_pid_listening_on", listener)
    monkeypatch.setattr(psutil, "Process", gone)

    await AppService(9222, **FAST).quit()


async def test_quit_over_cdp_when_no_process_found(cdp_server, monkeypatch):
    async def listener(port):
        return None

    monkeypatch.setattr(app, "find_pid_listening_on", listener)

    await AppService(cdp_server.port, **FAST).quit()

    assert cdp_server.closed == ["page-1"]


async def test_quit_with_nothing_running(monkeypatch):
    async def listener(port):
        return None

    monkeypatch.setattr(app, "find_pid_listening_on", listener)

    await AppService(unused_port(), **FAST).quit()


async def test_quit_without_port_is_noop():
    await AppService(**FAST).quit()


def test_port_unassigned_before_launch():
    with pytest.raises(ServiceError, match="not assigned"):
        AppService().cdp_port


async def test_is_running_without_port():
    assert await AppService().is_running() is False
