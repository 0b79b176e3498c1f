"""Tests for instance start/stop with launcher and port discovery faked."""

import pytest

from lhremote.services import lifecycle
from lhremote.services.errors import StartInstanceError
from lhremote.services.lifecycle import (
    start_instance_with_recovery,
    stop_instance_and_wait,
    wait_for_instance_shutdown,
)

LAUNCHER_PORT = 9222
FAST = {"timeout": 0.05, "interval": 0.01}


class FakeLauncher:
    """Records start/stop calls; start failures are scripted per call."""

    def __init__(self, start_errors=()):
        self.calls = []
        self._start_errors = list(start_errors)

    async def start_instance(self, account_id):
        self.calls.append(("start", account_id))
        if self._start_errors:
            error = self._start_errors.pop(0)
            if error is not None:
                raise error

    async def stop_instance(self, account_id):
        self.calls.append(("stop", account_id))


@pytest.fixture
def ports(monkeypatch):
    """Scripted results of consecutive discover_instance_port calls.

    Once the script runs out the last value repeats.
    """
    script = []

    async def discover(launcher_port):
        return script.pop(0) if len(script) > 1 else (script[0] if script else None)

    monkeypatch.setattr(lifecycle, "discover_instance_port", discover)
    return script


async def test_already_running_sends_no_start(ports):
    ports.append(45000)
    launcher = FakeLauncher()

    outcome = await start_instance_with_recovery(launcher, 7, LAUNCHER_PORT, **FAST)

    assert outcome.status == "already_running"
    assert outcome.port == 45000
    assert launcher.calls == []


async def test_fresh_start_waits_for_port(ports):
    ports.extend([None, None, 45001])
    launcher = FakeLauncher()

    outcome = await start_instance_with_recovery(
        launcher, 7, LAUNCHER_PORT, timeout=1, interval=0.01
    )

    assert outcome.status == "started"
    assert outcome.port == 45001
    assert launcher.calls == [("start", 7)]


async def test_start_times_out_without_port(ports):
    ports.append(None)
    launcher = FakeLauncher()

    outcome = await start_instance_with_recovery(launcher, 7, LAUNCHER_PORT, **FAST)

    assert outcome.status == "timeout"
    assert launcher.calls == [("start", 7)]


async def test_already_running_error_with_reachable_instance(ports):
    ports.extend([None, 45002])
    launcher = FakeLauncher([StartInstanceError(7, "Instance is already running")])

    outcome = await start_instance_with_recovery(launcher, 7, LAUNCHER_PORT, **FAST)

    assert outcome.status == "already_running"
    assert outcome.port == 45002
    assert launcher.calls == [("start", 7)]


async def test_stale_instance_is_restarted(ports):
    ports.extend([None, None, 45003])
    launcher = FakeLauncher([StartInstanceError(7, "Instance is already running"), None])

    outcome = await start_instance_with_recovery(
        launcher, 7, LAUNCHER_PORT, timeout=1, interval=0.01, recovery_delay=0
    )

    assert outcome.status == "started"
    assert outcome.port == 45003
    assert launcher.calls == [("start", 7), ("stop", 7), ("start", 7)]


async def test_other_start_errors_propagate(ports):
    ports.append(None)
    launcher = FakeLauncher([StartInstanceError(7, "License expired")])

    with pytest.raises(StartInstanceError, match="License expired"):
        await start_instance_with_recovery(launcher, 7, LAUNCHER_PORT, **FAST)
    assert launcher.calls == [("start", 7)]


async def test_shutdown_confirmed(ports):
    ports.extend([45000, None])
    assert await wait_for_instance_shutdown(LAUNCHER_PORT, timeout=1, interval=0.01) is True


async def test_shutdown_times_out(ports):
    ports.append(45000)
    assert await wait_for_instance_shutdown(LAUNCHER_PORT, **FAST) is False


async def test_clean_stop_kills_nothing(ports, monkeypatch):
    ports.append(None)

    async def kill(launcher_port):
        raise AssertionError("kill must not be called after a clean shutdown")

    monkeypatch.setattr(lifecycle, "kill_instance_processes", kill)
    launcher = FakeLauncher()

    assert await stop_instance_and_wait(launcher, 7, LAUNCHER_PORT, **FAST) == []
    assert launcher.calls == [("stop", 7)]


async def test_lingering_instance_is_killed(ports, monkeypatch):
    ports.append(45000)
    killed_for = []

    async def kill(launcher_port):
        killed_for.append(launcher_port)
        return [321, 322]

    monkeypatch.setattr(lifecycle, "kill_instance_processes", kill)
    launcher = FakeLauncher()

    assert await stop_instance_and_wait(launcher, 7, LAUNCHER_PORT, **FAST) == [321, 322]
    assert killed_for == [LAUNCHER_PORT]
