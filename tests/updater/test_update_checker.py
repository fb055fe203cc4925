"""Tests for the non-blocking update checker."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import List

import pytest

from conftest import InlineExecutor, ManualExecutor
from updater.models import UNKNOWN_REVISION, UpdateCheckError, UpdateCheckState, UpdatePhase
from updater.polling import PollingLoop
from updater.update_checker import DEADLINE_GRACE, UpdateChecker


CHECKED_AT = datetime(2024, 6, 3, 9, 30)


class StaticRegistry:
    def __init__(self, revision: str = "abc1234", version: str = "0.1.0", fail: bool = False) -> None:
        self.revision = revision
        self.version = version
        self.fail = fail

    def current_revision(self) -> str:
        if self.fail:
            raise OSError("metadata unreadable")
        return self.revision

    def installed_version(self) -> str:
        return self.version


class CountingOracle:
    def __init__(self, revision: str = "abc1234", error: Exception | None = None) -> None:
        self.revision = revision
        self.error = error
        self.calls: List[float] = []

    def latest_revision(self, timeout: float) -> str:
        self.calls.append(timeout)
        if self.error is not None:
            raise self.error
        return self.revision


class RecordingInstaller:
    def __init__(self) -> None:
        self.sources: List[str] = []

    def install(self, source: str) -> None:
        self.sources.append(source)


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _checker(
    loop: PollingLoop,
    *,
    registry: StaticRegistry | None = None,
    oracle: CountingOracle | None = None,
    executor=None,
    **kwargs,
) -> UpdateChecker:
    return UpdateChecker(
        loop,
        registry=registry or StaticRegistry(),
        oracle=oracle or CountingOracle(),
        installer=kwargs.pop("installer", RecordingInstaller()),
        source_url=kwargs.pop("source_url", "git+https://example.com/autobuild.git@main"),
        executor=executor or InlineExecutor(),
        clock=lambda: CHECKED_AT,
        **kwargs,
    )


def _drain(loop: PollingLoop, ticks: int = 5) -> None:
    for _ in range(ticks):
        loop.tick()


@pytest.mark.parametrize(
    ("local", "remote", "expected"),
    [
        ("abc1234", "abc1234", False),
        ("abc1234", "def5678", True),
        ("abc1234", UNKNOWN_REVISION, False),
        (UNKNOWN_REVISION, "def5678", False),
    ],
)
def test_update_detection(local: str, remote: str, expected: bool) -> None:
    loop = PollingLoop()
    checker = _checker(loop, registry=StaticRegistry(local), oracle=CountingOracle(remote))

    task = checker.check_for_updates()
    _drain(loop)

    state = task.result(timeout=0)
    assert state.phase is UpdatePhase.DONE
    assert state.has_update is expected
    assert (state.local_revision, state.remote_revision) == (local, remote)
    assert state.last_checked_at == CHECKED_AT


def test_concurrent_requests_coalesce() -> None:
    loop = PollingLoop()
    oracle = CountingOracle("def5678")
    checker = _checker(loop, oracle=oracle)
    events: List[UpdateCheckState] = []
    checker.on_complete(events.append)

    first = checker.check_for_updates()
    second = checker.check_for_updates()
    _drain(loop)

    assert first is second
    assert len(oracle.calls) == 1
    assert len(events) == 1
    assert events[0] is first.result(timeout=0)


def test_phases_advance_one_step_per_tick() -> None:
    loop = PollingLoop()
    executor = ManualExecutor()
    checker = _checker(loop, executor=executor)

    assert checker.state.phase is UpdatePhase.IDLE
    task = checker.check_for_updates()
    assert checker.state.phase is UpdatePhase.CHECKING_LOCAL
    assert not task.done()

    loop.tick()
    assert checker.state.phase is UpdatePhase.CHECKING_LOCAL

    executor.run_pending(0)
    loop.tick()
    assert checker.state.phase is UpdatePhase.CHECKING_REMOTE
    assert checker.state.local_revision == "abc1234"
    assert checker.state.local_version == "0.1.0"

    executor.run_pending(1)
    loop.tick()
    assert checker.state.phase is UpdatePhase.DONE
    assert task.done()


def test_task_cannot_be_cancelled_by_caller() -> None:
    loop = PollingLoop()
    task = _checker(loop, executor=ManualExecutor()).check_for_updates()
    assert not task.cancel()


def test_remote_timeout_finishes_with_unknown() -> None:
    loop = PollingLoop()
    executor = ManualExecutor()
    monotonic = FakeClock()
    checker = _checker(loop, oracle=CountingOracle("def5678"), executor=executor, timeout=10.0, monotonic=monotonic)

    task = checker.check_for_updates()
    executor.run_pending(0)
    loop.tick()
    assert checker.state.phase is UpdatePhase.CHECKING_REMOTE

    monotonic.now += 10.0
    loop.tick()
    assert checker.state.phase is UpdatePhase.CHECKING_REMOTE

    monotonic.now += DEADLINE_GRACE
    loop.tick()
    state = task.result(timeout=0)
    assert state.remote_revision == UNKNOWN_REVISION
    assert not state.has_update
    assert executor.futures[1].cancelled()


def test_local_lookup_timeout_moves_on_to_remote() -> None:
    loop = PollingLoop()
    executor = ManualExecutor()
    monotonic = FakeClock()
    checker = _checker(loop, executor=executor, timeout=10.0, monotonic=monotonic)

    checker.check_for_updates()
    monotonic.now += 10.0 + DEADLINE_GRACE
    loop.tick()

    assert checker.state.phase is UpdatePhase.CHECKING_REMOTE
    assert checker.state.local_revision == UNKNOWN_REVISION
    assert executor.futures[0].cancelled()
    assert len(executor.calls) == 2


def test_check_after_hung_oracle_uses_fresh_worker() -> None:
    release = threading.Event()

    class HangingOnceOracle:
        def __init__(self) -> None:
            self.calls = 0

        def latest_revision(self, timeout: float) -> str:
            self.calls += 1
            if self.calls == 1:
                release.wait(5)
            return "def5678"

    loop = PollingLoop()
    monotonic = FakeClock()
    checker = UpdateChecker(
        loop,
        registry=StaticRegistry(),
        oracle=HangingOnceOracle(),
        installer=RecordingInstaller(),
        source_url="git+https://example.com/autobuild.git@main",
        timeout=10.0,
        clock=lambda: CHECKED_AT,
        monotonic=monotonic,
    )
    try:
        first = checker.check_for_updates()
        assert loop.run_until(
            lambda: checker.state.phase is UpdatePhase.CHECKING_REMOTE,
            interval=0.01,
            timeout=5,
        )
        monotonic.now += 10.0 + DEADLINE_GRACE
        loop.tick()
        assert first.result(timeout=0).remote_revision == UNKNOWN_REVISION

        second = checker.check_for_updates()
        assert loop.run_until(second.done, interval=0.01, timeout=5)
        assert second.result(timeout=0).has_update
    finally:
        release.set()
        checker.shutdown()


def test_oracle_failure_is_logged_not_raised(log_messages: list[str]) -> None:
    loop = PollingLoop()
    oracle = CountingOracle(error=UpdateCheckError("rate limited"))
    task = _checker(loop, oracle=oracle).check_for_updates()
    _drain(loop)

    state = task.result(timeout=0)
    assert state.phase is UpdatePhase.DONE
    assert state.remote_revision == UNKNOWN_REVISION
    assert not state.has_update
    assert any(line.startswith("WARNING|Update check failed: rate limited") for line in log_messages)


def test_local_failure_yields_unknown_revision() -> None:
    loop = PollingLoop()
    task = _checker(loop, registry=StaticRegistry(fail=True), oracle=CountingOracle("def5678")).check_for_updates()
    _drain(loop)
    state = task.result(timeout=0)
    assert state.local_revision == UNKNOWN_REVISION
    assert not state.has_update


def test_poll_subscription_is_released_exactly_once() -> None:
    loop = PollingLoop()
    checker = _checker(loop)
    checker.check_for_updates()
    assert len(loop) == 1

    _drain(loop)

    assert len(loop) == 0
    assert checker._poll_token is None


def test_check_after_done_starts_new_round() -> None:
    loop = PollingLoop()
    oracle = CountingOracle()
    checker = _checker(loop, oracle=oracle)

    first = checker.check_for_updates()
    _drain(loop)
    second = checker.check_for_updates()
    _drain(loop)

    assert first is not second
    assert second.result(timeout=0).phase is UpdatePhase.DONE
    assert len(oracle.calls) == 2
    assert len(loop) == 0


def test_run_until_drives_the_check() -> None:
    loop = PollingLoop()
    task = _checker(loop, oracle=CountingOracle("def5678")).check_for_updates()
    assert loop.run_until(task.done, sleep=lambda _: None)
    assert task.result(timeout=0).has_update


def test_reset_returns_to_idle_after_done() -> None:
    loop = PollingLoop()
    checker = _checker(loop)
    checker.check_for_updates()
    _drain(loop)

    checker.reset()

    assert checker.state.phase is UpdatePhase.IDLE
    assert checker.state.last_checked_at == CHECKED_AT


def test_apply_update_installs_from_source() -> None:
    installer = RecordingInstaller()
    checker = _checker(PollingLoop(), installer=installer)
    checker.apply_update()
    assert installer.sources == ["git+https://example.com/autobuild.git@main"]


def test_apply_update_requires_source() -> None:
    checker = _checker(PollingLoop(), source_url="")
    with pytest.raises(UpdateCheckError):
        checker.apply_update()
