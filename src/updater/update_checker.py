"""Non-blocking update checker comparing local and remote tool revisions.

State transitions happen only on the polling thread inside ``tick``. The
blocking metadata and HTTP calls run on a worker pool, as the desktop update
checker did with its background thread; the machine only inspects their
futures and bounds each phase with a deadline. A call still running when its
deadline passes cannot be interrupted, so the checker abandons the pool it
owns and starts the next check on a fresh one.
"""

from __future__ import annotations

import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional, Tuple

from loguru import logger

from .models import UNKNOWN_REVISION, UpdateCheckError, UpdateCheckState, UpdatePhase
from .polling import CallbackList, PollingLoop, Subscription
from .providers import (
    GitHubCommitOracle,
    InstalledPackageRegistry,
    PackageInstaller,
    PipInstaller,
    RevisionOracle,
    RevisionRegistry,
)


DEFAULT_TIMEOUT = 10.0
DEADLINE_GRACE = 2.0

CompletionCallback = Callable[[UpdateCheckState], None]


class UpdateChecker:
    """State machine ``Idle -> CheckingLocal -> CheckingRemote -> Done``.

    :meth:`check_for_updates` returns immediately with a future that resolves
    to the final :class:`UpdateCheckState`. Progress happens only inside
    :meth:`tick`, which the checker subscribes to the polling loop for the
    duration of one check. The blocking registry and oracle calls run on
    ``executor``; the checker only inspects their futures.
    """

    def __init__(
        self,
        loop: PollingLoop,
        *,
        registry: RevisionRegistry | None = None,
        oracle: RevisionOracle | None = None,
        installer: PackageInstaller | None = None,
        source_url: str | None = None,
        executor: Executor | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], datetime] = datetime.now,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.loop = loop
        self.registry = registry or InstalledPackageRegistry()
        self.oracle = oracle or GitHubCommitOracle()
        self.installer = installer or PipInstaller()
        self.source_url = source_url or getattr(self.oracle, "source_url", "")
        self.timeout = timeout
        self.check_completed = CallbackList("update check completion")
        self._executor = executor
        self._owns_executor = executor is None
        self._clock = clock
        self._monotonic = monotonic
        self._state = UpdateCheckState()
        self._task: Optional[Future] = None
        self._pending: Optional[Future] = None
        self._poll_token: Optional[Subscription] = None
        self._deadline: float = 0.0

    @property
    def state(self) -> UpdateCheckState:
        return self._state

    def on_complete(self, callback: CompletionCallback) -> Subscription:
        return self.check_completed.subscribe(callback)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def check_for_updates(self) -> Future:
        if self._state.is_checking and self._task is not None:
            logger.debug("Update check already in progress")
            return self._task

        task: Future = Future()
        task.set_running_or_notify_cancel()
        self._task = task
        self._state = replace(
            self._state,
            phase=UpdatePhase.CHECKING_LOCAL,
            has_update=False,
        )
        self._deadline = self._next_deadline()
        self._pending = self._submit(self._query_local)
        self._poll_token = self.loop.subscribe(self.tick)
        return task

    def tick(self) -> None:
        phase = self._state.phase
        if phase is UpdatePhase.CHECKING_LOCAL:
            self._advance_local()
        elif phase is UpdatePhase.CHECKING_REMOTE:
            self._advance_remote()

    def reset(self) -> None:
        if self._state.is_checking:
            logger.debug("Ignoring reset while an update check is running")
            return
        self._state = replace(self._state, phase=UpdatePhase.IDLE)

    def apply_update(self) -> None:
        if not self.source_url:
            raise UpdateCheckError("No update source configured")
        self.installer.install(self.source_url)

    def shutdown(self) -> None:
        if self._executor is not None and isinstance(self._executor, ThreadPoolExecutor):
            self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def _advance_local(self) -> None:
        assert self._pending is not None
        if not self._pending.done():
            if self._monotonic() < self._deadline:
                return
            self._abandon_pending()
            logger.warning("Installed revision lookup timed out after {:.0f}s", self.timeout)
            revision, version = UNKNOWN_REVISION, UNKNOWN_REVISION
        else:
            try:
                revision, version = self._pending.result()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Unable to determine installed revision: {}", exc)
                revision, version = UNKNOWN_REVISION, UNKNOWN_REVISION

        self._state = replace(
            self._state,
            phase=UpdatePhase.CHECKING_REMOTE,
            local_revision=revision or UNKNOWN_REVISION,
            local_version=version or UNKNOWN_REVISION,
        )
        self._deadline = self._next_deadline()
        self._pending = self._submit(self.oracle.latest_revision, self.timeout)

    def _advance_remote(self) -> None:
        assert self._pending is not None
        if not self._pending.done():
            if self._monotonic() < self._deadline:
                return
            self._abandon_pending()
            logger.warning("Update check timed out after {:.0f}s", self.timeout)
            self._finish(UNKNOWN_REVISION)
            return

        try:
            remote = self._pending.result()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Update check failed: {}", exc)
            self._finish(UNKNOWN_REVISION)
            return
        self._finish(remote)

    def _finish(self, remote: str) -> None:
        local = self._state.local_revision
        has_update = remote != UNKNOWN_REVISION and local != UNKNOWN_REVISION and local != remote
        state = replace(
            self._state,
            phase=UpdatePhase.DONE,
            remote_revision=remote,
            has_update=has_update,
            last_checked_at=self._clock(),
        )
        self._state = state
        self._pending = None
        if self._poll_token is not None:
            self._poll_token.dispose()
            self._poll_token = None

        if has_update:
            logger.info("Update available: {} -> {}", local, remote)
        else:
            logger.debug("No update available (local={}, remote={})", local, remote)

        task, self._task = self._task, None
        self.check_completed.emit(state)
        if task is not None:
            task.set_result(state)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _query_local(self) -> Tuple[str, str]:
        return self.registry.current_revision(), self.registry.installed_version()

    def _next_deadline(self) -> float:
        return self._monotonic() + self.timeout + DEADLINE_GRACE

    def _abandon_pending(self) -> None:
        assert self._pending is not None
        if self._pending.cancel() or not self._owns_executor or self._executor is None:
            return
        # The worker is stuck in a call that cannot be interrupted.
        assert isinstance(self._executor, ThreadPoolExecutor)
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._executor = None

    def _submit(self, fn: Callable, *args: object) -> Future:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="UpdateChecker")
        return self._executor.submit(fn, *args)


__all__ = ["UpdateChecker", "DEFAULT_TIMEOUT"]
