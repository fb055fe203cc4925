"""Cooperative polling loop and disposable callback subscriptions."""

from __future__ import annotations

import time
from typing import Any, Callable, List, Optional

from loguru import logger


Callback = Callable[..., None]


class Subscription:
    """Token returned by :meth:`CallbackList.subscribe`; disposes exactly once."""

    def __init__(self, owner: "CallbackList", callback: Callback) -> None:
        self._owner: Optional[CallbackList] = owner
        self.callback = callback

    @property
    def active(self) -> bool:
        return self._owner is not None

    def dispose(self) -> bool:
        if self._owner is None:
            return False
        owner, self._owner = self._owner, None
        owner._remove(self)
        return True


class CallbackList:
    """Ordered set of callbacks invoked synchronously on :meth:`emit`."""

    def __init__(self, name: str = "callbacks") -> None:
        self.name = name
        self._subscriptions: List[Subscription] = []

    def subscribe(self, callback: Callback) -> Subscription:
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        return subscription

    def emit(self, *args: Any) -> None:
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription.callback(*args)
            except Exception as exc:  # noqa: BLE001
                logger.warning("{} callback failed: {}", self.name, exc)

    def __len__(self) -> int:
        return len(self._subscriptions)

    def _remove(self, subscription: Subscription) -> None:
        self._subscriptions = [item for item in self._subscriptions if item is not subscription]


class PollingLoop(CallbackList):
    """Periodic tick shared by pollers running on the host's control thread."""

    def __init__(self) -> None:
        super().__init__("poll")

    def tick(self) -> None:
        self.emit()

    def run_until(
        self,
        predicate: Callable[[], bool],
        *,
        interval: float = 0.1,
        timeout: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> bool:
        """Tick until ``predicate`` holds; ``False`` if ``timeout`` elapsed first."""

        deadline = None if timeout is None else monotonic() + timeout
        while not predicate():
            if deadline is not None and monotonic() >= deadline:
                return False
            self.tick()
            if predicate():
                break
            sleep(interval)
        return True


__all__ = ["CallbackList", "PollingLoop", "Subscription"]
