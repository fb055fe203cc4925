"""Data models used by the update checker."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


UNKNOWN_REVISION = "Unknown"
REVISION_LENGTH = 7


class UpdatePhase(str, Enum):
    IDLE = "idle"
    CHECKING_LOCAL = "checking_local"
    CHECKING_REMOTE = "checking_remote"
    DONE = "done"


@dataclass(frozen=True)
class UpdateCheckState:
    """Immutable snapshot of the checker; replaced wholesale on every transition.

    ``has_update`` is only meaningful once ``phase`` is ``DONE``.
    """

    phase: UpdatePhase = UpdatePhase.IDLE
    local_revision: str = UNKNOWN_REVISION
    remote_revision: str = UNKNOWN_REVISION
    local_version: str = UNKNOWN_REVISION
    has_update: bool = False
    last_checked_at: Optional[datetime] = None

    @property
    def is_checking(self) -> bool:
        return self.phase in (UpdatePhase.CHECKING_LOCAL, UpdatePhase.CHECKING_REMOTE)


class UpdateCheckError(RuntimeError):
    """Raised when revision metadata cannot be obtained or parsed."""


def short_revision(value: str) -> str:
    return value[:REVISION_LENGTH]


__all__ = [
    "REVISION_LENGTH",
    "UNKNOWN_REVISION",
    "UpdateCheckError",
    "UpdateCheckState",
    "UpdatePhase",
    "short_revision",
]
