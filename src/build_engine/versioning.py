"""Version numbering policy applied before auto-incremented builds."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from loguru import logger

from .config import BuildTarget
from .environment import PlatformEnvironment


EXTERNAL_VERSION_FORMAT = "%Y.%m.%d"


@dataclass(slots=True, frozen=True)
class VersionBump:
    target: BuildTarget
    external_before: str
    external_after: str
    build_before: int
    build_after: int

    @property
    def external_changed(self) -> bool:
        return self.external_before != self.external_after


class VersionPolicy:
    """Date-based external versions and monotonically increasing build numbers."""

    @staticmethod
    def next_external_version(today: date) -> str:
        return today.strftime(EXTERNAL_VERSION_FORMAT)

    @staticmethod
    def next_internal_build_number(current: int) -> int:
        return current + 1

    def apply(self, environment: PlatformEnvironment, target: BuildTarget, today: date) -> VersionBump:
        external_before = environment.bundle_version
        external_after = self.next_external_version(today)
        if external_before != external_after:
            logger.info("Version: {} -> {}", external_before, external_after)
            environment.set_bundle_version(external_after)

        build_before = environment.build_number(target)
        build_after = self.next_internal_build_number(build_before)
        environment.set_build_number(target, build_after)
        logger.info("{} build number: {} -> {}", target.value, build_before, build_after)

        return VersionBump(
            target=target,
            external_before=external_before,
            external_after=external_after,
            build_before=build_before,
            build_after=build_after,
        )


__all__ = ["VersionBump", "VersionPolicy", "EXTERNAL_VERSION_FORMAT"]
