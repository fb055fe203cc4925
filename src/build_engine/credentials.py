"""Signing credential resolution for platform packages."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from loguru import logger

from .config import BuildConfiguration, BuildTarget
from .environment import PlatformEnvironment
from .result import Result


STORE_PASSWORD_ENV = "KEYSTORE_PASSWORD"
KEY_PASSWORD_ENV = "KEY_PASSWORD"


class CredentialErrorKind(str, Enum):
    NOT_CONFIGURED = "not_configured"
    FILE_MISSING = "file_missing"
    MISSING_PASSWORD = "missing_password"


@dataclass(slots=True, frozen=True)
class CredentialError:
    kind: CredentialErrorKind
    path: Optional[Path] = None

    def describe(self) -> str:
        if self.kind is CredentialErrorKind.NOT_CONFIGURED:
            return "No keystore configured; building with ambient signing settings"
        if self.kind is CredentialErrorKind.FILE_MISSING:
            return f"Keystore file does not exist: {self.path}"
        return (
            f"No keystore password for {self.path}; set {STORE_PASSWORD_ENV} "
            "or configure keystore_password"
        )


@dataclass(slots=True, frozen=True)
class SigningCredentials:
    keystore_path: Path
    store_password: str
    key_alias: str
    key_password: str

    def __repr__(self) -> str:
        return (
            f"SigningCredentials(keystore_path={self.keystore_path!r}, "
            f"key_alias={self.key_alias!r}, store_password='***', key_password='***')"
        )


CredentialResult = Result[Optional[SigningCredentials], CredentialError]


class CredentialResolver:
    """Resolve signing credentials from configuration and the process environment.

    A successful result holding ``None`` means the platform's signing identity
    is managed externally and no override should be applied.
    """

    def __init__(self, project_root: Path, environ: Mapping[str, str] | None = None) -> None:
        self.project_root = project_root
        self._environ = environ if environ is not None else os.environ

    def resolve(
        self,
        target: BuildTarget,
        config: BuildConfiguration,
        *,
        use_environment: bool = True,
    ) -> CredentialResult:
        if target is BuildTarget.IOS:
            logger.debug("iOS signing is managed by Xcode; no override")
            return Result.ok(None)
        if config.use_player_settings_keystore:
            logger.debug("Using keystore from existing player settings")
            return Result.ok(None)

        if not config.keystore_path:
            return Result.err(CredentialError(CredentialErrorKind.NOT_CONFIGURED))

        keystore = Path(config.keystore_path).expanduser()
        if not keystore.is_absolute():
            keystore = self.project_root / keystore
        keystore = keystore.resolve()
        if not keystore.is_file():
            return Result.err(CredentialError(CredentialErrorKind.FILE_MISSING, keystore))

        store_password, key_password = self._passwords(config, use_environment)
        if not store_password:
            return Result.err(CredentialError(CredentialErrorKind.MISSING_PASSWORD, keystore))

        return Result.ok(
            SigningCredentials(
                keystore_path=keystore,
                store_password=store_password,
                key_alias=config.key_alias_name,
                key_password=key_password or store_password,
            )
        )

    def apply(self, credentials: SigningCredentials, environment: PlatformEnvironment) -> None:
        environment.apply_signing(
            str(credentials.keystore_path),
            credentials.store_password,
            credentials.key_alias,
            credentials.key_password,
        )
        logger.info("Applied keystore {} (alias {})", credentials.keystore_path, credentials.key_alias or "<default>")

    def _passwords(self, config: BuildConfiguration, use_environment: bool) -> tuple[str, str]:
        """Return ``(store, key)``; an empty key password falls back at the caller."""

        store_password = config.keystore_password
        key_password = config.key_alias_password
        if use_environment:
            env_store = self._environ.get(STORE_PASSWORD_ENV, "")
            env_key = self._environ.get(KEY_PASSWORD_ENV, "")
            if env_store:
                logger.info("Keystore password taken from {}", STORE_PASSWORD_ENV)
                store_password = env_store
            key_password = env_key or key_password
        return store_password, key_password


__all__ = [
    "CredentialError",
    "CredentialErrorKind",
    "CredentialResolver",
    "CredentialResult",
    "SigningCredentials",
    "KEY_PASSWORD_ENV",
    "STORE_PASSWORD_ENV",
]
