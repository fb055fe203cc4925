"""Explicit context object for the ambient player settings a build reads."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional

from loguru import logger

from .config import BuildTarget
from .errors import PlatformSettingsError


SETTINGS_RELATIVE_PATH = Path("AutoBuild") / "player_settings.json"

ARCH_ARMV7 = "ARMv7"
ARCH_ARM64 = "ARM64"


@dataclass(slots=True)
class SceneEntry:
    path: str
    enabled: bool = True


@dataclass(slots=True)
class SigningSettings:
    """Android signing fields the backend picks up from the player settings."""

    keystore_name: str = ""
    keystore_pass: str = ""
    keyalias_name: str = ""
    keyalias_pass: str = ""

    @property
    def configured(self) -> bool:
        return bool(self.keystore_name and self.keystore_pass)


@dataclass(slots=True)
class PlatformEnvironment:
    """Mutable player settings shared between the pipeline and the backend.

    Passwords live only in memory: :meth:`save` never writes them to disk.
    """

    project_root: Path
    product_name: str
    bundle_version: str = "0.1.0"
    application_identifiers: Dict[BuildTarget, str] = field(default_factory=dict)
    build_numbers: Dict[BuildTarget, int] = field(default_factory=dict)
    active_target: Optional[BuildTarget] = None
    signing: SigningSettings = field(default_factory=SigningSettings)
    target_architectures: FrozenSet[str] = frozenset({ARCH_ARMV7, ARCH_ARM64})
    build_app_bundle: bool = False
    scenes: List[SceneEntry] = field(default_factory=list)
    settings_path: Optional[Path] = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def application_identifier(self, target: BuildTarget) -> str:
        default = f"com.company.{_identifier_fragment(self.product_name)}"
        return self.application_identifiers.get(target, default)

    def build_number(self, target: BuildTarget) -> int:
        return self.build_numbers.get(target, 0)

    def set_build_number(self, target: BuildTarget, value: int) -> None:
        if value < self.build_number(target):
            raise ValueError(f"Build number for {target.value} cannot decrease ({value})")
        self.build_numbers[target] = value

    def set_bundle_version(self, value: str) -> None:
        self.bundle_version = value

    def enabled_scenes(self) -> List[str]:
        return [scene.path for scene in self.scenes if scene.enabled]

    def apply_signing(self, keystore: str, store_password: str, alias: str, key_password: str) -> None:
        self.signing = SigningSettings(
            keystore_name=keystore,
            keystore_pass=store_password,
            keyalias_name=alias,
            keyalias_pass=key_password,
        )

    def signing_environment(self) -> Dict[str, str]:
        """Environment variables a child backend process reads the secrets from."""

        if not self.signing.configured:
            return {}
        return {
            "KEYSTORE_PASSWORD": self.signing.keystore_pass,
            "KEY_PASSWORD": self.signing.keyalias_pass or self.signing.keystore_pass,
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    @classmethod
    def load(cls, project_root: Path, settings_path: Path | None = None) -> "PlatformEnvironment":
        path = settings_path or project_root / SETTINGS_RELATIVE_PATH
        if not path.exists():
            environment = cls(project_root=project_root, product_name=project_root.name, settings_path=path)
            environment.scenes = discover_scenes(project_root)
            return environment

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PlatformSettingsError(f"Cannot read player settings {path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise PlatformSettingsError(f"Player settings {path} is not a JSON object")
        try:
            return cls._from_payload(project_root, payload, path)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise PlatformSettingsError(f"Invalid player settings {path}: {exc}") from exc

    @classmethod
    def _from_payload(cls, project_root: Path, payload: Dict[str, Any], path: Path) -> "PlatformEnvironment":
        signing = payload.get("signing", {})
        return cls(
            project_root=project_root,
            product_name=payload.get("product_name", project_root.name),
            bundle_version=str(payload.get("bundle_version", "0.1.0")),
            application_identifiers={
                BuildTarget.parse(key): str(value)
                for key, value in payload.get("application_identifiers", {}).items()
            },
            build_numbers={
                BuildTarget.parse(key): _parse_build_number(value)
                for key, value in payload.get("build_numbers", {}).items()
            },
            active_target=BuildTarget.parse(payload["active_target"]) if payload.get("active_target") else None,
            signing=SigningSettings(
                keystore_name=signing.get("keystore_name", ""),
                keyalias_name=signing.get("keyalias_name", ""),
            ),
            target_architectures=frozenset(payload.get("target_architectures", [ARCH_ARMV7, ARCH_ARM64])),
            build_app_bundle=bool(payload.get("build_app_bundle", False)),
            scenes=[
                SceneEntry(path=str(entry["path"]), enabled=bool(entry.get("enabled", True)))
                for entry in payload.get("scenes", [])
            ],
            settings_path=path,
        )

    def save(self) -> Path:
        path = self.settings_path or self.project_root / SETTINGS_RELATIVE_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        self.settings_path = path
        logger.debug("Saved player settings to {}", path)
        return path

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_name": self.product_name,
            "bundle_version": self.bundle_version,
            "application_identifiers": {target.value: value for target, value in self.application_identifiers.items()},
            "build_numbers": {target.value: value for target, value in self.build_numbers.items()},
            "active_target": self.active_target.value if self.active_target else None,
            "signing": {
                "keystore_name": self.signing.keystore_name,
                "keyalias_name": self.signing.keyalias_name,
            },
            "target_architectures": sorted(self.target_architectures),
            "build_app_bundle": self.build_app_bundle,
            "scenes": [{"path": scene.path, "enabled": scene.enabled} for scene in self.scenes],
        }


def discover_scenes(project_root: Path) -> List[SceneEntry]:
    assets = project_root / "Assets"
    if not assets.is_dir():
        return []
    return [
        SceneEntry(path=scene.relative_to(project_root).as_posix())
        for scene in sorted(assets.rglob("*.unity"))
    ]


def _parse_build_number(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _identifier_fragment(name: str) -> str:
    cleaned = "".join(ch for ch in name.lower() if ch.isalnum())
    return cleaned or "game"


__all__ = [
    "ARCH_ARM64",
    "ARCH_ARMV7",
    "PlatformEnvironment",
    "SceneEntry",
    "SigningSettings",
    "discover_scenes",
]
