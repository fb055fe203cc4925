"""Build configuration record and its JSON-backed store."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from loguru import logger


CONFIG_RELATIVE_PATH = Path("AutoBuild") / "autobuild_config.json"

DEFAULT_BACKEND_COMMAND = [
    "{unity}",
    "-quit",
    "-batchmode",
    "-nographics",
    "-projectPath",
    "{project_root}",
    "-buildTarget",
    "{target}",
    "-executeMethod",
    "AutoBuild.AutoBuildBridge.Build",
    "-autobuildOutput",
    "{output_path}",
    "-autobuildSettings",
    "{settings_path}",
    "-logFile",
    "-",
]


class BuildTarget(str, Enum):
    """Supported output platforms."""

    IOS = "iOS"
    ANDROID = "Android"

    @property
    def key(self) -> str:
        return self.value.lower()

    @classmethod
    def parse(cls, value: str) -> "BuildTarget":
        for target in cls:
            if value.lower() in {target.value.lower(), target.name.lower()}:
                return target
        raise ValueError(f"Unknown platform {value}")


@dataclass(slots=True)
class IOSBuildOptions:
    generate_xcode_symbols: bool = True
    development_build: bool = False


@dataclass(slots=True)
class AndroidBuildOptions:
    build_app_bundle: bool = False
    development_build: bool = False
    split_by_architecture: bool = False


@dataclass(slots=True)
class BuildConfiguration:
    """Project-specific build settings shared by every platform build."""

    ios_build_path: str = "Builds/iOS"
    android_build_path: str = "Builds/Android"

    use_player_settings_keystore: bool = False
    keystore_path: str = ""
    keystore_password: str = ""
    key_alias_name: str = ""
    key_alias_password: str = ""

    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    r2_uploader_url: str = ""

    asc_key_id: str = ""
    asc_issuer_id: str = ""
    asc_key_file_path: str = ""

    auto_increment_build_number: bool = True
    open_output_folder_on_complete: bool = True
    ios_build_options: IOSBuildOptions = field(default_factory=IOSBuildOptions)
    android_build_options: AndroidBuildOptions = field(default_factory=AndroidBuildOptions)
    backend_command: List[str] = field(default_factory=lambda: list(DEFAULT_BACKEND_COMMAND))

    def build_path(self, target: BuildTarget, project_root: Path) -> Path:
        relative = self.ios_build_path if target is BuildTarget.IOS else self.android_build_path
        return (project_root / relative).resolve()

    def development_build(self, target: BuildTarget) -> bool:
        if target is BuildTarget.IOS:
            return self.ios_build_options.development_build
        return self.android_build_options.development_build

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], base: Optional["BuildConfiguration"] = None) -> "BuildConfiguration":
        """Overlay ``payload`` onto ``base`` (or defaults).

        Unknown keys are ignored and missing keys keep the base value, so
        records written by older releases still load.
        """

        config = base if base is not None else cls()
        for item in fields(cls):
            if item.name not in payload:
                continue
            value = payload[item.name]
            if item.name == "ios_build_options":
                value = _overlay(IOSBuildOptions, config.ios_build_options, value)
            elif item.name == "android_build_options":
                value = _overlay(AndroidBuildOptions, config.android_build_options, value)
            elif item.name == "backend_command":
                value = [str(part) for part in value] if isinstance(value, list) else config.backend_command
            setattr(config, item.name, value)
        return config


def _overlay(option_type: type, current: Any, payload: Any) -> Any:
    if not isinstance(payload, Mapping):
        return current
    values = {item.name: getattr(current, item.name) for item in fields(option_type)}
    values.update({key: value for key, value in payload.items() if key in values})
    return option_type(**values)


class ConfigurationStore:
    """Load and persist the :class:`BuildConfiguration` of one project."""

    def __init__(self, project_root: Path, config_path: Path | None = None) -> None:
        self.project_root = project_root
        self.config_path = config_path or project_root / CONFIG_RELATIVE_PATH

    def load(self) -> BuildConfiguration:
        if not self.config_path.exists():
            logger.info("No configuration found at {}; using defaults", self.config_path)
            return BuildConfiguration()
        try:
            payload = json.loads(self.config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Unable to read configuration {}: {}; using defaults", self.config_path, exc)
            return BuildConfiguration()
        if not isinstance(payload, dict):
            logger.warning("Configuration {} is not a JSON object; using defaults", self.config_path)
            return BuildConfiguration()
        return BuildConfiguration.from_dict(payload)

    def load_or_create(self) -> BuildConfiguration:
        existed = self.config_path.exists()
        config = self.load()
        if not existed:
            self.save(config)
            logger.info("Created default configuration at {}", self.config_path)
        return config

    def save(self, config: BuildConfiguration) -> None:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text(json.dumps(config.to_dict(), indent=2), encoding="utf-8")
        logger.debug("Saved configuration to {}", self.config_path)

    def export_to(self, path: Path, config: BuildConfiguration | None = None) -> Path:
        record = config if config is not None else self.load()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(record.to_dict(), indent=2), encoding="utf-8")
        logger.info("Configuration exported to {}", path)
        return path

    def import_from(self, path: Path) -> BuildConfiguration:
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        payload = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Configuration file {path} does not contain a JSON object")
        config = BuildConfiguration.from_dict(payload, base=self.load())
        self.save(config)
        logger.info("Configuration imported from {}", path)
        return config


def locate_project_root(start: Path) -> Optional[Path]:
    """Walk up from ``start`` to the first directory that looks like a game project."""

    current = start.resolve()
    for candidate in (current, *current.parents):
        if (candidate / "Assets").is_dir() and (candidate / "ProjectSettings").is_dir():
            return candidate
    return None


__all__ = [
    "AndroidBuildOptions",
    "BuildConfiguration",
    "BuildTarget",
    "ConfigurationStore",
    "IOSBuildOptions",
    "locate_project_root",
]
