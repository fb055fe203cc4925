"""Tests for the build configuration store."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from build_engine.config import (
    BuildConfiguration,
    BuildTarget,
    ConfigurationStore,
    locate_project_root,
)


def test_load_returns_defaults_when_missing(project_root: Path) -> None:
    store = ConfigurationStore(project_root)
    config = store.load()
    assert config == BuildConfiguration()
    assert config.auto_increment_build_number
    assert not store.config_path.exists()


def test_load_or_create_persists_defaults(project_root: Path) -> None:
    store = ConfigurationStore(project_root)
    store.load_or_create()
    assert store.config_path.exists()
    assert store.load() == BuildConfiguration()


def test_unreadable_record_falls_back_to_defaults(project_root: Path) -> None:
    store = ConfigurationStore(project_root)
    store.config_path.parent.mkdir(parents=True)
    store.config_path.write_text("{not json", encoding="utf-8")
    assert store.load() == BuildConfiguration()


def test_save_and_load_keep_nested_options(project_root: Path) -> None:
    store = ConfigurationStore(project_root)
    config = BuildConfiguration(keystore_path="Keys/release.keystore", key_alias_name="release")
    config.android_build_options.build_app_bundle = True
    config.ios_build_options.development_build = True
    store.save(config)

    loaded = store.load()
    assert loaded.keystore_path == "Keys/release.keystore"
    assert loaded.android_build_options.build_app_bundle
    assert loaded.ios_build_options.development_build
    assert not loaded.android_build_options.split_by_architecture


def test_export_then_import_reproduces_record(project_root: Path, tmp_path: Path) -> None:
    source = ConfigurationStore(project_root)
    config = BuildConfiguration(
        ios_build_path="Out/ios",
        telegram_bot_token="123:abc",
        telegram_chat_id="-100",
        r2_uploader_url="https://pan.example.com",
        asc_key_id="D383SF739",
        asc_issuer_id="69a6de78-0000",
        auto_increment_build_number=False,
    )
    config.android_build_options.split_by_architecture = True
    exported = source.export_to(tmp_path / "autobuild-config.json", config)

    other_root = tmp_path / "Other"
    other_root.mkdir()
    imported = ConfigurationStore(other_root).import_from(exported)
    assert imported == config
    assert ConfigurationStore(other_root).load() == config


def test_import_ignores_unknown_keys_and_keeps_missing(project_root: Path, tmp_path: Path) -> None:
    store = ConfigurationStore(project_root)
    store.save(BuildConfiguration(keystore_path="Keys/a.keystore"))
    payload = {"android_build_path": "Out/android", "legacy_field": 1, "android_build_options": {"build_app_bundle": True}}
    path = tmp_path / "partial.json"
    path.write_text(json.dumps(payload), encoding="utf-8")

    imported = store.import_from(path)
    assert imported.android_build_path == "Out/android"
    assert imported.keystore_path == "Keys/a.keystore"
    assert imported.android_build_options.build_app_bundle
    assert not imported.android_build_options.development_build


def test_import_missing_file_raises(project_root: Path, tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        ConfigurationStore(project_root).import_from(tmp_path / "absent.json")


def test_build_path_is_resolved_against_project_root(project_root: Path) -> None:
    config = BuildConfiguration()
    assert config.build_path(BuildTarget.IOS, project_root) == (project_root / "Builds" / "iOS").resolve()
    assert config.build_path(BuildTarget.ANDROID, project_root) == (project_root / "Builds" / "Android").resolve()


def test_locate_project_root_walks_up(project_root: Path) -> None:
    nested = project_root / "Assets" / "Scenes"
    assert locate_project_root(nested) == project_root.resolve()
    assert locate_project_root(project_root.parent) is None


def test_build_target_parse_accepts_keys_and_names() -> None:
    assert BuildTarget.parse("ios") is BuildTarget.IOS
    assert BuildTarget.parse("Android") is BuildTarget.ANDROID
    with pytest.raises(ValueError):
        BuildTarget.parse("switch")
