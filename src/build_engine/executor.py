"""Release build orchestration for a single platform."""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
from datetime import date, datetime
from enum import IntEnum
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from notifications import ArtifactSink, NotificationSink
from utils.logger import log_build_event

from .backend import BuildBackend, BuildOptions, BuildReport, BuildRequest
from .config import BuildConfiguration, BuildTarget, ConfigurationStore
from .credentials import CredentialResolver
from .environment import ARCH_ARM64, ARCH_ARMV7, PlatformEnvironment
from .errors import (
    BuildPipelineError,
    OutputDirectoryError,
    PlatformSettingsError,
    PlatformSwitchError,
    ProjectStructureError,
)
from .versioning import VersionPolicy


STATUS_FILE_TEMPLATE = "Logs/last_build_{platform}.txt"
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

Clock = Callable[[], datetime]
Revealer = Callable[[Path], None]


class ExitCode(IntEnum):
    SUCCESS = 0
    FAILURE = 1


def artifact_name(
    target: BuildTarget,
    bundle_id: str,
    version: str,
    build_number: int,
    timestamp: datetime,
    *,
    app_bundle: bool = False,
) -> str:
    """Name of the produced artifact; Xcode projects are directories without extension."""

    stem = f"{bundle_id}-{version}-{build_number}-{timestamp.strftime(TIMESTAMP_FORMAT)}"
    if target is BuildTarget.ANDROID:
        return f"{stem}.{'aab' if app_bundle else 'apk'}"
    return stem


def status_file_path(project_root: Path, target: BuildTarget) -> Path:
    return project_root / STATUS_FILE_TEMPLATE.format(platform=target.key)


def check_project_structure(project_root: Path) -> None:
    missing = [name for name in ("Assets", "ProjectSettings") if not (project_root / name).is_dir()]
    if missing:
        raise ProjectStructureError(f"{project_root} is missing {', '.join(missing)}")


class BuildExecutor:
    """Drive one platform build end-to-end and map the result to an exit code."""

    def __init__(
        self,
        *,
        project_root: Path,
        config: BuildConfiguration,
        environment: PlatformEnvironment,
        backend: BuildBackend,
        credential_resolver: CredentialResolver | None = None,
        version_policy: VersionPolicy | None = None,
        notifier: NotificationSink | None = None,
        uploader: ArtifactSink | None = None,
        reveal: Revealer | None = None,
        clock: Clock = datetime.now,
        use_environment_credentials: bool = True,
        config_store: ConfigurationStore | None = None,
    ) -> None:
        self.project_root = project_root
        self.config = config
        self.environment = environment
        self.backend = backend
        self.credential_resolver = credential_resolver or CredentialResolver(project_root)
        self.version_policy = version_policy or VersionPolicy()
        self.notifier = notifier
        self.uploader = uploader
        self.reveal = reveal
        self.clock = clock
        self.use_environment_credentials = use_environment_credentials
        self.config_store = config_store
        self._running = False

    def run(self, target: BuildTarget) -> ExitCode:
        if self._running:
            raise RuntimeError("A build is already running in this process")
        self._running = True
        try:
            return self._run(target)
        finally:
            self._running = False

    def _run(self, target: BuildTarget) -> ExitCode:
        logger.info("=== Starting {} build ===", target.value)
        try:
            check_project_structure(self.project_root)
            self._ensure_platform(target)
            output_dir = self._ensure_output_directory(target)
        except BuildPipelineError as exc:
            logger.error("{} build aborted: {}", target.value, exc)
            log_build_event("aborted", platform=target.key, reason=str(exc))
            return ExitCode.FAILURE

        self._persist_default_configuration()

        if self.config.auto_increment_build_number:
            self.version_policy.apply(self.environment, target, self._today())
            self.environment.save()

        self._apply_signing(target)

        request = self._assemble_request(target, output_dir)
        logger.info("Scenes: {}", ", ".join(request.scenes) or "<none>")
        logger.info("Output path: {}", request.output_path)
        logger.info("Bundle ID: {}", self.environment.application_identifier(target))
        logger.info(
            "Version: {} (Build {})",
            self.environment.bundle_version,
            self.environment.build_number(target),
        )

        report = self.backend.build(request)
        return self._handle_report(target, report)

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------
    def _ensure_platform(self, target: BuildTarget) -> None:
        if self.backend.active_platform is target:
            return
        logger.info("Switching active platform to {}", target.value)
        try:
            switched = self.backend.switch_platform(target)
        except Exception as exc:  # noqa: BLE001
            raise PlatformSwitchError(f"Switching to {target.value} failed: {exc}") from exc
        if not switched:
            raise PlatformSwitchError(f"Switching to {target.value} failed")
        self.environment.active_target = target

    def _ensure_output_directory(self, target: BuildTarget) -> Path:
        output_dir = self.config.build_path(target, self.project_root)
        if output_dir.is_dir():
            return output_dir
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputDirectoryError(f"Cannot create output directory {output_dir}: {exc}") from exc
        logger.info("Created directory: {}", output_dir)
        return output_dir

    def _persist_default_configuration(self) -> None:
        if self.config_store is None or self.config_store.config_path.exists():
            return
        self.config_store.save(self.config)
        logger.info("Created default configuration at {}", self.config_store.config_path)

    def _apply_signing(self, target: BuildTarget) -> None:
        result = self.credential_resolver.resolve(
            target,
            self.config,
            use_environment=self.use_environment_credentials,
        )
        if result.is_err():
            assert result.error is not None
            logger.warning("{}", result.error.describe())
            return
        credentials = result.unwrap()
        if credentials is not None:
            self.credential_resolver.apply(credentials, self.environment)

    def _assemble_request(self, target: BuildTarget, output_dir: Path) -> BuildRequest:
        if target is BuildTarget.ANDROID:
            android = self.config.android_build_options
            self.environment.build_app_bundle = android.build_app_bundle
            self.environment.target_architectures = frozenset({ARCH_ARMV7, ARCH_ARM64})
            options = BuildOptions(
                development=android.development_build,
                app_bundle=android.build_app_bundle,
                architectures=self.environment.target_architectures,
                split_by_architecture=android.split_by_architecture,
            )
            logger.info("Target architectures: {}", " + ".join(sorted(options.architectures, reverse=True)))
        else:
            ios = self.config.ios_build_options
            options = BuildOptions(
                development=ios.development_build,
                architectures=frozenset({ARCH_ARM64}),
                xcode_symbols=ios.generate_xcode_symbols,
            )

        name = artifact_name(
            target,
            self.environment.application_identifier(target),
            self.environment.bundle_version,
            self.environment.build_number(target),
            self.clock(),
            app_bundle=options.app_bundle,
        )
        return BuildRequest(
            target=target,
            output_path=output_dir / name,
            options=options,
            scenes=tuple(self.environment.enabled_scenes()),
        )

    def _handle_report(self, target: BuildTarget, report: BuildReport) -> ExitCode:
        if report.succeeded:
            size_mb = report.total_size / (1024 * 1024)
            logger.success("=== {} build succeeded ===", target.value)
            logger.info("Total time: {}", report.total_time)
            logger.info("Output size: {:.2f} MB", size_mb)
            logger.info("Output path: {}", report.output_path)
            self._write_status_file(target, report.output_path)
            log_build_event(
                "succeeded",
                platform=target.key,
                output_path=str(report.output_path),
                build_number=self.environment.build_number(target),
                elapsed=report.total_time.total_seconds(),
            )
            self._notify(
                f"{target.value} build succeeded: {self.environment.bundle_version} "
                f"(Build {self.environment.build_number(target)}), {size_mb:.2f} MB",
                "success",
            )
            self._upload(report.output_path)
            if self.config.open_output_folder_on_complete and self.reveal is not None:
                self.reveal(report.output_path.parent)
            return ExitCode.SUCCESS

        logger.error("=== {} build failed ===", target.value)
        logger.error("Result: {}", report.result.value)
        errors = report.errors()
        for message in errors:
            logger.error("  {}", message.content)
        log_build_event("failed", platform=target.key, errors=len(errors))
        self._notify(f"{target.value} build failed with {len(errors)} error(s)", "error")
        return ExitCode.FAILURE

    # ------------------------------------------------------------------
    # Side channels
    # ------------------------------------------------------------------
    def _write_status_file(self, target: BuildTarget, output_path: Path) -> None:
        status_path = status_file_path(self.project_root, target)
        status_path.parent.mkdir(parents=True, exist_ok=True)
        status_path.write_text(str(output_path.resolve()), encoding="utf-8")
        logger.debug("Wrote build status to {}", status_path)

    def _notify(self, message: str, level: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.send(message, level)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Notification failed: {}", exc)

    def _upload(self, path: Path) -> None:
        if self.uploader is None:
            return
        try:
            self.uploader.upload(path)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Artifact upload failed: {}", exc)

    def _today(self) -> date:
        return self.clock().date()


def reveal_in_file_manager(path: Path) -> None:
    """Open ``path`` in the platform file manager; best effort."""

    if sys.platform == "darwin":
        opener = shutil.which("open")
    elif sys.platform.startswith("win"):
        os.startfile(str(path))  # type: ignore[attr-defined]
        return
    else:
        opener = shutil.which("xdg-open")
    if not opener:
        logger.debug("No file manager opener available for {}", path)
        return
    subprocess.Popen([opener, str(path)])


__all__ = [
    "BuildExecutor",
    "BuildPipelineError",
    "ExitCode",
    "OutputDirectoryError",
    "PlatformSettingsError",
    "PlatformSwitchError",
    "ProjectStructureError",
    "STATUS_FILE_TEMPLATE",
    "artifact_name",
    "check_project_structure",
    "reveal_in_file_manager",
    "status_file_path",
]
