"""Command-line entry points for platform builds and update checks."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

# Ensure repository paths are available when running from source checkout
_ROOT = Path(__file__).resolve().parents[1]
_SRC = _ROOT / "src"
for candidate in (_ROOT, _SRC):
    candidate_str = str(candidate)
    if candidate_str not in sys.path:
        sys.path.insert(0, candidate_str)

from loguru import logger  # noqa: E402  (import after sys.path setup)

from build_engine import (  # noqa: E402
    BuildExecutor,
    BuildPipelineError,
    BuildTarget,
    CommandBuildBackend,
    ConfigurationStore,
    CredentialResolver,
    ExitCode,
    PlatformEnvironment,
    check_project_structure,
    locate_project_root,
)
from build_engine.executor import reveal_in_file_manager  # noqa: E402
from notifications import create_notification_manager, create_uploader  # noqa: E402
from updater import PollingLoop, UpdateChecker, UpdateCheckError  # noqa: E402
from utils.logger import setup_logging  # noqa: E402


PROJECT_ROOT_ENV = "AUTOBUILD_PROJECT_ROOT"


def resolve_project_root(start: Path | None = None) -> Path:
    configured = os.getenv(PROJECT_ROOT_ENV)
    if configured:
        return Path(configured).expanduser().resolve()
    origin = (start or Path.cwd()).resolve()
    return locate_project_root(origin) or origin


def run_build(target: BuildTarget, project_root: Path | None = None) -> int:
    """Build ``target`` for the project and return the process exit code."""

    root = project_root or resolve_project_root()
    # Load environment variables from project .env if present
    load_dotenv(root / ".env", override=False)
    setup_logging(enqueue=False)

    # Nothing is written to the project until it has been validated
    try:
        check_project_structure(root)
        environment = PlatformEnvironment.load(root)
    except BuildPipelineError as exc:
        logger.error("{} build aborted: {}", target.value, exc)
        return int(ExitCode.FAILURE)

    setup_logging(log_directory=str(root / "Logs"), enqueue=False)
    store = ConfigurationStore(root)
    config = store.load()
    backend = CommandBuildBackend(environment, config.backend_command)

    reveal = None
    if config.open_output_folder_on_complete and not os.getenv("CI"):
        reveal = reveal_in_file_manager

    executor = BuildExecutor(
        project_root=root,
        config=config,
        environment=environment,
        backend=backend,
        credential_resolver=CredentialResolver(root),
        notifier=create_notification_manager(config.telegram_bot_token, config.telegram_chat_id),
        uploader=create_uploader(config.r2_uploader_url),
        reveal=reveal,
        config_store=store,
    )
    return int(executor.run(target))


def build_ios() -> None:
    raise SystemExit(run_build(BuildTarget.IOS))


def build_android() -> None:
    raise SystemExit(run_build(BuildTarget.ANDROID))


def export_xcode() -> None:
    """Export the Xcode project; identical to the iOS build."""

    build_ios()


def check_updates(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Check whether a newer AutoBuild revision is available")
    parser.add_argument("--apply", action="store_true", help="Reinstall from the tracked branch when outdated")
    parser.add_argument("--timeout", type=float, default=10.0, help="Remote request timeout in seconds")
    args = parser.parse_args(list(argv) if argv is not None else None)

    setup_logging(enqueue=False)
    loop = PollingLoop()
    checker = UpdateChecker(loop, timeout=args.timeout)
    try:
        task = checker.check_for_updates()
        loop.run_until(task.done, interval=0.1)
        state = task.result()
    finally:
        checker.shutdown()

    last_checked = state.last_checked_at.strftime("%H:%M:%S") if state.last_checked_at else "-"
    logger.info(
        "Installed {} ({}), latest {}; checked at {}",
        state.local_version,
        state.local_revision,
        state.remote_revision,
        last_checked,
    )
    if not state.has_update:
        logger.info("AutoBuild is up to date")
        return int(ExitCode.SUCCESS)

    logger.warning("A newer AutoBuild revision is available: {}", state.remote_revision)
    if args.apply:
        try:
            checker.apply_update()
        except UpdateCheckError as exc:
            logger.error("{}", exc)
            return int(ExitCode.FAILURE)
        logger.success("AutoBuild updated to {}", state.remote_revision)
    return int(ExitCode.SUCCESS)


def check_updates_entry() -> None:
    raise SystemExit(check_updates())


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run an AutoBuild platform build")
    parser.add_argument("platform", choices=[target.key for target in BuildTarget])
    args = parser.parse_args(list(argv) if argv is not None else None)
    return run_build(BuildTarget.parse(args.platform))


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
