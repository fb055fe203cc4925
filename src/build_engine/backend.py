"""Build backend contract and the command-line backend adapter."""

from __future__ import annotations

import os
import re
import subprocess
import time
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Protocol, Sequence, Tuple

from loguru import logger

from .config import BuildTarget
from .environment import PlatformEnvironment


class BuildResult(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class MessageSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class BuildMessage:
    severity: MessageSeverity
    content: str


@dataclass(slots=True, frozen=True)
class BuildStep:
    name: str
    messages: Tuple[BuildMessage, ...] = ()


@dataclass(slots=True, frozen=True)
class BuildOptions:
    development: bool = False
    app_bundle: bool = False
    architectures: FrozenSet[str] = frozenset()
    split_by_architecture: bool = False
    xcode_symbols: bool = False


@dataclass(slots=True, frozen=True)
class BuildRequest:
    target: BuildTarget
    output_path: Path
    options: BuildOptions = field(default_factory=BuildOptions)
    scenes: Tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class BuildReport:
    """Outcome of one backend invocation."""

    result: BuildResult
    output_path: Path
    total_size: int = 0
    total_time: timedelta = timedelta()
    steps: Tuple[BuildStep, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.result is BuildResult.SUCCEEDED

    @property
    def messages(self) -> List[BuildMessage]:
        return [message for step in self.steps for message in step.messages]

    def errors(self) -> List[BuildMessage]:
        return [message for message in self.messages if message.severity is MessageSeverity.ERROR]


class BuildBackend(Protocol):
    """Platform toolchain turning a project into a binary."""

    @property
    def active_platform(self) -> Optional[BuildTarget]:
        """Platform the backend is currently configured for."""

    def switch_platform(self, target: BuildTarget) -> bool:
        """Switch the active platform; return ``False`` when the switch failed."""

    def build(self, request: BuildRequest) -> BuildReport:
        """Run a build synchronously and report its outcome."""


_ERROR_LINE = re.compile(r"\berror(?: [A-Z]+\d+)?:|\w*Exception:|BuildFailedException", re.IGNORECASE)
_WARNING_LINE = re.compile(r"\bwarning(?: [A-Z]+\d+)?:", re.IGNORECASE)


class CommandBuildBackend:
    """Drive the engine executable in batch mode from a command template.

    Placeholders ``{unity}``, ``{project_root}``, ``{target}``,
    ``{output_path}`` and ``{settings_path}`` are substituted per build. The
    player settings file is written before the command runs so the engine
    side reads the same ambient settings; passwords are handed over through
    the child environment only.
    """

    def __init__(
        self,
        environment: PlatformEnvironment,
        command_template: Sequence[str],
        *,
        executable: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.environment = environment
        self.command_template = list(command_template)
        self.executable = executable or os.getenv("UNITY_PATH", "Unity")
        self.timeout = timeout

    @property
    def active_platform(self) -> Optional[BuildTarget]:
        return self.environment.active_target

    def switch_platform(self, target: BuildTarget) -> bool:
        # The target is passed on every invocation through -buildTarget.
        self.environment.active_target = target
        return True

    def build(self, request: BuildRequest) -> BuildReport:
        settings_path = self.environment.save()
        cmd = self._render_command(request, settings_path)
        logger.debug("Running backend: {}", " ".join(cmd))

        env = dict(os.environ)
        env.update(self.environment.signing_environment())
        env.update(_options_environment(request))

        started = time.monotonic()
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                env=env,
                cwd=self.environment.project_root,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            elapsed = timedelta(seconds=time.monotonic() - started)
            return BuildReport(
                result=BuildResult.FAILED,
                output_path=request.output_path,
                total_time=elapsed,
                steps=(BuildStep("launch", (BuildMessage(MessageSeverity.ERROR, str(exc)),)),),
            )
        elapsed = timedelta(seconds=time.monotonic() - started)

        messages = parse_diagnostics(completed.stdout) + parse_diagnostics(completed.stderr)
        produced = request.output_path.exists()
        if completed.returncode != 0:
            messages.append(BuildMessage(MessageSeverity.ERROR, f"Backend exited with code {completed.returncode}"))
        elif not produced:
            messages.append(BuildMessage(MessageSeverity.ERROR, f"Backend produced no output at {request.output_path}"))

        succeeded = completed.returncode == 0 and produced
        return BuildReport(
            result=BuildResult.SUCCEEDED if succeeded else BuildResult.FAILED,
            output_path=request.output_path,
            total_size=measure_size(request.output_path) if produced else 0,
            total_time=elapsed,
            steps=(BuildStep("build", tuple(messages)),),
        )

    def _render_command(self, request: BuildRequest, settings_path: Path) -> List[str]:
        values = {
            "unity": self.executable,
            "project_root": str(self.environment.project_root),
            "target": request.target.value,
            "output_path": str(request.output_path),
            "settings_path": str(settings_path),
        }
        return [part.format(**values) for part in self.command_template]


def _options_environment(request: BuildRequest) -> Dict[str, str]:
    options = request.options
    return {
        "AUTOBUILD_DEVELOPMENT": "1" if options.development else "0",
        "AUTOBUILD_APP_BUNDLE": "1" if options.app_bundle else "0",
        "AUTOBUILD_SPLIT_ARCHITECTURES": "1" if options.split_by_architecture else "0",
        "AUTOBUILD_XCODE_SYMBOLS": "1" if options.xcode_symbols else "0",
        "AUTOBUILD_ARCHITECTURES": ",".join(sorted(options.architectures)),
        "AUTOBUILD_SCENES": os.pathsep.join(request.scenes),
    }


def parse_diagnostics(output: str) -> List[BuildMessage]:
    messages: List[BuildMessage] = []
    for line in output.splitlines():
        text = line.strip()
        if not text:
            continue
        if _ERROR_LINE.search(text):
            messages.append(BuildMessage(MessageSeverity.ERROR, text))
        elif _WARNING_LINE.search(text):
            messages.append(BuildMessage(MessageSeverity.WARNING, text))
    return messages


def measure_size(path: Path) -> int:
    if path.is_file():
        return path.stat().st_size
    return sum(item.stat().st_size for item in path.rglob("*") if item.is_file())


__all__ = [
    "BuildBackend",
    "BuildMessage",
    "BuildOptions",
    "BuildReport",
    "BuildRequest",
    "BuildResult",
    "BuildStep",
    "CommandBuildBackend",
    "MessageSeverity",
    "measure_size",
    "parse_diagnostics",
]
