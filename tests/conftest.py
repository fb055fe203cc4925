"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from concurrent.futures import Executor, Future
from datetime import timedelta
from pathlib import Path
from typing import Callable, Iterator, List, Optional

import pytest
from loguru import logger


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from build_engine.backend import (  # noqa: E402
    BuildMessage,
    BuildReport,
    BuildRequest,
    BuildResult,
    BuildStep,
    MessageSeverity,
)
from build_engine.config import BuildTarget  # noqa: E402


class FakeBackend:
    """In-memory backend recording every request it receives."""

    def __init__(
        self,
        *,
        result: BuildResult = BuildResult.SUCCEEDED,
        messages: Optional[List[BuildMessage]] = None,
        active: Optional[BuildTarget] = None,
        switch_ok: bool = True,
    ) -> None:
        self.result = result
        self.messages = messages or []
        self.active = active
        self.switch_ok = switch_ok
        self.requests: List[BuildRequest] = []
        self.switches: List[BuildTarget] = []

    @property
    def active_platform(self) -> Optional[BuildTarget]:
        return self.active

    def switch_platform(self, target: BuildTarget) -> bool:
        self.switches.append(target)
        if self.switch_ok:
            self.active = target
        return self.switch_ok

    def build(self, request: BuildRequest) -> BuildReport:
        self.requests.append(request)
        if self.result is BuildResult.SUCCEEDED:
            request.output_path.write_bytes(b"\0" * 2048)
        return BuildReport(
            result=self.result,
            output_path=request.output_path,
            total_size=2048,
            total_time=timedelta(seconds=42),
            steps=(
                BuildStep("compile", tuple(self.messages[:1])),
                BuildStep("package", tuple(self.messages[1:])),
            ),
        )


class InlineExecutor(Executor):
    """Executor running submitted calls immediately on the calling thread."""

    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fn: Callable, /, *args, **kwargs) -> Future:  # type: ignore[override]
        self.submitted += 1
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:  # noqa: BLE001
            future.set_exception(exc)
        return future


class ManualExecutor(Executor):
    """Executor whose futures stay pending until the test resolves them."""

    def __init__(self) -> None:
        self.calls: List[tuple[Callable, tuple]] = []
        self.futures: List[Future] = []

    def submit(self, fn: Callable, /, *args, **kwargs) -> Future:  # type: ignore[override]
        future: Future = Future()
        self.calls.append((fn, args))
        self.futures.append(future)
        return future

    def run_pending(self, index: int = -1) -> None:
        fn, args = self.calls[index]
        future = self.futures[index]
        try:
            future.set_result(fn(*args))
        except Exception as exc:  # noqa: BLE001
            future.set_exception(exc)


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "Game"
    (root / "Assets" / "Scenes").mkdir(parents=True)
    (root / "ProjectSettings").mkdir()
    (root / "Assets" / "Scenes" / "Main.unity").write_text("scene", encoding="utf-8")
    (root / "Assets" / "Scenes" / "Boot.unity").write_text("scene", encoding="utf-8")
    return root


@pytest.fixture
def log_messages() -> Iterator[List[str]]:
    records: List[str] = []
    handler_id = logger.add(lambda message: records.append(str(message)), level="DEBUG", format="{level}|{message}")
    yield records
    logger.remove(handler_id)


@pytest.fixture
def error_messages() -> List[BuildMessage]:
    return [
        BuildMessage(MessageSeverity.ERROR, "Assets/Scripts/Player.cs(12,5): error CS0246: Type not found"),
        BuildMessage(MessageSeverity.WARNING, "Shader warning in 'Unlit': precision"),
        BuildMessage(MessageSeverity.ERROR, "Gradle build failed: keystore was tampered with"),
    ]
