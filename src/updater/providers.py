"""Local revision registry, remote revision oracle and package installer."""

from __future__ import annotations

import json
import re
import subprocess
import sys
from importlib import metadata
from typing import Callable, Protocol

import requests
from loguru import logger

from .models import UNKNOWN_REVISION, UpdateCheckError, short_revision


DISTRIBUTION_NAME = "unity-autobuild"
GITHUB_REPO = "cnaron/unity-autobuild"
TRACKED_BRANCH = "main"
GITHUB_API_URL = "https://api.github.com/repos/{repo}/commits/{branch}"

_HEX_REVISION = re.compile(r"^[0-9a-f]{7,40}$")


class RevisionRegistry(Protocol):
    def current_revision(self) -> str:
        """Short hash of the installed revision, or ``"Unknown"``."""

    def installed_version(self) -> str:
        """Installed release version, or ``"Unknown"``."""


class RevisionOracle(Protocol):
    def latest_revision(self, timeout: float) -> str:
        """Short hash of the newest revision on the tracked branch."""


class PackageInstaller(Protocol):
    def install(self, source: str) -> None:
        """Re-acquire the tool from ``source``."""


class InstalledPackageRegistry:
    """Read revision identity from the installed distribution's metadata.

    Installs from a git URL record the commit in ``direct_url.json``
    (``vcs_info.commit_id``); any other install reports ``"Unknown"``.
    """

    def __init__(self, distribution: str = DISTRIBUTION_NAME) -> None:
        self.distribution = distribution

    def installed_version(self) -> str:
        try:
            return metadata.version(self.distribution)
        except metadata.PackageNotFoundError:
            return UNKNOWN_REVISION

    def current_revision(self) -> str:
        try:
            raw = metadata.distribution(self.distribution).read_text("direct_url.json")
        except metadata.PackageNotFoundError:
            logger.debug("Distribution {} is not installed", self.distribution)
            return UNKNOWN_REVISION
        if not raw:
            return UNKNOWN_REVISION
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.debug("Unreadable direct_url.json for {}: {}", self.distribution, exc)
            return UNKNOWN_REVISION
        return revision_from_direct_url(payload)


def revision_from_direct_url(payload: object) -> str:
    if not isinstance(payload, dict):
        return UNKNOWN_REVISION
    vcs_info = payload.get("vcs_info")
    if not isinstance(vcs_info, dict):
        return UNKNOWN_REVISION
    for key in ("commit_id", "requested_revision"):
        value = vcs_info.get(key)
        if isinstance(value, str) and _HEX_REVISION.match(value.lower()):
            return short_revision(value.lower())
    return UNKNOWN_REVISION


class GitHubCommitOracle:
    """Query the latest commit of the tracked branch through the GitHub API."""

    def __init__(
        self,
        repo: str = GITHUB_REPO,
        branch: str = TRACKED_BRANCH,
        session: requests.Session | None = None,
    ) -> None:
        self.repo = repo
        self.branch = branch
        self.url = GITHUB_API_URL.format(repo=repo, branch=branch)
        self._session = session or requests.Session()

    def latest_revision(self, timeout: float = 10.0) -> str:
        response = self._session.get(
            self.url,
            headers={"Accept": "application/vnd.github+json"},
            timeout=timeout,
        )
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpdateCheckError(f"Invalid JSON from {self.url}") from exc
        sha = payload.get("sha") if isinstance(payload, dict) else None
        if not isinstance(sha, str) or not _HEX_REVISION.match(sha.lower()):
            raise UpdateCheckError(f"No commit hash in response from {self.url}")
        return short_revision(sha.lower())

    @property
    def source_url(self) -> str:
        return f"git+https://github.com/{self.repo}.git@{self.branch}"


class PipInstaller:
    """Reinstall the tool through pip so the tracked branch head is picked up."""

    def __init__(
        self,
        python: str = sys.executable,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.python = python
        self._runner = runner

    def install(self, source: str) -> None:
        cmd = [self.python, "-m", "pip", "install", "--upgrade", "--force-reinstall", "--no-deps", source]
        logger.info("Updating from {}", source)
        logger.debug("Running pip: {}", " ".join(cmd))
        try:
            self._runner(cmd, check=True)
        except (OSError, subprocess.CalledProcessError) as exc:
            raise UpdateCheckError(f"Update from {source} failed: {exc}") from exc


__all__ = [
    "DISTRIBUTION_NAME",
    "GITHUB_API_URL",
    "GITHUB_REPO",
    "GitHubCommitOracle",
    "InstalledPackageRegistry",
    "PackageInstaller",
    "PipInstaller",
    "RevisionOracle",
    "RevisionRegistry",
    "TRACKED_BRANCH",
    "revision_from_direct_url",
]
