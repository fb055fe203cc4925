"""Artifact upload to the object-storage uploader service."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol

import requests
from loguru import logger


class ArtifactSink(Protocol):
    def upload(self, path: Path) -> Optional[str]:
        """Push ``path`` and return its public URL when known."""


class R2Uploader:
    """Upload build artifacts to an R2 uploader endpoint with a streamed PUT."""

    def __init__(self, base_url: str, timeout: float = 300.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def upload(self, path: Path) -> Optional[str]:
        if not path.is_file():
            logger.info("Skipping upload of {}; only single-file artifacts are uploaded", path)
            return None

        target = f"{self.base_url}/upload/{path.name}"
        logger.info("Uploading {} to {}", path.name, self.base_url)
        try:
            with open(path, "rb") as handle:
                response = requests.put(
                    target,
                    data=handle,
                    headers={"Content-Type": "application/octet-stream"},
                    timeout=self.timeout,
                )
            response.raise_for_status()
        except (OSError, requests.RequestException) as exc:
            logger.warning("Artifact upload failed: {}", exc)
            return None

        url = self._extract_url(response) or target
        logger.success("Uploaded artifact: {}", url)
        return url

    @staticmethod
    def _extract_url(response: requests.Response) -> Optional[str]:
        try:
            payload = response.json()
        except ValueError:
            return None
        if isinstance(payload, dict) and isinstance(payload.get("url"), str):
            return payload["url"]
        return None


def create_uploader(base_url: str) -> Optional[R2Uploader]:
    if not base_url:
        logger.debug("Artifact upload not configured")
        return None
    return R2Uploader(base_url)


__all__ = ["ArtifactSink", "R2Uploader", "create_uploader"]
