"""Shared helpers for the AutoBuild tooling."""

from .logger import log_build_event, setup_logging

__all__ = ["log_build_event", "setup_logging"]
