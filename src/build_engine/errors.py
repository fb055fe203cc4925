"""Fatal pipeline errors raised before the backend runs."""

from __future__ import annotations


class BuildPipelineError(RuntimeError):
    """Fatal failure that aborts the pipeline before the backend runs."""


class ProjectStructureError(BuildPipelineError):
    pass


class PlatformSettingsError(BuildPipelineError):
    """The persisted player settings cannot be read."""


class PlatformSwitchError(BuildPipelineError):
    pass


class OutputDirectoryError(BuildPipelineError):
    pass


__all__ = [
    "BuildPipelineError",
    "OutputDirectoryError",
    "PlatformSettingsError",
    "PlatformSwitchError",
    "ProjectStructureError",
]
