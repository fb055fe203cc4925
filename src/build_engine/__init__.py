"""Release build orchestration for mobile platform targets."""

from .backend import (
    BuildBackend,
    BuildMessage,
    BuildOptions,
    BuildReport,
    BuildRequest,
    BuildResult,
    BuildStep,
    CommandBuildBackend,
    MessageSeverity,
)
from .config import BuildConfiguration, BuildTarget, ConfigurationStore, locate_project_root
from .credentials import CredentialError, CredentialErrorKind, CredentialResolver, SigningCredentials
from .environment import PlatformEnvironment, SceneEntry
from .errors import (
    BuildPipelineError,
    OutputDirectoryError,
    PlatformSettingsError,
    PlatformSwitchError,
    ProjectStructureError,
)
from .executor import BuildExecutor, ExitCode, artifact_name, check_project_structure, status_file_path
from .versioning import VersionBump, VersionPolicy

__all__ = [
    "BuildBackend",
    "BuildConfiguration",
    "BuildExecutor",
    "BuildMessage",
    "BuildOptions",
    "BuildPipelineError",
    "BuildReport",
    "BuildRequest",
    "BuildResult",
    "BuildStep",
    "BuildTarget",
    "CommandBuildBackend",
    "ConfigurationStore",
    "CredentialError",
    "CredentialErrorKind",
    "CredentialResolver",
    "ExitCode",
    "MessageSeverity",
    "OutputDirectoryError",
    "PlatformEnvironment",
    "PlatformSettingsError",
    "PlatformSwitchError",
    "ProjectStructureError",
    "SceneEntry",
    "SigningCredentials",
    "VersionBump",
    "VersionPolicy",
    "artifact_name",
    "check_project_structure",
    "locate_project_root",
    "status_file_path",
]
