"""Self-update checking for the AutoBuild tool."""

from .models import UNKNOWN_REVISION, UpdateCheckError, UpdateCheckState, UpdatePhase
from .polling import CallbackList, PollingLoop, Subscription
from .providers import GitHubCommitOracle, InstalledPackageRegistry, PipInstaller
from .update_checker import UpdateChecker

__all__ = [
    "CallbackList",
    "GitHubCommitOracle",
    "InstalledPackageRegistry",
    "PipInstaller",
    "PollingLoop",
    "Subscription",
    "UNKNOWN_REVISION",
    "UpdateCheckError",
    "UpdateCheckState",
    "UpdateChecker",
    "UpdatePhase",
]
