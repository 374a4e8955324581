"""
App Orchestration - Steps Package

Step interface, capability declarations and the built-in build and snapshot
steps. Importing this package registers every built-in step.
"""

from app_orchestration.steps.base import (
    BuildStep,
    Capability,
    Collaborators,
    ShellCommandStep,
    SnapshotStep,
    Step,
    StepRegistry,
    step_interface,
)
from app_orchestration.steps.build import CloneRepoStep, PackageBuildStep, SaveBuildStep
from app_orchestration.steps.snapshot import (
    DeleteExistingSnapshotStep,
    DisableMaintenanceStep,
    EnableMaintenanceStep,
    SyncAssetsStep,
    UploadDatabasesStep,
)

__all__ = [
    "BuildStep",
    "Capability",
    "Collaborators",
    "ShellCommandStep",
    "SnapshotStep",
    "Step",
    "StepRegistry",
    "step_interface",
    "CloneRepoStep",
    "PackageBuildStep",
    "SaveBuildStep",
    "DeleteExistingSnapshotStep",
    "DisableMaintenanceStep",
    "EnableMaintenanceStep",
    "SyncAssetsStep",
    "UploadDatabasesStep",
]
