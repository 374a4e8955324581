"""
App Orchestration - Domain Models

Pydantic models for application configuration, normalized plans, step
execution contexts and API payloads. These are the data structures that
flow through the engine and the facades.
"""

from __future__ import annotations
from difflib import get_close_matches
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app_orchestration.errors import ConfigurationError
from app_orchestration.file_layout import FileLayout, FileLayoutStrategy


# =============================================================================
# ENUMS
# =============================================================================

class PlanKind(str, Enum):
    """Kind of plan; selects the step interface and the context model."""
    BUILD = "build"
    SNAPSHOT = "snapshot"


class Condition(str, Enum):
    """Runtime conditions a step can be gated on."""
    ASSETS = "assets"
    DATABASES = "databases"
    CODE = "code"


class AssetLocation(str, Enum):
    """Where an asset lives relative to the file layout."""
    CODE = "code"
    LOCAL = "local"
    SHARED = "shared"


class MaintenanceStrategyType(str, Enum):
    """Configured maintenance mode implementation."""
    DEFAULT = "default"
    NONE = "none"
    FLAG_FILE = "flag_file"


# =============================================================================
# PLAN MODELS
# =============================================================================

class StepSpec(BaseModel):
    """A single normalized step invocation."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Step name, unique within its section")
    type: str = Field(..., description="Registered step name or dotted import path")
    command: Optional[str] = Field(default=None, description="Command for shell-backed steps")
    options: Dict[str, Any] = Field(default_factory=dict)
    conditions: List[Condition] = Field(default_factory=list)
    comment: Optional[str] = None
    environment: Dict[str, str] = Field(default_factory=dict)
    run_in_code_root: bool = Field(default=False, description="Run in the application code path instead of the plan path")
    working_directory: Optional[str] = Field(default=None, description="Directory relative to the base path to run in")

    @property
    def gate(self) -> frozenset:
        """Conditions gating this step (empty means unconditional)."""
        return frozenset(self.conditions)


class NormalizedPlan(BaseModel):
    """
    Canonical, ordered plan.

    Sections run in the order preflight_steps, clean_steps, steps.
    clean_steps only run when the caller asks to replace an existing artifact.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    kind: PlanKind
    preflight_steps: List[StepSpec] = Field(default_factory=list)
    clean_steps: List[StepSpec] = Field(default_factory=list)
    steps: List[StepSpec] = Field(default_factory=list)

    @property
    def step_count(self) -> int:
        return len(self.preflight_steps) + len(self.clean_steps) + len(self.steps)


# =============================================================================
# EXECUTION CONTEXTS
# =============================================================================

class StepContext(BaseModel):
    """Immutable parameters threaded through every step of a run."""
    model_config = ConfigDict(frozen=True, extra="allow")

    plan_path: str = Field(..., description="Scratch directory the plan works in")


class BuildContext(StepContext):
    """Context for build plans."""
    repo_reference: str
    build_id: str
    save_path: str


class SnapshotContext(StepContext):
    """Context for snapshot plans."""
    snapshot_name: str
    snapshot_path: str
    branch: Optional[str] = None
    include_databases: bool = True
    include_assets: bool = True
    asset_sync_config: Dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# APPLICATION CONFIGURATION (YAML -> Domain Model)
# =============================================================================

class DatabaseConfig(BaseModel):
    """One application database."""
    adapter: Optional[str] = Field(default=None, description="Database adapter name")
    importexport_adapter: Optional[str] = Field(default=None, description="Import/export adapter name")
    excludes: List[str] = Field(default_factory=list, description="Tables or @groups left out of exports")
    local_database_name: Optional[str] = Field(
        default=None, description="Physical database to export, overriding the layout's naming"
    )


class AssetConfig(BaseModel):
    """One asset directory included in snapshots."""
    location: AssetLocation = AssetLocation.SHARED
    local_path: Optional[str] = None
    excludes: List[str] = Field(default_factory=list)
    includes: List[str] = Field(default_factory=list)


class AdapterConfig(BaseModel):
    """Database adapter definition; extra keys are passed to the adapter."""
    model_config = ConfigDict(extra="allow")

    type: str = Field(default="mysql", description="Registered adapter type")

    @property
    def options(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class FilesystemConfig(BaseModel):
    """Named filesystem mounted under its own scheme."""
    root: str = Field(..., description="Directory the filesystem is rooted at")


class BuildConfig(BaseModel):
    """Build plans and build scratch directory settings."""
    default_plan: str = "default"
    plans: Dict[str, Any] = Field(default_factory=dict)
    working_path: str = "/tmp/.app-orchestration/build"
    save_path: Optional[str] = None
    disk_space_error_threshold: int = 52428800
    disk_space_warning_threshold: int = 104857600


class SnapshotConfig(BaseModel):
    """Snapshot plans, assets and group definitions."""
    default_plan: str = "default"
    plans: Dict[str, Any] = Field(default_factory=dict)
    working_path: str = "/tmp/.app-orchestration/snapshot"
    assets: Dict[str, AssetConfig] = Field(default_factory=dict)
    asset_groups: Dict[str, List[str]] = Field(default_factory=dict)
    database_table_groups: Dict[str, List[str]] = Field(default_factory=dict)

    def expand_asset_groups(self, patterns: List[str]) -> List[str]:
        """Expand @group references in asset include/exclude patterns."""
        return _expand_groups(patterns, self.asset_groups, "asset group")

    def expand_database_table_groups(self, tables: List[str]) -> List[str]:
        """Expand @group references in database table lists."""
        return _expand_groups(tables, self.database_table_groups, "database table group")


class MaintenanceConfig(BaseModel):
    """Maintenance mode settings."""
    strategy: MaintenanceStrategyType = MaintenanceStrategyType.DEFAULT
    targets: List[str] = Field(default_factory=list, description="Directories receiving the flag file")
    flag_file: str = "maintenance.flag"


class ApplicationConfig(BaseModel):
    """
    Complete application configuration.

    Parsed from YAML with environment overlays applied. Drives which plans
    run and which collaborators the engine hands to steps.
    """
    app_name: str
    app_root: str
    repo_url: str
    default_branch: str = "master"
    file_layout: FileLayoutStrategy = FileLayoutStrategy.DEFAULT
    default_database_adapter: str = "default"
    default_database_importexport_adapter: str = "default"
    default_filesystem: str = "local"
    databases: Dict[str, DatabaseConfig] = Field(default_factory=dict)
    database_adapters: Dict[str, AdapterConfig] = Field(default_factory=dict)
    filesystems: Dict[str, FilesystemConfig] = Field(default_factory=dict)
    build: BuildConfig = Field(default_factory=BuildConfig)
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig)
    maintenance: MaintenanceConfig = Field(default_factory=MaintenanceConfig)

    @field_validator("app_root")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/") or "/"

    @property
    def layout(self) -> FileLayout:
        return FileLayout(self.app_root, self.file_layout, self.default_branch)

    def code_path(self, branch: Optional[str] = None) -> str:
        return self.layout.code_path(branch)

    def local_path(self, branch: Optional[str] = None) -> str:
        return self.layout.local_path(branch)

    def shared_path(self) -> str:
        return self.layout.shared_path()

    def resolve_path_prefix(self, location: AssetLocation, branch: Optional[str] = None) -> str:
        """Directory an asset location maps to."""
        return self.layout.path_for_location(AssetLocation(location).value, branch)

    def database_adapter_name(self, database: str) -> str:
        db = self.databases.get(database)
        if db and db.adapter:
            return db.adapter
        return self.default_database_adapter

    def importexport_adapter_name(self, database: str) -> str:
        db = self.databases.get(database)
        if db and db.importexport_adapter:
            return db.importexport_adapter
        return self.default_database_importexport_adapter


def _expand_groups(
    items: List[str],
    groups: Dict[str, List[str]],
    label: str,
    _seen: Optional[set] = None,
) -> List[str]:
    """
    Replace @name references with the members of the named group.

    Groups may reference other groups. Unknown names raise ConfigurationError
    with the closest matching group names as suggestions.
    """
    seen = _seen or set()
    expanded = set()
    for item in items:
        if not item.startswith("@"):
            expanded.add(item)
            continue

        group = item[1:]
        if group not in groups:
            message = f"Unknown {label}: '{group}'"
            suggestions = get_close_matches(group, list(groups.keys()))
            if suggestions:
                message += f". Did you mean: {', '.join(suggestions)}?"
            raise ConfigurationError(message)
        if group in seen:
            raise ConfigurationError(f"Circular {label} reference: '{group}'")

        expanded.update(_expand_groups(groups[group], groups, label, seen | {group}))

    return sorted(expanded)


# =============================================================================
# API MODELS
# =============================================================================

class BuildRequest(BaseModel):
    """Request to build the application."""
    plan: Optional[str] = Field(default=None, description="Plan name, defaults to build.default_plan")
    repo_reference: Optional[str] = Field(default=None, description="Branch, tag or commit")
    build_id: Optional[str] = None
    save_path: Optional[str] = Field(default=None, description="Where the finished build is stored")


class SnapshotRequest(BaseModel):
    """Request to take a snapshot."""
    plan: Optional[str] = None
    snapshot_name: str
    snapshot_path: str
    branch: Optional[str] = None
    include_databases: bool = True
    include_assets: bool = True
    replace: bool = False
    asset_sync_config: Dict[str, Any] = Field(default_factory=dict)


class DestroyRequest(BaseModel):
    """Request to destroy a deployment."""
    branch: Optional[str] = None


class RunResponse(BaseModel):
    """Result of a plan run."""
    status: str
    reused: bool = False
    artifact: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)


class MaintenanceResponse(BaseModel):
    """Maintenance mode state."""
    enabled: bool


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
