"""
App Orchestration - Base Step Interface

Defines the step interface, the capabilities a step can declare, and the
registry steps are resolved from. All plan steps inherit from BuildStep,
SnapshotStep, or both.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Type, Union
import importlib
import logging
import os
import re

from app_orchestration.errors import PreconditionError
from app_orchestration.models import (
    BuildContext,
    PlanKind,
    SnapshotContext,
    StepContext,
    StepSpec,
)

logger = logging.getLogger(__name__)

# "package.module.Class" or "package.module:Class"
IMPORT_PATH_PATTERN = re.compile(r"^[A-Za-z_][\w.]*[:.][A-Za-z_]\w*$")

StepResult = Union[None, str, Dict[str, Any]]


class Capability(str, Enum):
    """Collaborator roles a step can declare; values are the step attribute names."""
    LOGGER = "logger"
    SHELL = "shell"
    APPLICATION_CONFIG = "application_config"
    MOUNT_MANAGER = "mount_manager"
    DATABASE_ADAPTER_MANAGER = "database_adapter_manager"
    DATABASE_IMPORT_EXPORT_ADAPTER_MANAGER = "database_import_export_adapter_manager"
    MAINTENANCE_STRATEGY = "maintenance_strategy"


@dataclass
class Collaborators:
    """
    Shared collaborator instances for one orchestrator.

    One instance per role; roles left as None are simply not injected.
    """
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("app_orchestration"))
    shell: Any = None
    application_config: Any = None
    mount_manager: Any = None
    database_adapter_manager: Any = None
    database_import_export_adapter_manager: Any = None
    maintenance_strategy: Any = None

    def get(self, capability: Capability) -> Any:
        return getattr(self, capability.value)


class Step(ABC):
    """
    Abstract base class for all plan steps.

    Each step:
    - Is constructed with the options, command and environment of its spec
    - Declares the collaborators it needs in CAPABILITIES
    - Receives the immutable run context in run()
    - Returns nothing, its output as a string, or a mapping merged into the context
    """

    # Step metadata (override in subclasses)
    STEP_NAME: str = "base"
    CAPABILITIES: FrozenSet[Capability] = frozenset()

    def __init__(
        self,
        options: Optional[Dict[str, Any]] = None,
        command: Optional[str] = None,
        environment: Optional[Dict[str, str]] = None,
        run_in_code_root: bool = False,
        working_directory: Optional[str] = None,
    ):
        """Initialize step with the values bound in its spec."""
        self.options: Dict[str, Any] = dict(options or {})
        self.command = command
        self.environment: Dict[str, str] = dict(environment or {})
        self.run_in_code_root = run_in_code_root
        self.working_directory = working_directory
        self.logger = logging.getLogger(f"app_orchestration.step.{self.STEP_NAME}")

        # Injected collaborators
        self.shell = None
        self.application_config = None
        self.mount_manager = None
        self.database_adapter_manager = None
        self.database_import_export_adapter_manager = None
        self.maintenance_strategy = None

    @classmethod
    def validate(cls, spec: StepSpec) -> List[str]:
        """
        Validate a step spec before the plan runs.

        Args:
            spec: Normalized spec referencing this step

        Returns:
            List of validation errors (empty if valid)
        """
        return []

    def require(self, capability: Capability) -> Any:
        """
        Get an injected collaborator.

        Raises:
            PreconditionError: If the collaborator was never supplied
        """
        value = getattr(self, capability.value, None)
        if value is None:
            raise PreconditionError(
                f"Step '{self.STEP_NAME}' requires the '{capability.value}' collaborator "
                f"but none was supplied"
            )
        return value

    @abstractmethod
    def run(self, context: StepContext) -> StepResult:
        """
        Execute the step.

        Args:
            context: Immutable run context

        Returns:
            None, the step's output, or a mapping of new context values
        """
        pass


class BuildStep(Step):
    """Interface of steps usable in build plans."""
    CONTEXT_MODEL: Type[StepContext] = BuildContext


class SnapshotStep(Step):
    """Interface of steps usable in snapshot plans."""
    CONTEXT_MODEL: Type[StepContext] = SnapshotContext


def step_interface(kind: PlanKind) -> Type[Step]:
    """Get the interface steps of a plan kind must implement."""
    return {PlanKind.BUILD: BuildStep, PlanKind.SNAPSHOT: SnapshotStep}[PlanKind(kind)]


def context_model(kind: PlanKind) -> Type[StepContext]:
    """Get the context model threaded through plans of a kind."""
    return step_interface(kind).CONTEXT_MODEL


class StepRegistry:
    """
    Registry for managing available steps.

    Usage:
        StepRegistry.register(CloneRepoStep)
        step_class = StepRegistry.resolve("clone_repo")
    """

    _steps: Dict[str, Type[Step]] = {}

    @classmethod
    def register(cls, step_class: Type[Step]) -> Type[Step]:
        """Register a step class."""
        name = step_class.STEP_NAME
        cls._steps[name] = step_class
        logger.debug(f"Registered step: {name}")
        return step_class

    @classmethod
    def unregister(cls, name: str) -> None:
        cls._steps.pop(name, None)

    @classmethod
    def get(cls, name: str) -> Optional[Type[Step]]:
        """Get step class by registered name."""
        return cls._steps.get(name)

    @classmethod
    def resolve(cls, reference: str) -> Optional[Type[Step]]:
        """
        Resolve a registered step name or an import path to a class.

        Args:
            reference: "clone_repo", "package.module.Class" or "package.module:Class"

        Returns:
            The referenced class, or None when nothing matches
        """
        if reference in cls._steps:
            return cls._steps[reference]
        if not IMPORT_PATH_PATTERN.match(reference):
            return None

        if ":" in reference:
            module_name, attr = reference.split(":", 1)
        else:
            module_name, attr = reference.rsplit(".", 1)

        try:
            module = importlib.import_module(module_name)
        except ImportError:
            return None

        target = getattr(module, attr, None)
        return target if isinstance(target, type) else None

    @classmethod
    def available(cls) -> List[str]:
        """Get list of available step names."""
        return list(cls._steps.keys())


# =============================================================================
# SHELL COMMAND STEP
# =============================================================================

def context_environment(context: StepContext) -> Dict[str, str]:
    """Export scalar context values as upper-case environment variables."""
    env = {}
    for key, value in context.model_dump().items():
        if isinstance(value, bool):
            env[key.upper()] = "1" if value else "0"
        elif isinstance(value, (str, int, float)):
            env[key.upper()] = str(value)
    return env


class ShellCommandStep(BuildStep, SnapshotStep):
    """
    Runs the spec's command in the plan path.

    With run_in_code_root the command runs in the application code path of
    the context's branch instead. A working_directory is resolved against
    whichever of the two applies.

    The command sees the run context as environment variables
    (PLAN_PATH, BUILD_ID, SNAPSHOT_NAME, ...) plus the spec's environment.

    Options:
        timeout: Seconds before the command is killed
    """

    STEP_NAME = "shell_command"
    CAPABILITIES = frozenset({Capability.LOGGER, Capability.SHELL, Capability.APPLICATION_CONFIG})

    @classmethod
    def validate(cls, spec: StepSpec) -> List[str]:
        if not spec.command:
            return [f"Step '{spec.name}' of type '{cls.STEP_NAME}' needs a command"]
        return []

    def run(self, context: StepContext) -> StepResult:
        shell = self.require(Capability.SHELL)

        environment = context_environment(context)
        environment.update(self.environment)

        return shell.run_shell_command(
            self.command,
            cwd=self._cwd(context),
            environment=environment,
            timeout=self.options.get("timeout"),
        )

    def _cwd(self, context: StepContext) -> str:
        if self.run_in_code_root:
            config = self.require(Capability.APPLICATION_CONFIG)
            base = config.code_path(getattr(context, "branch", None))
        else:
            base = context.plan_path

        if self.working_directory:
            return os.path.join(base, self.working_directory)
        return base


StepRegistry.register(ShellCommandStep)
