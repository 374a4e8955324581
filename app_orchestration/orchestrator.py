"""
App Orchestration - Orchestrator

Wires configuration, collaborators, the plan runner and the facades
together for one application.
"""

from __future__ import annotations
from typing import Any, Dict, Optional
import logging

# Import steps and adapters to register them
import app_orchestration.adapters  # noqa: F401
import app_orchestration.steps  # noqa: F401

from app_orchestration.adapters.base import DatabaseAdapterManager, DatabaseImportExportAdapterManager
from app_orchestration.build import ApplicationBuilder
from app_orchestration.config import load_config
from app_orchestration.destroy import ApplicationDestroyer
from app_orchestration.engine.plan import PlanNormalizer
from app_orchestration.engine.runner import PlanRunner
from app_orchestration.maintenance import (
    ApplicationMaintenanceManager,
    MaintenanceStrategy,
    build_maintenance_strategy,
)
from app_orchestration.models import ApplicationConfig
from app_orchestration.shell import ShellAdapter
from app_orchestration.snapshot import ApplicationSnapshotTaker
from app_orchestration.steps.base import Collaborators
from app_orchestration.storage import MountManager, create_mount_manager

logger = logging.getLogger(__name__)


class Orchestrator:
    """
    Entry point for lifecycle operations on one application.

    Every collaborator is created once and shared by all steps and facades.
    """

    def __init__(
        self,
        config: ApplicationConfig,
        shell: Optional[ShellAdapter] = None,
        mount_manager: Optional[MountManager] = None,
        database_adapter_manager: Optional[DatabaseAdapterManager] = None,
        database_import_export_adapter_manager: Optional[DatabaseImportExportAdapterManager] = None,
        maintenance_strategy: Optional[MaintenanceStrategy] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            config: Application configuration
            shell: Shell adapter
            mount_manager: Mount manager, built from config.filesystems by default
            database_adapter_manager: Built from config.database_adapters by default
            database_import_export_adapter_manager: Built from config.database_adapters by default
            maintenance_strategy: Built from config.maintenance by default
        """
        self.config = config
        self.shell = shell or ShellAdapter()
        self.mount_manager = mount_manager or create_mount_manager(
            config.filesystems, config.default_filesystem
        )
        self.database_adapter_manager = database_adapter_manager or DatabaseAdapterManager(
            config.database_adapters, self.shell
        )
        self.database_import_export_adapter_manager = (
            database_import_export_adapter_manager
            or DatabaseImportExportAdapterManager(config.database_adapters, self.shell)
        )
        self.maintenance_strategy = maintenance_strategy or build_maintenance_strategy(
            config, self.mount_manager
        )

        self.collaborators = Collaborators(
            logger=logging.getLogger("app_orchestration"),
            shell=self.shell,
            application_config=config,
            mount_manager=self.mount_manager,
            database_adapter_manager=self.database_adapter_manager,
            database_import_export_adapter_manager=self.database_import_export_adapter_manager,
            maintenance_strategy=self.maintenance_strategy,
        )
        self.normalizer = PlanNormalizer()
        self.runner = PlanRunner(self.collaborators)

        self.builder = ApplicationBuilder(config, self.runner, self.normalizer)
        self.snapshot_taker = ApplicationSnapshotTaker(config, self.runner, self.mount_manager, self.normalizer)
        self.destroyer = ApplicationDestroyer(config, self.database_adapter_manager)
        self.maintenance = ApplicationMaintenanceManager(self.maintenance_strategy)

    @classmethod
    def from_file(cls, file_path: Optional[str] = None, environment: Optional[str] = None) -> "Orchestrator":
        """Create an orchestrator from a configuration file."""
        return cls(load_config(file_path, environment))

    def build(self, **kwargs: Any) -> Dict[str, Any]:
        return self.builder.build(**kwargs)

    def take_snapshot(self, **kwargs: Any) -> Dict[str, Any]:
        return self.snapshot_taker.take_snapshot(**kwargs)

    def destroy(self, branch: Optional[str] = None) -> Dict[str, Any]:
        return self.destroyer.destroy(branch)


# Lazily created instance for application-wide use
_orchestrator: Optional[Orchestrator] = None


def get_orchestrator() -> Orchestrator:
    """Get the orchestrator for the configured application."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = Orchestrator.from_file()
        logger.info(f"Orchestrator initialized for: {_orchestrator.config.app_name}")
    return _orchestrator
