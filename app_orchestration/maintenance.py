"""
App Orchestration - Maintenance Mode

Maintenance strategies and the manager that delegates to the configured one.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Optional
import logging

from app_orchestration.errors import ConfigurationError, StateError
from app_orchestration.models import ApplicationConfig, MaintenanceStrategyType
from app_orchestration.storage import MountManager

logger = logging.getLogger(__name__)


class MaintenanceStrategy(ABC):
    """Switches an application in and out of maintenance mode."""

    @abstractmethod
    def enable(self) -> None:
        pass

    @abstractmethod
    def disable(self) -> None:
        pass

    @abstractmethod
    def is_enabled(self) -> bool:
        pass


class DefaultMaintenanceStrategy(MaintenanceStrategy):
    """Does nothing; the application is never in maintenance mode."""

    def enable(self) -> None:
        logger.debug("Maintenance mode not supported by application, enable ignored")

    def disable(self) -> None:
        logger.debug("Maintenance mode not supported by application, disable ignored")

    def is_enabled(self) -> bool:
        return False


class NoAppMaintenanceStrategy(MaintenanceStrategy):
    """Used when maintenance is explicitly switched off; every call fails."""

    def _fail(self) -> None:
        raise StateError("No maintenance strategy set.")

    def enable(self) -> None:
        self._fail()

    def disable(self) -> None:
        self._fail()

    def is_enabled(self) -> bool:
        self._fail()
        return False


class FlagFileMaintenanceStrategy(MaintenanceStrategy):
    """
    Maintenance via a flag file placed in every target directory.

    The application counts as in maintenance only when every target has the flag.
    """

    def __init__(self, mount_manager: MountManager, targets: List[str], flag_file: str = "maintenance.flag"):
        """
        Args:
            mount_manager: Mount manager used for file operations
            targets: Directories (mount paths) receiving the flag
            flag_file: Name of the flag file

        Raises:
            ConfigurationError: If no target is given
        """
        if not targets:
            raise ConfigurationError("Flag file maintenance needs at least one target directory")
        self.mount_manager = mount_manager
        self.targets = list(targets)
        self.flag_file = flag_file

    def _flags(self) -> List[str]:
        return [f"{target.rstrip('/')}/{self.flag_file}" for target in self.targets]

    def enable(self) -> None:
        for flag in self._flags():
            self.mount_manager.put(flag, "")
        logger.info(f"Maintenance flag placed in {len(self.targets)} location(s)")

    def disable(self) -> None:
        for flag in self._flags():
            if self.mount_manager.has(flag):
                self.mount_manager.delete(flag)
        logger.info(f"Maintenance flag removed from {len(self.targets)} location(s)")

    def is_enabled(self) -> bool:
        return all(self.mount_manager.has(flag) for flag in self._flags())


class ApplicationMaintenanceManager:
    """Delegates maintenance operations to a strategy."""

    def __init__(self, strategy: Optional[MaintenanceStrategy] = None):
        self.strategy = strategy or DefaultMaintenanceStrategy()

    def enable(self) -> None:
        logger.info("Enabling maintenance mode")
        self.strategy.enable()

    def disable(self) -> None:
        logger.info("Disabling maintenance mode")
        self.strategy.disable()

    def is_enabled(self) -> bool:
        return self.strategy.is_enabled()


def build_maintenance_strategy(config: ApplicationConfig, mount_manager: MountManager) -> MaintenanceStrategy:
    """
    Build the maintenance strategy selected in configuration.

    Flag file targets are relative to the application's shared path unless
    they are absolute or carry a mount scheme.
    """
    settings = config.maintenance
    if settings.strategy == MaintenanceStrategyType.NONE:
        return NoAppMaintenanceStrategy()
    if settings.strategy == MaintenanceStrategyType.FLAG_FILE:
        targets = [
            target if target.startswith("/") or "://" in target
            else f"local://{config.shared_path()}/{target}"
            for target in settings.targets
        ]
        return FlagFileMaintenanceStrategy(mount_manager, targets, settings.flag_file)
    return DefaultMaintenanceStrategy()
