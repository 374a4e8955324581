"""
App Orchestration - Application Destroyer

Removes a deployed application: its code, local and shared files, the
blue/green release link and its databases.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

from app_orchestration.adapters.base import DatabaseAdapter, DatabaseAdapterManager
from app_orchestration.file_layout import FileLayoutStrategy
from app_orchestration.filesystem import clear_directory, remove_path
from app_orchestration.models import ApplicationConfig

logger = logging.getLogger(__name__)


class ApplicationDestroyer:
    """
    Destroys an application deployment.

    Nothing is rolled back on failure; the first error propagates.
    """

    def __init__(self, config: ApplicationConfig, database_adapter_manager: DatabaseAdapterManager):
        self.config = config
        self.database_adapter_manager = database_adapter_manager
        self.logger = logging.getLogger(__name__)

    def destroy(self, branch: Optional[str] = None) -> Dict[str, Any]:
        """
        Destroy the application, or one branch of it.

        Args:
            branch: Branch to destroy; without one the shared files are cleared too

        Returns:
            Removed paths and dropped databases
        """
        layout = self.config.layout
        removed: List[str] = []

        code_path = layout.code_path(branch)
        self.logger.info(f"Destroying {self.config.app_name}" + (f" branch {branch}" if branch else ""))
        removed.extend(remove_path(code_path))

        local_path = layout.local_path(branch)
        if local_path != code_path:
            removed.extend(remove_path(local_path))

        shared_path = layout.shared_path()
        if branch is None and shared_path != code_path:
            clear_directory(shared_path)
            self.logger.info(f"Cleared shared files in {shared_path}")

        link = layout.current_release_link()
        if link and Path(link).is_symlink():
            Path(link).unlink()
            removed.append(link)
            self.logger.info(f"Removed release link {link}")

        dropped = self._drop_databases(branch)
        return {"removed_paths": removed, "dropped_databases": dropped}

    def _drop_databases(self, branch: Optional[str]) -> List[str]:
        dropped: List[str] = []
        for name in self.config.databases:
            adapter = self.database_adapter_manager.get_adapter(self.config.database_adapter_name(name))
            for database in self._physical_databases(adapter, name, branch):
                adapter.drop_database_if_exists(database)
                dropped.append(database)
                self.logger.info(f"Dropped database {database}")
        return dropped

    def _physical_databases(self, adapter: DatabaseAdapter, name: str, branch: Optional[str]) -> List[str]:
        if self.config.file_layout != FileLayoutStrategy.BRANCH:
            return [name]
        if branch:
            return [self.config.layout.database_name(name, branch)]
        # Every branch database of this application
        prefix = f"{name}_"
        return [db for db in adapter.get_databases() if db.startswith(prefix)]
