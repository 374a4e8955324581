"""
App Orchestration - Base Database Adapter Interface

Defines the abstract interfaces that database adapters must implement,
the factories they register with, and the managers that hand configured
adapter instances to steps and facades.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type
import logging

from app_orchestration.errors import ConfigurationError
from app_orchestration.shell import ShellAdapter

logger = logging.getLogger(__name__)


class DatabaseAdapter(ABC):
    """
    Abstract base class for database server adapters.

    Adapters manage whole databases on one server: listing, creating and
    dropping them.
    """

    def __init__(self, name: str, options: Optional[Dict[str, Any]] = None, shell: Optional[ShellAdapter] = None):
        """
        Initialize adapter.

        Args:
            name: Configured adapter name
            options: Adapter-specific settings from configuration
            shell: Shell adapter for command-line clients
        """
        self.name = name
        self.options = options or {}
        self.shell = shell or ShellAdapter()

    @abstractmethod
    def get_databases(self) -> List[str]:
        """List database names on the server."""
        pass

    @abstractmethod
    def database_exists(self, database: str) -> bool:
        pass

    @abstractmethod
    def create_database(self, database: str) -> None:
        pass

    @abstractmethod
    def drop_database_if_exists(self, database: str) -> None:
        """Drop a database; missing databases are not an error."""
        pass


class DatabaseImportExportAdapter(ABC):
    """Abstract base class for adapters that dump databases to files."""

    # Extension of files written by export_to_file
    FILE_EXTENSION: str = "sql"

    def __init__(self, name: str, options: Optional[Dict[str, Any]] = None, shell: Optional[ShellAdapter] = None):
        self.name = name
        self.options = options or {}
        self.shell = shell or ShellAdapter()

    @abstractmethod
    def export_to_file(
        self,
        database: str,
        destination_dir: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Export a database to a file.

        Args:
            database: Database to export
            destination_dir: Directory the dump is written to
            options: Export options (ignore_tables: List[str])

        Returns:
            Path of the written file
        """
        pass


# =============================================================================
# FACTORIES
# =============================================================================

class AdapterFactory:
    """
    Factory for creating database adapters.

    Usage:
        AdapterFactory.register("mysql", MySQLDatabaseAdapter, MySQLDumpImportExportAdapter)
        adapter = AdapterFactory.create_database_adapter("mysql", "default", options)
    """

    _database_adapters: Dict[str, Type[DatabaseAdapter]] = {}
    _importexport_adapters: Dict[str, Type[DatabaseImportExportAdapter]] = {}

    @classmethod
    def register(
        cls,
        adapter_type: str,
        database_adapter: Type[DatabaseAdapter],
        importexport_adapter: Optional[Type[DatabaseImportExportAdapter]] = None,
    ) -> None:
        """Register the adapter classes for an adapter type."""
        cls._database_adapters[adapter_type] = database_adapter
        if importexport_adapter is not None:
            cls._importexport_adapters[adapter_type] = importexport_adapter
        logger.debug(f"Registered database adapter type: {adapter_type}")

    @classmethod
    def _lookup(cls, registry: Dict[str, type], adapter_type: str) -> type:
        if adapter_type not in registry:
            raise ConfigurationError(
                f"Unknown adapter type: {adapter_type}. "
                f"Available: {list(registry.keys())}"
            )
        return registry[adapter_type]

    @classmethod
    def create_database_adapter(
        cls,
        adapter_type: str,
        name: str,
        options: Optional[Dict[str, Any]] = None,
        shell: Optional[ShellAdapter] = None,
    ) -> DatabaseAdapter:
        return cls._lookup(cls._database_adapters, adapter_type)(name, options, shell)

    @classmethod
    def create_importexport_adapter(
        cls,
        adapter_type: str,
        name: str,
        options: Optional[Dict[str, Any]] = None,
        shell: Optional[ShellAdapter] = None,
    ) -> DatabaseImportExportAdapter:
        return cls._lookup(cls._importexport_adapters, adapter_type)(name, options, shell)

    @classmethod
    def available_adapters(cls) -> List[str]:
        """Get list of available adapter types."""
        return list(cls._database_adapters.keys())


# =============================================================================
# MANAGERS
# =============================================================================

class _AdapterManager:
    """Builds adapters lazily from configuration and caches them by name."""

    def __init__(self, adapter_configs: Dict[str, Any], shell: Optional[ShellAdapter] = None):
        """
        Args:
            adapter_configs: Mapping of adapter name to AdapterConfig
            shell: Shell adapter shared with command-line based adapters
        """
        self._configs = dict(adapter_configs)
        self._shell = shell or ShellAdapter()
        self._instances: Dict[str, Any] = {}

    def _create(self, name: str, adapter_type: str, options: Dict[str, Any]) -> Any:
        raise NotImplementedError

    def get_adapter(self, name: str) -> Any:
        """
        Get the adapter configured under a name.

        Raises:
            ConfigurationError: If no adapter with that name is configured
        """
        if name not in self._instances:
            if name not in self._configs:
                raise ConfigurationError(
                    f"Unknown database adapter: {name}. "
                    f"Available: {sorted(self._configs.keys())}"
                )
            config = self._configs[name]
            self._instances[name] = self._create(name, config.type, config.options)
        return self._instances[name]

    def available(self) -> List[str]:
        return sorted(self._configs.keys())


class DatabaseAdapterManager(_AdapterManager):
    """Hands out configured DatabaseAdapter instances."""

    def _create(self, name: str, adapter_type: str, options: Dict[str, Any]) -> DatabaseAdapter:
        return AdapterFactory.create_database_adapter(adapter_type, name, options, self._shell)

    def get_adapter(self, name: str) -> DatabaseAdapter:
        return super().get_adapter(name)


class DatabaseImportExportAdapterManager(_AdapterManager):
    """Hands out configured DatabaseImportExportAdapter instances."""

    def _create(self, name: str, adapter_type: str, options: Dict[str, Any]) -> DatabaseImportExportAdapter:
        return AdapterFactory.create_importexport_adapter(adapter_type, name, options, self._shell)

    def get_adapter(self, name: str) -> DatabaseImportExportAdapter:
        return super().get_adapter(name)
