"""
App Orchestration - Adapters Package

Database adapter interfaces and implementations.
The adapter pattern allows swapping between fake (simulation) and real database servers.
"""

from app_orchestration.adapters.base import (
    AdapterFactory,
    DatabaseAdapter,
    DatabaseAdapterManager,
    DatabaseImportExportAdapter,
    DatabaseImportExportAdapterManager,
)
from app_orchestration.adapters.fake_database import FakeDatabaseAdapter, FakeImportExportAdapter
from app_orchestration.adapters.mysql import MySQLDatabaseAdapter, MySQLDumpImportExportAdapter

__all__ = [
    "AdapterFactory",
    "DatabaseAdapter",
    "DatabaseAdapterManager",
    "DatabaseImportExportAdapter",
    "DatabaseImportExportAdapterManager",
    "FakeDatabaseAdapter",
    "FakeImportExportAdapter",
    "MySQLDatabaseAdapter",
    "MySQLDumpImportExportAdapter",
]
