"""
App Orchestration - Fake Database Adapters

Simulates a database server in memory for development and testing.
Exports write small placeholder dump files so snapshot plans can run
end to end without a real server.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

from app_orchestration.adapters.base import (
    AdapterFactory,
    DatabaseAdapter,
    DatabaseImportExportAdapter,
)
from app_orchestration.shell import ShellAdapter

logger = logging.getLogger(__name__)


class FakeDatabaseAdapter(DatabaseAdapter):
    """
    In-memory database server.

    Options:
        databases: Database names present when the adapter is created
    """

    def __init__(self, name: str, options: Optional[Dict[str, Any]] = None, shell: Optional[ShellAdapter] = None):
        super().__init__(name, options, shell)
        self._databases = set(self.options.get("databases", []))
        self.dropped: List[str] = []

    def get_databases(self) -> List[str]:
        return sorted(self._databases)

    def database_exists(self, database: str) -> bool:
        return database in self._databases

    def create_database(self, database: str) -> None:
        self._databases.add(database)
        logger.info(f"[{self.name}] Created database: {database}")

    def drop_database_if_exists(self, database: str) -> None:
        if database in self._databases:
            self._databases.discard(database)
            self.dropped.append(database)
            logger.info(f"[{self.name}] Dropped database: {database}")


class FakeImportExportAdapter(DatabaseImportExportAdapter):
    """Writes placeholder dump files and remembers every export."""

    FILE_EXTENSION = "sql"

    def __init__(self, name: str, options: Optional[Dict[str, Any]] = None, shell: Optional[ShellAdapter] = None):
        super().__init__(name, options, shell)
        self.exports: List[Dict[str, Any]] = []

    def export_to_file(
        self,
        database: str,
        destination_dir: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> str:
        options = options or {}
        ignore_tables = list(options.get("ignore_tables", []))

        path = Path(destination_dir) / f"{database}.{self.FILE_EXTENSION}"
        path.parent.mkdir(parents=True, exist_ok=True)
        lines = [f"-- fake dump of {database}"]
        lines.extend(f"-- ignored table: {table}" for table in ignore_tables)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")

        self.exports.append({"database": database, "file": str(path), "ignore_tables": ignore_tables})
        logger.info(f"[{self.name}] Exported {database} to {path}")
        return str(path)


# Register adapters with factory
AdapterFactory.register("fake", FakeDatabaseAdapter, FakeImportExportAdapter)
