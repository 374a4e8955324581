"""
App Orchestration - MySQL Adapters

Database and dump adapters driving the mysql and mysqldump command-line
clients through the shell adapter.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging
import shlex

from app_orchestration.adapters.base import (
    AdapterFactory,
    DatabaseAdapter,
    DatabaseImportExportAdapter,
)

logger = logging.getLogger(__name__)

# Databases every server has; never listed as application databases
SYSTEM_DATABASES = {"information_schema", "mysql", "performance_schema", "sys"}


def _connection_args(options: Dict[str, Any]) -> str:
    """Build client connection flags from adapter options."""
    args = []
    if options.get("host"):
        args.append(f"--host={shlex.quote(str(options['host']))}")
    if options.get("port"):
        args.append(f"--port={int(options['port'])}")
    if options.get("user"):
        args.append(f"--user={shlex.quote(str(options['user']))}")
    if options.get("password"):
        args.append(f"--password={shlex.quote(str(options['password']))}")
    return " ".join(args)


def _quote_identifier(name: str) -> str:
    return "`" + name.replace("`", "``") + "`"


class MySQLDatabaseAdapter(DatabaseAdapter):
    """
    MySQL server adapter.

    Options: host, port, user, password
    """

    def _query(self, sql: str) -> str:
        command = f"mysql {_connection_args(self.options)} --batch --skip-column-names -e {shlex.quote(sql)}"
        return self.shell.run_shell_command(command)

    def get_databases(self) -> List[str]:
        output = self._query("SHOW DATABASES")
        return [
            line.strip() for line in output.splitlines()
            if line.strip() and line.strip() not in SYSTEM_DATABASES
        ]

    def database_exists(self, database: str) -> bool:
        return database in self.get_databases()

    def create_database(self, database: str) -> None:
        self._query(f"CREATE DATABASE IF NOT EXISTS {_quote_identifier(database)}")
        logger.info(f"[{self.name}] Created database: {database}")

    def drop_database_if_exists(self, database: str) -> None:
        self._query(f"DROP DATABASE IF EXISTS {_quote_identifier(database)}")
        logger.info(f"[{self.name}] Dropped database: {database}")


class MySQLDumpImportExportAdapter(DatabaseImportExportAdapter):
    """Exports databases with mysqldump, gzip compressed."""

    FILE_EXTENSION = "sql.gz"

    def export_to_file(
        self,
        database: str,
        destination_dir: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> str:
        options = options or {}
        path = Path(destination_dir) / f"{database}.{self.FILE_EXTENSION}"
        path.parent.mkdir(parents=True, exist_ok=True)

        ignore = " ".join(
            f"--ignore-table={shlex.quote(f'{database}.{table}')}"
            for table in options.get("ignore_tables", [])
        )
        command = (
            f"set -o pipefail; mysqldump {_connection_args(self.options)} "
            f"--single-transaction --routines --triggers {ignore} {shlex.quote(database)} "
            f"| gzip > {shlex.quote(str(path))}"
        )
        self.shell.run_shell_command(f"bash -c {shlex.quote(command)}")
        logger.info(f"[{self.name}] Exported {database} to {path}")
        return str(path)


# Register adapters with factory
AdapterFactory.register("mysql", MySQLDatabaseAdapter, MySQLDumpImportExportAdapter)
