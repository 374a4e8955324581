from unittest.mock import MagicMock

import pytest

from app_orchestration.adapters import (
    AdapterFactory,
    DatabaseAdapterManager,
    DatabaseImportExportAdapterManager,
    FakeDatabaseAdapter,
    MySQLDatabaseAdapter,
    MySQLDumpImportExportAdapter,
)
from app_orchestration.errors import ConfigurationError
from app_orchestration.models import AdapterConfig


def test_factory_rejects_unknown_type():
    with pytest.raises(ConfigurationError, match="Unknown adapter type"):
        AdapterFactory.create_database_adapter("oracle", "x")


def test_manager_builds_and_caches_configured_adapters():
    manager = DatabaseAdapterManager({"main": AdapterConfig(type="fake", databases=["shop"])})

    adapter = manager.get_adapter("main")

    assert isinstance(adapter, FakeDatabaseAdapter)
    assert adapter is manager.get_adapter("main")
    assert adapter.get_databases() == ["shop"]


def test_manager_rejects_unknown_name():
    manager = DatabaseImportExportAdapterManager({})

    with pytest.raises(ConfigurationError, match="Unknown database adapter"):
        manager.get_adapter("missing")


def test_fake_adapter_lifecycle():
    adapter = FakeDatabaseAdapter("fake")

    adapter.create_database("shop")
    assert adapter.database_exists("shop")

    adapter.drop_database_if_exists("shop")
    adapter.drop_database_if_exists("shop")
    assert adapter.dropped == ["shop"]


def test_mysql_adapter_lists_application_databases():
    shell = MagicMock()
    shell.run_shell_command.return_value = "information_schema\nmysql\nshop\nshop_dev\n"
    adapter = MySQLDatabaseAdapter("main", {"host": "db", "user": "root"}, shell)

    assert adapter.get_databases() == ["shop", "shop_dev"]
    command = shell.run_shell_command.call_args[0][0]
    assert "--host=db" in command
    assert "--user=root" in command


def test_mysql_adapter_drops_with_quoted_identifier():
    shell = MagicMock()
    adapter = MySQLDatabaseAdapter("main", {}, shell)

    adapter.drop_database_if_exists("shop_feature_x")

    assert "DROP DATABASE IF EXISTS `shop_feature_x`" in shell.run_shell_command.call_args[0][0]


def test_mysqldump_export_ignores_tables(tmp_path):
    shell = MagicMock()
    adapter = MySQLDumpImportExportAdapter("main", {}, shell)

    path = adapter.export_to_file("shop", str(tmp_path), {"ignore_tables": ["sessions"]})

    assert path == str(tmp_path / "shop.sql.gz")
    command = shell.run_shell_command.call_args[0][0]
    assert "mysqldump" in command
    assert "--ignore-table=shop.sessions" in command
