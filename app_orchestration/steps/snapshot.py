"""
App Orchestration - Snapshot Steps

Steps used by snapshot plans. A snapshot is stored as

    <snapshot_path>/<snapshot_name>/databases/<database>.<ext>
    <snapshot_path>/<snapshot_name>/assets/<location>/<asset>
"""

from __future__ import annotations
from typing import Any, Dict, List

from app_orchestration.models import SnapshotContext
from app_orchestration.steps.base import (
    Capability,
    SnapshotStep,
    StepRegistry,
    StepResult,
)


def snapshot_root(context: SnapshotContext) -> str:
    """Mount path of the snapshot being taken."""
    return f"{context.snapshot_path.rstrip('/')}/{context.snapshot_name}"


class DeleteExistingSnapshotStep(SnapshotStep):
    """
    Removes an earlier snapshot with the same name.

    When only databases or only assets are included, only that part of the
    earlier snapshot is removed.
    """

    STEP_NAME = "delete_existing_snapshot"
    CAPABILITIES = frozenset({Capability.LOGGER, Capability.MOUNT_MANAGER})

    def run(self, context: SnapshotContext) -> StepResult:
        mount = self.require(Capability.MOUNT_MANAGER)

        path = snapshot_root(context)
        if context.include_databases and not context.include_assets:
            path += "/databases"
        elif context.include_assets and not context.include_databases:
            path += "/assets"

        if not mount.has(path):
            self.logger.debug(f"Nothing to delete at {path}")
            return None

        mount.delete_dir(path)
        self.logger.info(f"Deleted existing snapshot data at {path}")
        return None


class UploadDatabasesStep(SnapshotStep):
    """Exports every configured database and copies the dumps into the snapshot."""

    STEP_NAME = "upload_databases"
    CAPABILITIES = frozenset({
        Capability.LOGGER,
        Capability.APPLICATION_CONFIG,
        Capability.MOUNT_MANAGER,
        Capability.DATABASE_IMPORT_EXPORT_ADAPTER_MANAGER,
    })

    def run(self, context: SnapshotContext) -> StepResult:
        config = self.require(Capability.APPLICATION_CONFIG)
        mount = self.require(Capability.MOUNT_MANAGER)
        manager = self.require(Capability.DATABASE_IMPORT_EXPORT_ADAPTER_MANAGER)

        uploaded: List[str] = []
        for name, database in config.databases.items():
            adapter = manager.get_adapter(config.importexport_adapter_name(name))
            physical_name = database.local_database_name or config.layout.database_name(name, context.branch)
            ignore_tables = config.snapshot.expand_database_table_groups(database.excludes)

            self.logger.info(f"Exporting database {physical_name}")
            dump = adapter.export_to_file(
                physical_name,
                context.plan_path,
                {"ignore_tables": ignore_tables},
            )

            destination = f"{snapshot_root(context)}/databases/{name}.{adapter.FILE_EXTENSION}"
            mount.copy(f"local://{dump}", destination)
            uploaded.append(name)

        return {"uploaded_databases": uploaded}


class SyncAssetsStep(SnapshotStep):
    """
    Syncs every configured asset directory into the snapshot.

    The snapshot's asset_sync_config (excludes, includes, delete) is applied
    on top of each asset's own patterns. @group references are expanded
    through snapshot.asset_groups.
    """

    STEP_NAME = "sync_assets"
    CAPABILITIES = frozenset({
        Capability.LOGGER,
        Capability.APPLICATION_CONFIG,
        Capability.MOUNT_MANAGER,
    })

    def _sync_options(self, config, asset, sync_config: Dict[str, Any]) -> Dict[str, Any]:
        snapshot = config.snapshot
        options: Dict[str, Any] = {
            "excludes": snapshot.expand_asset_groups(
                list(asset.excludes) + list(sync_config.get("excludes", []))
            ),
            "includes": snapshot.expand_asset_groups(
                list(asset.includes) + list(sync_config.get("includes", []))
            ),
        }
        if "delete" in sync_config:
            options["delete"] = sync_config["delete"]
        return options

    def run(self, context: SnapshotContext) -> StepResult:
        config = self.require(Capability.APPLICATION_CONFIG)
        mount = self.require(Capability.MOUNT_MANAGER)

        synced: List[str] = []
        for asset_path, asset in config.snapshot.assets.items():
            prefix = config.resolve_path_prefix(asset.location, context.branch)
            source = f"local://{prefix}/{(asset.local_path or asset_path).strip('/')}"
            destination = f"{snapshot_root(context)}/assets/{asset.location.value}/{asset_path.strip('/')}"

            if not mount.has(source):
                self.logger.warning(f"Asset {asset_path} not found at {source}, skipping")
                continue

            mount.sync(source, destination, self._sync_options(config, asset, context.asset_sync_config))
            synced.append(asset_path)

        return {"synced_assets": synced}


class EnableMaintenanceStep(SnapshotStep):
    """Puts the application into maintenance mode."""

    STEP_NAME = "enable_maintenance"
    CAPABILITIES = frozenset({Capability.LOGGER, Capability.MAINTENANCE_STRATEGY})

    def run(self, context: SnapshotContext) -> StepResult:
        self.require(Capability.MAINTENANCE_STRATEGY).enable()
        self.logger.info("Maintenance mode enabled")
        return None


class DisableMaintenanceStep(SnapshotStep):
    """Takes the application out of maintenance mode."""

    STEP_NAME = "disable_maintenance"
    CAPABILITIES = frozenset({Capability.LOGGER, Capability.MAINTENANCE_STRATEGY})

    def run(self, context: SnapshotContext) -> StepResult:
        self.require(Capability.MAINTENANCE_STRATEGY).disable()
        self.logger.info("Maintenance mode disabled")
        return None


StepRegistry.register(DeleteExistingSnapshotStep)
StepRegistry.register(UploadDatabasesStep)
StepRegistry.register(SyncAssetsStep)
StepRegistry.register(EnableMaintenanceStep)
StepRegistry.register(DisableMaintenanceStep)
