"""
App Orchestration - Application Snapshot Taker

Takes snapshots of an application's databases and assets by running a
snapshot plan. An existing snapshot with the same name is reused unless
the caller asks to replace it.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

from app_orchestration.engine.plan import PlanNormalizer
from app_orchestration.engine.runner import PlanRunner
from app_orchestration.filesystem import clear_directory
from app_orchestration.models import ApplicationConfig, Condition, PlanKind
from app_orchestration.storage import MountManager

logger = logging.getLogger(__name__)


class ApplicationSnapshotTaker:
    """
    Runs snapshot plans.

    Active conditions follow the include flags: "databases" when databases
    are included, "assets" when assets are. Database dumps are written to a
    scratch working directory that is emptied after a successful run; after
    a failed run it is left in place for inspection.
    """

    def __init__(
        self,
        config: ApplicationConfig,
        runner: PlanRunner,
        mount_manager: MountManager,
        normalizer: Optional[PlanNormalizer] = None,
        working_path: Optional[str] = None,
    ):
        self.config = config
        self.runner = runner
        self.mount_manager = mount_manager
        self.normalizer = normalizer or PlanNormalizer()
        self.working_path = working_path or config.snapshot.working_path
        self.logger = logging.getLogger(__name__)

    def take_snapshot(
        self,
        plan_name: Optional[str],
        snapshot_name: str,
        snapshot_path: str,
        branch: Optional[str] = None,
        include_databases: bool = True,
        include_assets: bool = True,
        replace: bool = False,
        asset_sync_config: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Take a snapshot.

        Args:
            plan_name: Snapshot plan, defaults to snapshot.default_plan
            snapshot_name: Name of the snapshot directory
            snapshot_path: Mount path snapshots are stored under
            branch: Branch whose databases and files are snapshotted
            include_databases: Include database dumps
            include_assets: Include asset directories
            replace: Replace an existing snapshot with the same name
            asset_sync_config: Extra sync options (excludes, includes, delete)

        Returns:
            Final run context; "reused" is True when an existing snapshot was kept
        """
        plan = self.normalizer.get_plan(
            self.config.snapshot.plans,
            plan_name or self.config.snapshot.default_plan,
            PlanKind.SNAPSHOT,
        )

        conditions: List[Condition] = []
        if include_assets:
            conditions.append(Condition.ASSETS)
        if include_databases:
            conditions.append(Condition.DATABASES)

        working_path = Path(self.working_path)
        working_path.mkdir(parents=True, exist_ok=True)

        context = {
            "plan_path": str(working_path),
            "snapshot_name": snapshot_name,
            "snapshot_path": snapshot_path.rstrip("/"),
            "branch": branch,
            "include_databases": include_databases,
            "include_assets": include_assets,
            "asset_sync_config": asset_sync_config or {},
        }

        self.logger.info(f"Taking snapshot '{snapshot_name}' of {self.config.app_name} with plan '{plan.name}'")
        try:
            result = self.runner.run_plan(
                plan,
                conditions,
                context,
                replace_if_exists=replace,
                cacheable=True,
                find_existing=self._find_existing,
            )
        except Exception as e:
            self.logger.error(f"Snapshot '{snapshot_name}' failed, working files kept in {working_path}: {e}")
            raise

        clear_directory(working_path)
        self.logger.info(f"Snapshot '{snapshot_name}' completed")
        return result

    def _find_existing(self, context: Dict[str, Any]) -> Optional[str]:
        path = f"{context['snapshot_path']}/{context['snapshot_name']}"
        if self.mount_manager.has(path):
            return path
        return None
