"""
App Orchestration - Application Builder

Builds the application by running a build plan in a scratch directory.
The scratch directory is checked before the plan runs and emptied after it,
whether the plan succeeds or fails.
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, Optional
import logging
import uuid

from app_orchestration.engine.plan import PlanNormalizer
from app_orchestration.engine.runner import PlanRunner
from app_orchestration.errors import ConfigurationError, ResourceExhaustedError
from app_orchestration.filesystem import clear_directory, free_disk_space, prepare_empty_directory
from app_orchestration.models import ApplicationConfig, PlanKind

logger = logging.getLogger(__name__)


def generate_build_id() -> str:
    """Generate unique build ID."""
    timestamp = datetime.utcnow().strftime("%Y%m%d%H%M%S")
    unique = uuid.uuid4().hex[:6]
    return f"build_{timestamp}_{unique}"


class ApplicationBuilder:
    """
    Runs build plans.

    Preconditions checked before any step:
    - the build path exists (created if missing), is a writable directory and is empty
    - free disk space is above the error threshold (warning below the warning threshold)
    """

    def __init__(
        self,
        config: ApplicationConfig,
        runner: PlanRunner,
        normalizer: Optional[PlanNormalizer] = None,
        build_path: Optional[str] = None,
    ):
        """
        Initialize builder.

        Args:
            config: Application configuration
            runner: Plan runner with the orchestrator's collaborators
            normalizer: Plan normalizer
            build_path: Scratch directory, defaults to build.working_path
        """
        self.config = config
        self.runner = runner
        self.normalizer = normalizer or PlanNormalizer()
        self.build_path = build_path or config.build.working_path
        self.logger = logging.getLogger(__name__)

    def build(
        self,
        plan_name: Optional[str] = None,
        repo_reference: Optional[str] = None,
        build_id: Optional[str] = None,
        save_path: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Build the application.

        Args:
            plan_name: Build plan, defaults to build.default_plan
            repo_reference: Branch, tag or commit, defaults to default_branch
            build_id: Build identifier, generated when omitted
            save_path: Where the build is stored, defaults to build.save_path

        Returns:
            Final run context

        Raises:
            ConfigurationError: If the plan is unknown or malformed
            PreconditionError: If the build path cannot be used
            ConflictError: If the build path is not empty
            ResourceExhaustedError: If free disk space is below the error threshold
        """
        plan = self.normalizer.get_plan(
            self.config.build.plans,
            plan_name or self.config.build.default_plan,
            PlanKind.BUILD,
        )
        build_id = build_id or generate_build_id()
        save_path = save_path or self.config.build.save_path
        if not save_path:
            raise ConfigurationError("No save path given and build.save_path is not configured")

        path = prepare_empty_directory(self.build_path)
        self._check_disk_space(str(path))

        context = {
            "plan_path": str(path),
            "repo_reference": repo_reference or self.config.default_branch,
            "build_id": build_id,
            "save_path": save_path,
        }

        self.logger.info(f"Building {self.config.app_name} ({build_id}) with plan '{plan.name}'")
        try:
            result = self.runner.run_plan(plan, [], context, cacheable=False)
        except Exception as e:
            self.logger.error(f"Build {build_id} failed: {e}")
            try:
                clear_directory(path)
            except OSError as cleanup_error:
                self.logger.error(f"Could not clean build path {path}: {cleanup_error}")
            raise

        clear_directory(path)

        self.logger.info(f"Build {build_id} completed")
        return result

    def _check_disk_space(self, path: str) -> None:
        free = free_disk_space(path)
        error_threshold = self.config.build.disk_space_error_threshold
        warning_threshold = self.config.build.disk_space_warning_threshold

        if free <= error_threshold:
            raise ResourceExhaustedError(
                f"Only {free} bytes free at {path}; at least {error_threshold} bytes are required"
            )
        if free <= warning_threshold:
            self.logger.warning(f"Low disk space at {path}: {free} bytes free")
