"""
App Orchestration - Build Steps

Steps of the default build plan:
- clone_repo:    check out the repository at the requested reference
- package_build: pack the working tree into <build_id>.tgz
- save_build:    store the package (or the tree) at the save path
"""

from __future__ import annotations
from typing import List
import shlex

from app_orchestration.models import BuildContext, StepSpec
from app_orchestration.steps.base import (
    BuildStep,
    Capability,
    StepRegistry,
    StepResult,
)


class CloneRepoStep(BuildStep):
    """
    Clones the application repository into the plan path.

    Options:
        repo_url: Overrides the configured repository URL
    """

    STEP_NAME = "clone_repo"
    CAPABILITIES = frozenset({
        Capability.LOGGER,
        Capability.SHELL,
        Capability.APPLICATION_CONFIG,
    })

    def run(self, context: BuildContext) -> StepResult:
        shell = self.require(Capability.SHELL)
        config = self.require(Capability.APPLICATION_CONFIG)

        repo_url = self.options.get("repo_url") or config.repo_url
        reference = context.repo_reference or config.default_branch

        self.logger.info(f"Cloning {repo_url} at {reference}")
        shell.run_shell_command(
            f"git clone --quiet {shlex.quote(repo_url)} .",
            cwd=context.plan_path,
        )
        shell.run_shell_command(
            f"git checkout --quiet {shlex.quote(reference)}",
            cwd=context.plan_path,
        )
        return shell.run_shell_command("git rev-parse HEAD", cwd=context.plan_path)


class PackageBuildStep(BuildStep):
    """
    Packs the plan path into a gzipped tarball.

    Options:
        excludes: Additional tar --exclude patterns
    """

    STEP_NAME = "package_build"
    CAPABILITIES = frozenset({Capability.LOGGER, Capability.SHELL})

    @classmethod
    def validate(cls, spec: StepSpec) -> List[str]:
        if not isinstance(spec.options.get("excludes", []), list):
            return [f"Step '{spec.name}': option 'excludes' must be a list"]
        return []

    def run(self, context: BuildContext) -> StepResult:
        shell = self.require(Capability.SHELL)

        archive = f"{context.build_id}.tgz"
        excludes = " ".join(
            f"--exclude={shlex.quote(pattern)}"
            for pattern in self.options.get("excludes", [])
        )
        # ./* is expanded before the archive exists, so it never packs itself
        shell.run_shell_command(
            f"tar -cz --exclude-vcs {excludes} -f {shlex.quote(archive)} ./*",
            cwd=context.plan_path,
        )

        self.logger.info(f"Packaged build {context.build_id}")
        return {"artifact": f"{context.plan_path}/{archive}"}


class SaveBuildStep(BuildStep):
    """
    Stores the build at the save path.

    Copies the packaged artifact when one was produced, otherwise syncs the
    whole working tree.

    Options:
        excludes: Patterns left out when syncing the tree
    """

    STEP_NAME = "save_build"
    CAPABILITIES = frozenset({Capability.LOGGER, Capability.MOUNT_MANAGER})

    def run(self, context: BuildContext) -> StepResult:
        mount = self.require(Capability.MOUNT_MANAGER)

        artifact = getattr(context, "artifact", None)
        save_path = context.save_path.rstrip("/")

        if artifact and mount.has(f"local://{artifact}"):
            destination = f"{save_path}/{context.build_id}.tgz"
            mount.copy(f"local://{artifact}", destination)
        else:
            destination = f"{save_path}/{context.build_id}"
            mount.sync(
                f"local://{context.plan_path}",
                destination,
                {"excludes": self.options.get("excludes", [".git"])},
            )

        self.logger.info(f"Saved build {context.build_id} to {destination}")
        return {"saved_to": destination}


StepRegistry.register(CloneRepoStep)
StepRegistry.register(PackageBuildStep)
StepRegistry.register(SaveBuildStep)
