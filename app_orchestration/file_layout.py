"""
App Orchestration - File Layout

Resolves where an application's code, local and shared files live on disk
for each supported deployment layout.
"""

from __future__ import annotations
from enum import Enum
from typing import Optional
import re


class FileLayoutStrategy(str, Enum):
    """How application files are arranged below the application root."""
    DEFAULT = "default"
    BLUE_GREEN = "blue_green"
    BRANCH = "branch"


CURRENT_RELEASE = "current_release"


def sanitize_branch_name(branch: str) -> str:
    """Make a branch name safe to use as a directory name."""
    return re.sub(r"[^a-z0-9.\-]", "-", branch.lower())


def sanitize_database_name(name: str) -> str:
    """Make a branch name safe to use as a database name suffix."""
    return re.sub(r"[^a-z0-9]", "_", name.lower())


class FileLayout:
    """
    Path resolution for one application root.

    Layouts:
    - default:    code, local and shared files all live in the app root
    - blue_green: releases/<branch>, local/ and shared/ plus a current_release link
    - branch:     branches/<branch> holds code and local files, shared/ is common
    """

    def __init__(
        self,
        app_root: str,
        strategy: FileLayoutStrategy = FileLayoutStrategy.DEFAULT,
        default_branch: str = "master",
    ):
        self.app_root = app_root.rstrip("/") or "/"
        self.strategy = FileLayoutStrategy(strategy)
        self.default_branch = default_branch

    def _branch(self, branch: Optional[str]) -> str:
        return sanitize_branch_name(branch or self.default_branch)

    def code_path(self, branch: Optional[str] = None) -> str:
        """Directory holding the deployed code."""
        if self.strategy == FileLayoutStrategy.BLUE_GREEN:
            return f"{self.app_root}/releases/{self._branch(branch)}"
        if self.strategy == FileLayoutStrategy.BRANCH:
            return f"{self.app_root}/branches/{self._branch(branch)}"
        return self.app_root

    def local_path(self, branch: Optional[str] = None) -> str:
        """Directory holding files local to one deployment."""
        if self.strategy == FileLayoutStrategy.BLUE_GREEN:
            return f"{self.app_root}/local"
        if self.strategy == FileLayoutStrategy.BRANCH:
            return self.code_path(branch)
        return self.app_root

    def shared_path(self) -> str:
        """Directory holding files shared between deployments."""
        if self.strategy in (FileLayoutStrategy.BLUE_GREEN, FileLayoutStrategy.BRANCH):
            return f"{self.app_root}/shared"
        return self.app_root

    def current_release_link(self) -> Optional[str]:
        """Symlink pointing at the live release (blue/green only)."""
        if self.strategy == FileLayoutStrategy.BLUE_GREEN:
            return f"{self.app_root}/{CURRENT_RELEASE}"
        return None

    def path_for_location(self, location: str, branch: Optional[str] = None) -> str:
        """
        Resolve an asset location name to its directory.

        Args:
            location: One of "code", "local" or "shared"
            branch: Branch for branch-aware layouts

        Returns:
            Absolute directory path
        """
        if location == "code":
            return self.code_path(branch)
        if location == "local":
            return self.local_path(branch)
        if location == "shared":
            return self.shared_path()
        raise ValueError(f"Unknown asset location: {location}")

    def database_name(self, name: str, branch: Optional[str] = None) -> str:
        """Physical database name (branch layouts suffix the branch)."""
        if self.strategy == FileLayoutStrategy.BRANCH:
            return f"{name}_{sanitize_database_name(branch or self.default_branch)}"
        return name
