"""
App Orchestration - Local Filesystem Helpers

Path checks and removal helpers used by the facades for scratch
directories and deployed application paths.
"""

from __future__ import annotations
from pathlib import Path
from typing import List, Union
import glob
import logging
import os
import shutil

from app_orchestration.errors import ConflictError, PreconditionError

logger = logging.getLogger(__name__)


def free_disk_space(path: Union[str, Path]) -> int:
    """Free bytes on the filesystem holding path."""
    return shutil.disk_usage(str(path)).free


def remove_path(pattern: str) -> List[str]:
    """
    Remove every path matching a glob pattern.

    Files and symlinks are unlinked (links are never followed); directories
    are emptied depth first and then removed.

    Returns:
        Removed top-level paths
    """
    removed = []
    for match in sorted(glob.glob(pattern)):
        _remove(Path(match))
        removed.append(match)
    if removed:
        logger.info(f"Removed {len(removed)} path(s) matching {pattern}")
    else:
        logger.debug(f"Nothing to remove at {pattern}")
    return removed


def _remove(path: Path) -> None:
    if path.is_symlink() or not path.is_dir():
        path.unlink()
        return
    for child in path.iterdir():
        _remove(child)
    path.rmdir()


def clear_directory(path: Union[str, Path]) -> None:
    """Remove the contents of a directory, keeping the directory itself."""
    directory = Path(path)
    if not directory.is_dir():
        return
    for child in directory.iterdir():
        _remove(child)
    logger.debug(f"Cleared {directory}")


def prepare_empty_directory(path: Union[str, Path]) -> Path:
    """
    Make sure a directory exists, is writable and is empty.

    Raises:
        PreconditionError: If it cannot be created, is not a directory or is not writable
        ConflictError: If it already contains files
    """
    directory = Path(path)

    if not directory.exists():
        parent = directory.parent
        while not parent.exists() and parent != parent.parent:
            parent = parent.parent
        if not os.access(parent, os.W_OK):
            raise PreconditionError(f"Cannot create {directory}: {parent} is not writable")
        directory.mkdir(parents=True)
        logger.debug(f"Created {directory}")

    if not directory.is_dir():
        raise PreconditionError(f"{directory} is not a directory")
    if not os.access(directory, os.W_OK):
        raise PreconditionError(f"{directory} is not writable")
    if any(directory.iterdir()):
        raise ConflictError(f"{directory} is not empty; remove its contents before running")

    return directory
