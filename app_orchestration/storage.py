"""
App Orchestration - Storage Layer

Mount manager addressing several filesystems through URL-style schemes
("local:///var/www", "backup://snapshots/nightly"). Paths without a scheme
go to the default filesystem.
"""

from __future__ import annotations
import shutil
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
import logging

from app_orchestration.errors import ConfigurationError, ExternalToolError

logger = logging.getLogger(__name__)

SCHEME_SEPARATOR = "://"


def _iter_files_under(root: Path) -> Iterable[Path]:
    # deterministic traversal
    for p in sorted(root.rglob("*")):
        if p.is_file() or p.is_symlink():
            yield p


def matches_any_glob(rel: str, globs: List[str]) -> bool:
    """
    Check a relative path against glob patterns.

    A pattern matches the path itself or any of its parent directories, so
    "cache" excludes everything below cache/.
    """
    rel_path = Path(rel)
    candidates = [rel_path] + [p for p in rel_path.parents if str(p) != "."]
    for g in globs:
        pattern = g.strip("/")
        if not pattern:
            continue
        for candidate in candidates:
            if candidate.match(pattern):
                return True
    return False


class Filesystem:
    """A directory tree exposed under a mount scheme."""

    def __init__(self, name: str, root: str = "/"):
        self.name = name
        self.root = Path(root)

    def resolve(self, path: str) -> Path:
        """Map a path inside this filesystem to a real path."""
        return self.root / path.lstrip("/")

    def __repr__(self) -> str:
        return f"Filesystem({self.name!r}, root={str(self.root)!r})"


class MountManager:
    """
    Manages file operations across mounted filesystems.

    The "local" filesystem is always mounted at "/". Additional filesystems
    are mounted from configuration:

        filesystems:
          backup:
            root: /mnt/backups
    """

    def __init__(
        self,
        filesystems: Optional[Dict[str, str]] = None,
        default_filesystem: str = "local",
    ):
        """
        Initialize mount manager.

        Args:
            filesystems: Mapping of scheme name to root directory
            default_filesystem: Scheme used for paths without one
        """
        self._filesystems: Dict[str, Filesystem] = {"local": Filesystem("local", "/")}
        for name, root in (filesystems or {}).items():
            self.mount(name, root)

        if default_filesystem not in self._filesystems:
            raise ConfigurationError(f"Unknown default filesystem: {default_filesystem}")
        self.default_filesystem = default_filesystem

    def mount(self, name: str, root: str) -> None:
        """Mount a directory under a scheme name."""
        self._filesystems[name] = Filesystem(name, root)
        logger.debug(f"Mounted filesystem {name}:// at {root}")

    def filesystems(self) -> List[str]:
        return sorted(self._filesystems.keys())

    def _split(self, path: str) -> Tuple[Filesystem, str]:
        if SCHEME_SEPARATOR in path:
            scheme, inner = path.split(SCHEME_SEPARATOR, 1)
            if scheme not in self._filesystems:
                raise ExternalToolError(
                    f"No filesystem mounted for scheme '{scheme}'. "
                    f"Available: {self.filesystems()}"
                )
            return self._filesystems[scheme], inner
        return self._filesystems[self.default_filesystem], path

    def real_path(self, path: str) -> Path:
        """Resolve a mount path to a real filesystem path."""
        filesystem, inner = self._split(path)
        return filesystem.resolve(inner)

    # =========================================================================
    # FILE OPERATIONS
    # =========================================================================

    def has(self, path: str) -> bool:
        """Check whether a file or directory exists."""
        real = self.real_path(path)
        return real.exists() or real.is_symlink()

    def read(self, path: str) -> str:
        """Read a text file."""
        real = self.real_path(path)
        if not real.is_file():
            raise ExternalToolError(f"File not found: {path}")
        with open(real, "r", encoding="utf-8") as f:
            return f.read()

    def put(self, path: str, contents: Union[str, bytes] = "") -> None:
        """Write a file, creating parent directories."""
        real = self.real_path(path)
        real.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(contents, bytes):
            real.write_bytes(contents)
        else:
            real.write_text(contents, encoding="utf-8")
        logger.debug(f"Wrote {path}")

    def delete(self, path: str) -> None:
        """Delete a single file."""
        real = self.real_path(path)
        if not (real.is_file() or real.is_symlink()):
            raise ExternalToolError(f"File not found: {path}")
        real.unlink()
        logger.debug(f"Deleted {path}")

    def delete_dir(self, path: str) -> None:
        """Delete a directory and everything below it."""
        real = self.real_path(path)
        if not real.is_dir():
            raise ExternalToolError(f"Directory not found: {path}")
        shutil.rmtree(real)
        logger.info(f"Deleted directory {path}")

    def list_files(self, path: str) -> List[str]:
        """List files below a directory, relative to it."""
        real = self.real_path(path)
        if not real.is_dir():
            return []
        return [str(p.relative_to(real)) for p in _iter_files_under(real)]

    def copy(self, source: str, destination: str) -> None:
        """
        Copy a single file, possibly between filesystems.

        Args:
            source: Mount path of the file to copy
            destination: Mount path of the target file (overwritten)
        """
        src = self.real_path(source)
        dst = self.real_path(destination)
        if not src.is_file():
            raise ExternalToolError(f"Source file not found: {source}")

        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dst)
        logger.debug(f"Copied {source} -> {destination}")

    def sync(
        self,
        source: str,
        destination: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Make a destination directory mirror a source directory.

        Options:
            excludes: Glob patterns of relative paths left out
            includes: Glob patterns overriding excludes
            delete: Remove destination files missing from the source (default True)

        Returns:
            Number of files copied
        """
        options = options or {}
        excludes = list(options.get("excludes") or [])
        includes = list(options.get("includes") or [])
        delete = bool(options.get("delete", True))

        src_root = self.real_path(source)
        dst_root = self.real_path(destination)
        if not src_root.is_dir():
            raise ExternalToolError(f"Source directory not found: {source}")

        dst_root.mkdir(parents=True, exist_ok=True)

        synced = set()
        copied = 0
        for src in _iter_files_under(src_root):
            rel = str(src.relative_to(src_root))
            if matches_any_glob(rel, excludes) and not matches_any_glob(rel, includes):
                continue

            dst = dst_root / rel
            dst.parent.mkdir(parents=True, exist_ok=True)
            if src.is_symlink():
                if dst.is_symlink() or dst.exists():
                    dst.unlink()
                dst.symlink_to(src.readlink())
            else:
                shutil.copy2(src, dst)
            synced.add(rel)
            copied += 1

        if delete:
            for dst in _iter_files_under(dst_root):
                rel = str(dst.relative_to(dst_root))
                if rel not in synced:
                    dst.unlink()

        logger.info(f"Synced {copied} file(s) {source} -> {destination}")
        return copied


def create_mount_manager(
    filesystems: Optional[Dict[str, Any]] = None,
    default_filesystem: str = "local",
) -> MountManager:
    """
    Create a mount manager from configured filesystems.

    Args:
        filesystems: Mapping of name to root path or to an object with a root attribute
        default_filesystem: Scheme for unqualified paths

    Returns:
        Configured MountManager
    """
    roots = {
        name: (fs if isinstance(fs, str) else fs.root)
        for name, fs in (filesystems or {}).items()
    }
    return MountManager(filesystems=roots, default_filesystem=default_filesystem)
