import os

import pytest

from app_orchestration.errors import ConfigurationError, ExternalToolError
from app_orchestration.filesystem import clear_directory, prepare_empty_directory, remove_path
from app_orchestration.storage import MountManager, matches_any_glob


@pytest.fixture
def mount(tmp_path):
    return MountManager({"backup": str(tmp_path / "backup")})


@pytest.fixture
def source(tmp_path):
    src = tmp_path / "src"
    (src / "img").mkdir(parents=True)
    (src / "img" / "a.jpg").write_text("a")
    (src / "img" / "b.png").write_text("b")
    (src / "cache" / "deep").mkdir(parents=True)
    (src / "cache" / "deep" / "c.bin").write_text("c")
    (src / "cache" / "keep.txt").write_text("keep")
    return src


# ---------------------------------------------------------------------------
# Mount paths
# ---------------------------------------------------------------------------

def test_scheme_paths_resolve_below_filesystem_root(mount, tmp_path):
    mount.put("backup://nightly/info.txt", "hello")

    assert (tmp_path / "backup" / "nightly" / "info.txt").read_text() == "hello"
    assert mount.has("backup://nightly/info.txt")
    assert mount.read("backup://nightly/info.txt") == "hello"


def test_plain_and_local_paths_use_local_filesystem(mount, tmp_path):
    target = tmp_path / "plain.txt"
    mount.put(str(target), "x")

    assert mount.has(f"local://{target}")


def test_unknown_scheme_is_an_external_tool_error(mount):
    with pytest.raises(ExternalToolError, match="No filesystem mounted"):
        mount.has("s3://bucket/key")


def test_unknown_default_filesystem_is_rejected():
    with pytest.raises(ConfigurationError):
        MountManager(default_filesystem="backup")


def test_copy_between_filesystems(mount, tmp_path):
    src = tmp_path / "dump.sql"
    src.write_text("dump")

    mount.copy(f"local://{src}", "backup://snap/databases/shop.sql")

    assert (tmp_path / "backup" / "snap" / "databases" / "shop.sql").read_text() == "dump"


def test_copy_of_missing_file_fails(mount, tmp_path):
    with pytest.raises(ExternalToolError, match="Source file not found"):
        mount.copy(str(tmp_path / "missing"), "backup://x")


def test_delete_and_delete_dir(mount):
    mount.put("backup://d/one.txt", "1")

    mount.delete("backup://d/one.txt")
    assert not mount.has("backup://d/one.txt")

    mount.delete_dir("backup://d")
    assert not mount.has("backup://d")

    with pytest.raises(ExternalToolError):
        mount.delete_dir("backup://d")


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------

def test_sync_copies_tree(mount, source):
    copied = mount.sync(f"local://{source}", "backup://assets")

    assert copied == 4
    assert sorted(mount.list_files("backup://assets")) == [
        "cache/deep/c.bin",
        "cache/keep.txt",
        "img/a.jpg",
        "img/b.png",
    ]


def test_sync_excludes_and_includes(mount, source):
    mount.sync(
        f"local://{source}",
        "backup://assets",
        {"excludes": ["cache", "*.png"], "includes": ["cache/keep.txt"]},
    )

    assert sorted(mount.list_files("backup://assets")) == ["cache/keep.txt", "img/a.jpg"]


def test_sync_removes_stale_destination_files(mount, source):
    mount.put("backup://assets/old.txt", "stale")

    mount.sync(f"local://{source}", "backup://assets")
    assert not mount.has("backup://assets/old.txt")

    mount.put("backup://assets/old.txt", "stale")
    mount.sync(f"local://{source}", "backup://assets", {"delete": False})
    assert mount.has("backup://assets/old.txt")


def test_sync_of_missing_source_fails(mount, tmp_path):
    with pytest.raises(ExternalToolError):
        mount.sync(str(tmp_path / "nothing"), "backup://assets")


def test_glob_matches_parent_directories():
    assert matches_any_glob("cache/deep/c.bin", ["cache"])
    assert matches_any_glob("img/a.jpg", ["*.jpg"])
    assert not matches_any_glob("img/a.jpg", ["cache", "*.png"])


# ---------------------------------------------------------------------------
# Local filesystem helpers
# ---------------------------------------------------------------------------

def test_remove_path_expands_globs(tmp_path):
    for name in ("a.log", "b.log", "c.txt"):
        (tmp_path / name).write_text(name)

    removed = remove_path(str(tmp_path / "*.log"))

    assert len(removed) == 2
    assert sorted(p.name for p in tmp_path.iterdir()) == ["c.txt"]


def test_remove_path_unlinks_symlinks_without_following(tmp_path):
    target = tmp_path / "target"
    target.mkdir()
    (target / "file.txt").write_text("keep")
    link = tmp_path / "link"
    os.symlink(target, link)

    remove_path(str(link))

    assert not os.path.lexists(link)
    assert (target / "file.txt").exists()


def test_clear_directory_keeps_directory(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "f").write_text("f")
    (tmp_path / ".hidden").write_text("h")

    clear_directory(tmp_path)

    assert tmp_path.is_dir()
    assert list(tmp_path.iterdir()) == []


def test_prepare_empty_directory_creates_missing_path(tmp_path):
    path = prepare_empty_directory(tmp_path / "a" / "b")
    assert path.is_dir()
