"""Tests for one-way tree synchronization."""

import os
import tempfile
from pathlib import Path

import pytest

from hearth.errors import TypeConflictError, UnsupportedEntryError, ValidationError
from hearth.fs.sync import TreeSynchronizer, sync


def _make_source(root: Path) -> Path:
    src = root / "src"
    (src / "sub").mkdir(parents=True)
    (src / "a.txt").write_text("alpha")
    (src / "sub" / "b.txt").write_text("beta")
    (src / ".dot").write_text("dot")
    os.symlink("sub/b.txt", src / "link")
    os.symlink("/nonexistent/target", src / "dangling")
    return src


def _set_mtime(path: Path, seconds: int) -> None:
    os.utime(path, ns=(seconds * 1_000_000_000, seconds * 1_000_000_000))


def test_sync_creates_mirror():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = _make_source(root)
        dst = root / "dst"

        changed = sync(src, dst)

        assert changed == 6
        assert (dst / "a.txt").read_text() == "alpha"
        assert (dst / "sub" / "b.txt").read_text() == "beta"
        assert (dst / ".dot").read_text() == "dot"
        assert os.readlink(dst / "link") == "sub/b.txt"
        assert os.readlink(dst / "dangling") == "/nonexistent/target"


def test_sync_is_idempotent():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = _make_source(root)
        dst = root / "dst"

        sync(src, dst)
        assert sync(src, dst) == 0


def test_sync_preserves_mode_and_mtime():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = _make_source(root)
        os.chmod(src / "a.txt", 0o750)
        _set_mtime(src / "a.txt", 1_500_000_000)

        sync(src, root / "dst")

        st = os.stat(root / "dst" / "a.txt")
        assert st.st_mode & 0o777 == 0o750
        assert st.st_mtime_ns == 1_500_000_000 * 1_000_000_000


def test_only_newer_file_is_copied():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = _make_source(root)
        for path in (src / "a.txt", src / "sub" / "b.txt", src / ".dot"):
            _set_mtime(path, 1_000_000_000)
        dst = root / "dst"
        sync(src, dst)

        (src / "a.txt").write_text("alpha v2")
        _set_mtime(src / "a.txt", 1_000_000_100)

        synchronizer = TreeSynchronizer(src, dst)
        assert synchronizer.run() == 1
        assert synchronizer.copied == [os.path.join(synchronizer.destination_root, "a.txt")]
        assert (dst / "a.txt").read_text() == "alpha v2"


def test_older_source_does_not_overwrite():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = root / "src"
        dst = root / "dst"
        src.mkdir()
        dst.mkdir()
        (src / "f").write_text("old")
        (dst / "f").write_text("local edit")
        _set_mtime(src / "f", 1_000_000_000)
        _set_mtime(dst / "f", 1_000_000_100)

        assert sync(src, dst) == 0
        assert (dst / "f").read_text() == "local edit"


def test_read_only_copy_is_refreshed():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = root / "src"
        src.mkdir()
        (src / "f").write_text("one")
        os.chmod(src / "f", 0o444)
        _set_mtime(src / "f", 1_000_000_000)
        sync(src, root / "dst")

        os.chmod(src / "f", 0o644)
        (src / "f").write_text("two")
        os.chmod(src / "f", 0o444)
        _set_mtime(src / "f", 1_000_000_100)

        assert sync(src, root / "dst") == 1
        assert (root / "dst" / "f").read_text() == "two"


def test_sync_never_deletes_extra_entries():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = _make_source(root)
        dst = root / "dst"
        dst.mkdir()
        (dst / "extra").write_text("keep me")

        sync(src, dst)
        assert (dst / "extra").read_text() == "keep me"


def test_changed_symlink_target_is_recreated():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = _make_source(root)
        dst = root / "dst"
        sync(src, dst)

        os.unlink(src / "link")
        os.symlink("a.txt", src / "link")

        assert sync(src, dst) == 1
        assert os.readlink(dst / "link") == "a.txt"


def test_directory_over_file_conflicts():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = root / "src"
        dst = root / "dst"
        (src / "thing").mkdir(parents=True)
        (src / "thing" / "inner").write_text("x")
        dst.mkdir()
        (dst / "thing").write_text("a file")

        with pytest.raises(TypeConflictError):
            sync(src, dst)
        assert (dst / "thing").read_text() == "a file"
        assert (src / "thing" / "inner").read_text() == "x"


def test_file_over_directory_conflicts():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = root / "src"
        dst = root / "dst"
        src.mkdir()
        (src / "thing").write_text("a file")
        (dst / "thing").mkdir(parents=True)

        with pytest.raises(TypeConflictError):
            sync(src, dst)
        assert (dst / "thing").is_dir()
        assert (src / "thing").read_text() == "a file"


def test_file_over_symlink_conflicts():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = root / "src"
        dst = root / "dst"
        src.mkdir()
        dst.mkdir()
        (src / "thing").write_text("a file")
        os.symlink("elsewhere", dst / "thing")

        with pytest.raises(TypeConflictError):
            sync(src, dst)
        assert os.readlink(dst / "thing") == "elsewhere"


def test_symlink_over_file_conflicts():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = root / "src"
        dst = root / "dst"
        src.mkdir()
        dst.mkdir()
        os.symlink("target", src / "thing")
        (dst / "thing").write_text("a file")

        with pytest.raises(TypeConflictError):
            sync(src, dst)
        assert (dst / "thing").read_text() == "a file"


def test_fifo_is_unsupported():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = root / "src"
        src.mkdir()
        os.mkfifo(src / "pipe")

        with pytest.raises(UnsupportedEntryError):
            sync(src, root / "dst")


def test_destination_file_root_conflicts():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = _make_source(root)
        (root / "dst").write_text("")

        with pytest.raises(TypeConflictError):
            sync(src, root / "dst")


def test_destination_inside_source_is_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = _make_source(root)

        with pytest.raises(ValidationError):
            sync(src, src / "sub" / "copy")


def test_sync_through_symlinked_roots():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        src = _make_source(root)
        (root / "real_dst").mkdir()
        os.symlink(src, root / "src_link")
        os.symlink(root / "real_dst", root / "dst_link")

        sync(root / "src_link", root / "dst_link")
        assert (root / "real_dst" / "a.txt").read_text() == "alpha"
