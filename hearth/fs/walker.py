"""Pre-order directory traversal that never follows symlinks."""

from __future__ import annotations

import os
import stat
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum


class EntryKind(Enum):
    """Filesystem object type as seen by ``lstat``."""

    DIRECTORY = "directory"
    FILE = "file"
    SYMLINK = "symlink"
    OTHER = "other"  # Devices, sockets, fifos


@dataclass(frozen=True)
class Entry:
    """One object found under a walked root."""

    relative_path: str
    kind: EntryKind
    mtime_ns: int
    symlink_target: str | None = None  # Raw, unresolved link text

    @property
    def name(self) -> str:
        return os.path.basename(self.relative_path)


def kind_of_mode(mode: int) -> EntryKind:
    if stat.S_ISLNK(mode):
        return EntryKind.SYMLINK
    if stat.S_ISDIR(mode):
        return EntryKind.DIRECTORY
    if stat.S_ISREG(mode):
        return EntryKind.FILE
    return EntryKind.OTHER


def kind_at(path: str | os.PathLike) -> EntryKind | None:
    """Return the kind of the object at ``path``, or None if nothing is there."""
    try:
        return kind_of_mode(os.lstat(path).st_mode)
    except FileNotFoundError:
        return None


def iter_entries(root: str | os.PathLike) -> Iterator[Entry]:
    """Yield every entry under ``root`` in pre-order, dotfiles included.

    A directory is yielded before its contents. Symlinks to directories are
    leaves. Siblings come in the order the OS lists them.
    """
    yield from _scan(os.fspath(root), "")


def walk(root: str | os.PathLike, visit: Callable[[Entry], object]) -> None:
    """Call ``visit`` on each entry under ``root`` in pre-order.

    An exception raised by ``visit`` stops the walk and propagates.
    """
    for entry in iter_entries(root):
        visit(entry)


def _scan(root: str, prefix: str) -> Iterator[Entry]:
    directory = os.path.join(root, prefix) if prefix else root
    with os.scandir(directory) as it:
        children = list(it)

    for child in children:
        relative = os.path.join(prefix, child.name) if prefix else child.name
        entry = _make_entry(child, relative)
        yield entry
        if entry.kind is EntryKind.DIRECTORY:
            yield from _scan(root, relative)


def _make_entry(child: os.DirEntry, relative: str) -> Entry:
    st = child.stat(follow_symlinks=False)
    kind = kind_of_mode(st.st_mode)
    target = os.readlink(child.path) if kind is EntryKind.SYMLINK else None
    return Entry(
        relative_path=relative,
        kind=kind,
        mtime_ns=st.st_mtime_ns,
        symlink_target=target,
    )
