"""One-way tree synchronization.

Mirrors a source tree into a destination tree. The mirror is additive:
entries missing from the source are left alone in the destination. It is
idempotent: a second run over unchanged inputs touches nothing. A
destination entry whose type differs from its source is never replaced;
the sync fails instead.

Freshness is a strict ``source mtime > destination mtime`` comparison, so
clock skew or coarse filesystem timestamps can hide an update.
"""

from __future__ import annotations

import os
import shutil

from hearth.errors import TypeConflictError, UnsupportedEntryError, ValidationError
from hearth.fs.resolver import resolve
from hearth.fs.walker import Entry, EntryKind, kind_at, walk


class TreeSynchronizer:
    """Mirror ``source`` into ``destination``, counting what changed."""

    def __init__(self, source: str | os.PathLike, destination: str | os.PathLike):
        self.source = os.fspath(source)
        self.destination = os.fspath(destination)
        self.source_root = ""
        self.destination_root = ""
        self.changed = 0
        self.copied: list[str] = []

    def run(self) -> int:
        """Synchronize and return the number of destination entries changed.

        Raises:
            TypeConflictError: If a destination entry has the wrong type.
            UnsupportedEntryError: If the source holds a device, socket or fifo.
            ValidationError: If the destination lies inside the source.
        """
        self.source_root = resolve(self.source)
        if not os.path.isdir(self.source_root):
            raise UnsupportedEntryError(f"{self.source_root}: source is not a directory")

        if _is_within(os.path.realpath(self.destination), self.source_root):
            raise ValidationError(
                f"cannot sync {self.source_root} into its own subtree {self.destination}"
            )

        found = kind_at(self.destination)
        if found is None:
            os.makedirs(self.destination)
        elif not os.path.isdir(self.destination):
            raise TypeConflictError(self.destination, "directory", found.value)
        self.destination_root = resolve(self.destination)
        walk(self.source_root, self._apply)
        return self.changed

    def _apply(self, entry: Entry) -> None:
        source = os.path.join(self.source_root, entry.relative_path)
        destination = os.path.join(self.destination_root, entry.relative_path)
        found = kind_at(destination)

        if entry.kind is EntryKind.DIRECTORY:
            self._sync_directory(destination, found)
        elif entry.kind is EntryKind.SYMLINK:
            self._sync_symlink(entry, destination, found)
        elif entry.kind is EntryKind.FILE:
            self._sync_file(entry, source, destination, found)
        else:
            raise UnsupportedEntryError(f"{source}: unsupported file type")

    def _sync_directory(self, destination: str, found: EntryKind | None) -> None:
        if found is None:
            os.mkdir(destination)
            self.changed += 1
        elif found is not EntryKind.DIRECTORY:
            raise TypeConflictError(destination, "directory", found.value)

    def _sync_symlink(self, entry: Entry, destination: str, found: EntryKind | None) -> None:
        if found is EntryKind.SYMLINK:
            if os.readlink(destination) == entry.symlink_target:
                return
            os.unlink(destination)
        elif found is not None:
            raise TypeConflictError(destination, "symlink", found.value)

        os.symlink(entry.symlink_target, destination)
        self.changed += 1

    def _sync_file(
        self, entry: Entry, source: str, destination: str, found: EntryKind | None
    ) -> None:
        if found is EntryKind.FILE:
            if entry.mtime_ns <= os.lstat(destination).st_mtime_ns:
                return
            # Replace rather than rewrite so read-only copies can be refreshed.
            os.unlink(destination)
        elif found is not None:
            raise TypeConflictError(destination, "file", found.value)

        shutil.copy2(source, destination, follow_symlinks=False)
        self.copied.append(destination)
        self.changed += 1


def sync(source: str | os.PathLike, destination: str | os.PathLike) -> int:
    """Mirror ``source`` into ``destination`` and return the change count."""
    return TreeSynchronizer(source, destination).run()


def _is_within(path: str, root: str) -> bool:
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)
