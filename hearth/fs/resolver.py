"""Canonical path resolution.

Resolves every symlink and relative segment of a path without changing the
process working directory. A symlink stays on the current chain while its
target is being resolved; reaching it again from inside that chain is a
cycle and fails instead of looping. Passing through the same link twice in
sequence is fine.
"""

from __future__ import annotations

import os
import stat

from hearth.errors import CycleError, ResolutionError


def resolve(path: str | os.PathLike) -> str:
    """Return the absolute, symlink-free path of an existing object.

    Raises:
        ResolutionError: If a component is missing or not a directory.
        CycleError: If a symlink is reached again while resolving its own
            target.
    """
    text = os.fspath(path)
    if not text:
        raise ResolutionError(text, "empty path")
    return _Resolution(text).run()


class _Resolution:
    """State of one top-level ``resolve`` call."""

    def __init__(self, origin: str):
        self.origin = origin
        self.chain: set[str] = set()

    def run(self) -> str:
        return self._resolve(self.origin, os.getcwd())

    def _resolve(self, path: str, base: str) -> str:
        physical = os.sep if path.startswith(os.sep) else base
        components = [c for c in path.split(os.sep) if c]
        if not components:
            return physical

        for name in components[:-1]:
            physical = self._enter(physical, name)
        return self._final(physical, components[-1])

    def _enter(self, physical: str, name: str) -> str:
        if name == ".":
            return physical
        if name == "..":
            return os.path.dirname(physical)

        candidate = os.path.join(physical, name)
        mode = self._lstat(candidate)
        if stat.S_ISLNK(mode):
            target = self._follow(candidate, physical)
            if not os.path.isdir(target):
                raise ResolutionError(self.origin, f"{candidate} is not a directory")
            return target
        if stat.S_ISDIR(mode):
            return candidate
        raise ResolutionError(self.origin, f"{candidate} is not a directory")

    def _final(self, physical: str, name: str) -> str:
        if name == ".":
            return physical
        if name == "..":
            return os.path.dirname(physical)

        candidate = os.path.join(physical, name)
        if stat.S_ISLNK(self._lstat(candidate)):
            return self._follow(candidate, physical)
        # ``physical`` holds no symlinks, so neither does its child.
        return candidate

    def _follow(self, link: str, physical: str) -> str:
        if link in self.chain:
            raise CycleError(self.origin, link)
        self.chain.add(link)
        try:
            return self._resolve(os.readlink(link), physical)
        finally:
            self.chain.discard(link)

    def _lstat(self, candidate: str) -> int:
        try:
            return os.lstat(candidate).st_mode
        except FileNotFoundError:
            raise ResolutionError(self.origin, f"{candidate} does not exist") from None
        except OSError as e:
            raise ResolutionError(self.origin, f"{candidate}: {e.strerror}") from e
