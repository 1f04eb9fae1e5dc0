"""Exception hierarchy shared by every hearth component.

Components raise and never recover locally; the CLI is the only place
these are caught.
"""

from __future__ import annotations


class HearthError(Exception):
    """Base class for all hearth failures."""


class ResolutionError(HearthError):
    """A path could not be canonicalized."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"cannot resolve {path!r}: {reason}")
        self.path = path
        self.reason = reason


class CycleError(ResolutionError):
    """A symlink was followed twice while resolving one path."""

    def __init__(self, path: str, link: str):
        super().__init__(path, f"symlink cycle through {link}")
        self.link = link


class TypeConflictError(HearthError):
    """A destination entry exists with a type incompatible with its source."""

    def __init__(self, destination: str, expected: str, found: str):
        super().__init__(f"{destination}: expected {expected}, found {found}")
        self.destination = destination
        self.expected = expected
        self.found = found


class UnsupportedEntryError(HearthError):
    """A source entry is neither a directory, a regular file nor a symlink."""


class ValidationError(HearthError):
    """Malformed input: package descriptor, names, configuration."""


class ExecutionError(HearthError):
    """An external program or a loaded module exited abnormally."""

    def __init__(self, command: str, returncode: int | None = None, detail: str = ""):
        message = command
        if returncode is not None:
            message += f" exited with status {returncode}"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.command = command
        self.returncode = returncode
