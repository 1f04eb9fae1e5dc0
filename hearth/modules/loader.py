"""Module loading with staleness markers.

A module is a script. Loading runs it as a child process inside a fresh
scratch directory, so its working-directory changes and local state stay
out of the caller. The only way a module changes the live session is the
shared environment file, which is re-applied after the child exits.

Each successful load touches ``<home>/mod/.loaded_<name>``. A marker that
is not older than the script means the module is already loaded.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from hearth.errors import ExecutionError, ValidationError
from hearth.fs.resolver import resolve
from hearth.session import Session
from hearth.utils.console import info

SENTINEL_PREFIX = ".loaded_"


@dataclass
class Module:
    """A loadable script and the marker recording its last load."""

    name: str
    script_path: str  # Canonical
    marker_path: Path

    @property
    def last_load_mtime_ns(self) -> int | None:
        try:
            return self.marker_path.stat().st_mtime_ns
        except FileNotFoundError:
            return None

    def is_fresh(self) -> bool:
        """True when the marker exists and is not older than the script."""
        loaded = self.last_load_mtime_ns
        if loaded is None:
            return False
        return loaded >= os.stat(self.script_path).st_mtime_ns


@dataclass
class LoadOutcome:
    module: Module
    executed: bool


class ModuleLoader:
    """Loads modules into a session, in order, stopping at the first failure."""

    def __init__(self, session: Session):
        self.session = session
        self.config = session.config

    def find(self, identifier: str) -> Module:
        """Map a bare name or a path to a ``Module``.

        Names containing a path separator are resolved as paths; bare names
        are looked up in the canonical module directory.
        """
        name = os.path.basename(identifier.rstrip(os.sep))
        if not name or name in (".", ".."):
            raise ValidationError(f"invalid module identifier: {identifier!r}")

        if os.sep in identifier:
            script = resolve(identifier)
        else:
            script = resolve(self.config.mod_dir / identifier)

        if os.path.isdir(script):
            raise ValidationError(f"module {name} is a directory: {script}")

        return Module(
            name=name,
            script_path=script,
            marker_path=self.config.mod_dir / f"{SENTINEL_PREFIX}{name}",
        )

    def load(self, identifiers: Iterable[str], force: bool = False) -> list[LoadOutcome]:
        """Load each module in the given order.

        A failure aborts the remaining modules; modules already loaded in
        this call stay loaded.
        """
        return [self.load_one(identifier, force=force) for identifier in identifiers]

    def load_one(self, identifier: str, force: bool = False) -> LoadOutcome:
        module = self.find(identifier)
        if not force and module.is_fresh():
            return LoadOutcome(module=module, executed=False)

        self._execute(module)
        return LoadOutcome(module=module, executed=True)

    def load_all(self, force: bool = False) -> list[LoadOutcome]:
        """Load every module exposed in the module directory, in listing order."""
        if not self.config.mod_dir.is_dir():
            return []
        with os.scandir(self.config.mod_dir) as it:
            names = [e.name for e in it if not e.name.startswith(SENTINEL_PREFIX)]
        return self.load(names, force=force)

    def _execute(self, module: Module) -> None:
        scratch = self.session.scratch_dir(prefix=f"hearth_{module.name}_")
        if os.access(module.script_path, os.X_OK):
            command = [module.script_path]
        else:
            command = ["/bin/sh", module.script_path]

        env = dict(
            os.environ,
            HEARTH_HOME=str(self.config.home),
            HEARTH_ENV=str(self.config.env_file),
            HEARTH_MODULE=module.name,
            HEARTH_SCRATCH=str(scratch),
        )

        info(f"loading module {module.name}")
        try:
            proc = subprocess.run(command, cwd=scratch, env=env)
        except OSError as e:
            raise ExecutionError(f"module {module.name}", detail=str(e)) from e

        self.session.env.apply()
        if proc.returncode != 0:
            raise ExecutionError(f"module {module.name}", proc.returncode)

        module.marker_path.parent.mkdir(parents=True, exist_ok=True)
        module.marker_path.touch()
        self.session.discard(scratch)
