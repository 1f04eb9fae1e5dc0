"""Session — the process-wide context every component shares.

A ``Session`` owns the scratch directories created for module execution
and the environment-definition file through which modules change the live
environment. Closing the session removes every scratch directory; it is
also armed with ``atexit`` so the cleanup runs however the process ends.

Usage::

    with Session(load_config()) as session:
        ModuleLoader(session).load(["git-aliases"])
"""

from __future__ import annotations

import atexit
import os
import re
import shlex
import shutil
import tempfile
from collections.abc import MutableMapping
from pathlib import Path

from hearth.config import HearthConfig
from hearth.errors import ValidationError

ENV_NAME_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class EnvFile:
    """Append-only list of ``export NAME="value"`` lines.

    Values are expanded against the environment when applied, the way a
    shell expands a double-quoted string, so ``$HOME/bin:$PATH`` works both
    when the file is sourced by a shell and when hearth applies it.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def define(self, name: str, value: str) -> bool:
        """Append an assignment unless the same line is already present.

        Returns True if the file changed.
        """
        if not ENV_NAME_PATTERN.fullmatch(name):
            raise ValidationError(f"invalid environment variable name: {name!r}")
        if "`" in value or "\n" in value:
            raise ValidationError(f"{name}: value may not contain backticks or newlines")

        line = f'export {name}="{_escape(value)}"'
        if line in self._lines():
            return False

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a") as f:
            f.write(line + "\n")
        return True

    def entries(self) -> list[tuple[str, str]]:
        """Parse the file into ``(name, raw value)`` pairs, in file order."""
        result = []
        for lineno, line in enumerate(self._lines(), start=1):
            if not line or line.startswith("#"):
                continue
            try:
                words = shlex.split(line)
            except ValueError as e:
                raise ValidationError(f"{self.path}:{lineno}: {e}") from e
            if words and words[0] == "export":
                words = words[1:]
            for word in words:
                name, sep, value = word.partition("=")
                if not sep or not ENV_NAME_PATTERN.fullmatch(name):
                    raise ValidationError(f"{self.path}:{lineno}: not an assignment: {word!r}")
                result.append((name, value))
        return result

    def apply(self, environ: MutableMapping[str, str] | None = None) -> None:
        """Write every assignment into ``environ`` (``os.environ`` by default)."""
        environ = os.environ if environ is None else environ
        for name, value in self.entries():
            expanded = _expand(value, environ)
            if name.endswith("PATH"):
                expanded = _dedupe_search_path(expanded)
            environ[name] = expanded

    def _lines(self) -> list[str]:
        if not self.path.exists():
            return []
        return [line.strip() for line in self.path.read_text().splitlines()]


class Session:
    """Shared state of one hearth process."""

    def __init__(self, config: HearthConfig):
        self.config = config
        self.env = EnvFile(config.env_file)
        self._scratch: list[Path] = []

    def __enter__(self) -> "Session":
        atexit.register(self.close)
        os.environ["HEARTH_HOME"] = str(self.config.home)
        self._prepend_bin()
        self.env.apply()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def scratch_dir(self, prefix: str = "hearth_") -> Path:
        """Create a temporary directory that is removed when the session closes."""
        path = Path(tempfile.mkdtemp(prefix=prefix))
        self._scratch.append(path)
        return path

    def discard(self, path: Path) -> None:
        """Remove a scratch directory before the session ends."""
        shutil.rmtree(path, ignore_errors=True)
        if path in self._scratch:
            self._scratch.remove(path)

    @property
    def scratch_dirs(self) -> list[Path]:
        return list(self._scratch)

    def close(self) -> None:
        while self._scratch:
            shutil.rmtree(self._scratch.pop(), ignore_errors=True)
        atexit.unregister(self.close)

    def _prepend_bin(self) -> None:
        bin_dir = str(self.config.bin_dir)
        parts = os.environ.get("PATH", "").split(os.pathsep)
        if bin_dir not in parts:
            os.environ["PATH"] = os.pathsep.join([bin_dir] + [p for p in parts if p])


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _expand(value: str, environ: MutableMapping[str, str]) -> str:
    def substitute(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        return environ.get(name, "")

    return re.sub(r"\$(?:\{([A-Za-z_][A-Za-z0-9_]*)\}|([A-Za-z_][A-Za-z0-9_]*))", substitute, value)


def _dedupe_search_path(value: str) -> str:
    seen: list[str] = []
    for part in value.split(os.pathsep):
        if part and part not in seen:
            seen.append(part)
    return os.pathsep.join(seen)
