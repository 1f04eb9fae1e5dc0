"""Package data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

CATEGORIES = ("mod", "cmd")


@dataclass
class Package:
    """A package bundle on disk."""

    name: str
    source_dir: Path
    has_mod: bool = False
    has_cmd: bool = False
    dependencies: list[str] = field(default_factory=list)

    @property
    def categories(self) -> list[str]:
        present = {"mod": self.has_mod, "cmd": self.has_cmd}
        return [c for c in CATEGORIES if present[c]]


@dataclass
class InstallResult:
    """What one install or relink changed."""

    package: Package
    changed: int = 0  # Entries synchronized into the cache
    linked: int = 0  # Namespace symlinks created or refreshed
    new_dependencies: list[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"{self.package.name}: {self.changed} changed, "
            f"{self.linked} linked"
        )
