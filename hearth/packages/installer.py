"""Package installation.

A package bundle is a directory holding a ``NAME`` descriptor (the package
name and nothing else), optional ``mod/`` and ``cmd/`` trees, and an
optional ``dep`` file of system package names.

Installing mirrors each tree into ``<home>/pkg/<name>/<category>`` and
links every file of that cache into the flat ``<home>/<category>``
directory as ``<name>-<file>``. The cache is the only copy of the content;
the flat directories hold symlinks into it.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

from hearth.errors import TypeConflictError, ValidationError
from hearth.fs.resolver import resolve
from hearth.fs.sync import sync
from hearth.fs.walker import EntryKind, iter_entries, kind_at
from hearth.packages.models import InstallResult, Package
from hearth.session import Session
from hearth.utils.console import info

DESCRIPTOR_FILE = "NAME"
DEPENDENCY_FILE = "dep"

# word((-word)|(-version))*  with  word = [a-z]+, version = [0-9]+(.[0-9]+)*
PACKAGE_NAME_PATTERN = re.compile(r"[a-z]+(?:-(?:[a-z]+|[0-9]+(?:\.[0-9]+)*))*")


def validate_package_name(name: str) -> str:
    """Return ``name`` if it is a valid package name, else raise."""
    if not PACKAGE_NAME_PATTERN.fullmatch(name):
        raise ValidationError(f"invalid package name: {name!r}")
    return name


def read_package(package_dir: str | Path) -> Package:
    """Read and validate a package bundle.

    Raises:
        ValidationError: If the descriptor is missing, spans several lines,
            or holds a malformed name.
    """
    source = Path(package_dir)
    descriptor = source / DESCRIPTOR_FILE
    if not descriptor.is_file():
        raise ValidationError(f"{source}: missing package descriptor {DESCRIPTOR_FILE}")

    lines = [line for line in descriptor.read_text().splitlines() if line.strip()]
    if len(lines) != 1:
        raise ValidationError(f"{descriptor}: expected exactly one line with the package name")
    name = validate_package_name(lines[0].strip())

    return Package(
        name=name,
        source_dir=source,
        has_mod=(source / "mod").is_dir(),
        has_cmd=(source / "cmd").is_dir(),
        dependencies=read_name_list(source / DEPENDENCY_FILE),
    )


def read_name_list(path: Path) -> list[str]:
    """Read a newline-delimited list of names, skipping blanks and comments."""
    if not path.exists():
        return []
    names = []
    for line in path.read_text().splitlines():
        line = line.split("#", 1)[0].strip()
        if line and line not in names:
            names.append(line)
    return names


class PackageInstaller:
    """Installs package bundles into a session's home directory."""

    def __init__(self, session: Session):
        self.session = session
        self.config = session.config

    def install(self, package_dir: str | Path) -> InstallResult:
        package = read_package(package_dir)
        result = InstallResult(package=package)

        for category in package.categories:
            cache = self.config.pkg_dir / package.name / category
            result.changed += sync(package.source_dir / category, cache)
            result.linked += self._expose(package.name, category)

        result.new_dependencies = self._record_dependencies(package.dependencies)
        info(f"installed {result.summary()}")
        return result

    def relink(self) -> list[InstallResult]:
        """Refresh the namespace symlinks of every cached package."""
        if not self.config.pkg_dir.is_dir():
            return []

        results = []
        with os.scandir(self.config.pkg_dir) as it:
            names = [e.name for e in it if e.is_dir(follow_symlinks=False)]

        for name in names:
            validate_package_name(name)
            cache_dir = self.config.pkg_dir / name
            package = Package(
                name=name,
                source_dir=cache_dir,
                has_mod=(cache_dir / "mod").is_dir(),
                has_cmd=(cache_dir / "cmd").is_dir(),
            )
            result = InstallResult(package=package)
            for category in package.categories:
                result.linked += self._expose(name, category)
            results.append(result)
        return results

    def _expose(self, name: str, category: str) -> int:
        """Link each cached file of one category into the flat directory.

        Raises:
            ValidationError: If two cached files share a file name, since
                both would be exposed under the same link.
        """
        cache_root = resolve(self.config.pkg_dir / name / category)
        flat_dir = self.config.home / category

        targets: dict[str, str] = {}
        for entry in iter_entries(cache_root):
            if entry.kind is EntryKind.DIRECTORY:
                continue
            target = os.path.join(cache_root, entry.relative_path)
            link_name = f"{name}-{entry.name}"
            if link_name in targets:
                raise ValidationError(
                    f"{targets[link_name]} and {target} would both be exposed as "
                    f"{category}/{link_name}"
                )
            targets[link_name] = target

        flat_dir.mkdir(parents=True, exist_ok=True)
        linked = 0
        for link_name, target in targets.items():
            if self._link(flat_dir / link_name, target):
                linked += 1
        return linked

    @staticmethod
    def _link(link: Path, target: str) -> bool:
        found = kind_at(link)
        if found is EntryKind.SYMLINK:
            if os.readlink(link) == target:
                return False
            link.unlink()
        elif found is not None:
            raise TypeConflictError(str(link), "symlink", found.value)

        link.symlink_to(target)
        return True

    def _record_dependencies(self, names: list[str]) -> list[str]:
        """Append names missing from ``<home>/dep`` and return them."""
        known = read_name_list(self.config.dep_file)
        added = [n for n in names if n not in known]
        if added:
            self.config.dep_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config.dep_file, "a") as f:
                for name in added:
                    f.write(name + "\n")
        return added
