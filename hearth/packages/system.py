"""Host package managers.

One ``PackageManager`` strategy per supported manager. The strategy is
picked once, by probing ``PATH`` for each manager's executable in turn, and
reused for the rest of the process.
"""

from __future__ import annotations

import functools
import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Sequence

from hearth.errors import ExecutionError, ValidationError
from hearth.utils.console import info


class PackageManager(ABC):
    """Uniform ``is_installed`` / ``install`` contract over a host manager."""

    name = ""
    executable = ""
    needs_root = True

    @abstractmethod
    def query_command(self, package: str) -> list[str]:
        """Command whose zero exit status means ``package`` is installed."""

    @abstractmethod
    def install_command(self, packages: Sequence[str]) -> list[str]:
        """Command that installs ``packages``, without privilege escalation."""

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def is_installed(self, package: str) -> bool:
        try:
            proc = subprocess.run(
                self.query_command(package),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise ExecutionError(self.query_command(package)[0], detail=str(e)) from e
        return proc.returncode == 0

    def install(self, packages: Sequence[str]) -> None:
        command = self._privileged(self.install_command(packages))
        info(f"{self.name}: installing {' '.join(packages)}")
        try:
            proc = subprocess.run(command)
        except OSError as e:
            raise ExecutionError(" ".join(command), detail=str(e)) from e
        if proc.returncode != 0:
            raise ExecutionError(" ".join(command), proc.returncode)

    def _privileged(self, command: list[str]) -> list[str]:
        if self.needs_root and os.geteuid() != 0:
            return ["sudo"] + command
        return command


class Apt(PackageManager):
    name = "apt"
    executable = "apt-get"

    def query_command(self, package: str) -> list[str]:
        return ["dpkg", "-s", package]

    def install_command(self, packages: Sequence[str]) -> list[str]:
        return ["apt-get", "install", "-y", *packages]


class Dnf(PackageManager):
    name = "dnf"
    executable = "dnf"

    def query_command(self, package: str) -> list[str]:
        return ["rpm", "-q", package]

    def install_command(self, packages: Sequence[str]) -> list[str]:
        return ["dnf", "install", "-y", *packages]


class Pacman(PackageManager):
    name = "pacman"
    executable = "pacman"

    def query_command(self, package: str) -> list[str]:
        return ["pacman", "-Qi", package]

    def install_command(self, packages: Sequence[str]) -> list[str]:
        return ["pacman", "-S", "--noconfirm", "--needed", *packages]


class Zypper(PackageManager):
    name = "zypper"
    executable = "zypper"

    def query_command(self, package: str) -> list[str]:
        return ["rpm", "-q", package]

    def install_command(self, packages: Sequence[str]) -> list[str]:
        return ["zypper", "--non-interactive", "install", *packages]


class Brew(PackageManager):
    name = "brew"
    executable = "brew"
    needs_root = False

    def query_command(self, package: str) -> list[str]:
        return ["brew", "list", "--versions", package]

    def install_command(self, packages: Sequence[str]) -> list[str]:
        return ["brew", "install", *packages]


MANAGERS: tuple[type[PackageManager], ...] = (Apt, Dnf, Pacman, Zypper, Brew)


@functools.lru_cache(maxsize=None)
def detect_package_manager(preferred: str | None = None) -> PackageManager:
    """Return the package manager strategy for this host.

    Args:
        preferred: Name of a manager to use without probing (``apt``,
            ``dnf``, ``pacman``, ``zypper`` or ``brew``).

    Raises:
        ValidationError: If ``preferred`` names no known manager.
        ExecutionError: If probing finds no supported manager.
    """
    if preferred:
        for cls in MANAGERS:
            if cls.name == preferred:
                return cls()
        raise ValidationError(f"unknown package manager: {preferred}")

    for cls in MANAGERS:
        manager = cls()
        if manager.is_available():
            return manager
    raise ExecutionError("package manager probe", detail="no supported package manager found")


def ensure_installed(packages: Sequence[str], preferred: str | None = None) -> list[str]:
    """Install whichever of ``packages`` are missing and return their names."""
    if not packages:
        return []
    manager = detect_package_manager(preferred)
    missing = [p for p in packages if not manager.is_installed(p)]
    if missing:
        manager.install(missing)
    return missing
