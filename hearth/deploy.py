"""Deploy — copy a home's packages to another host and install them there.

Only the package caches and the settings travel: ``pkg/``, ``env``,
``dep`` and ``config.yaml``. The remote ``hearth install`` rebuilds the
flat symlink directories, and modules load fresh since markers are not
copied.
"""

from __future__ import annotations

import shlex
import subprocess

from hearth.config import CONFIG_FILE, HearthConfig
from hearth.errors import ExecutionError
from hearth.utils.console import info

SYNCED_ENTRIES = ("pkg", "env", "dep", CONFIG_FILE)


def remote_path(path: str) -> str:
    """Quote ``path`` for a remote shell, leaving a leading ``~/`` expandable."""
    if path == "~":
        return path
    if path.startswith("~/"):
        return "~/" + shlex.quote(path[2:])
    return shlex.quote(path)


def build_commands(
    config: HearthConfig,
    host: str,
    remote_home: str | None = None,
    ssh_port: int | None = None,
    remote_command: str = "hearth",
) -> list[list[str]]:
    """Return the commands ``deploy`` runs, in order."""
    remote_home = remote_home or config.remote_home
    ssh = ["ssh"] + (["-p", str(ssh_port)] if ssh_port else [])
    home = remote_path(remote_home.rstrip("/") or "/")

    sources = [
        f"{config.home}/./{name}"
        for name in SYNCED_ENTRIES
        if (config.home / name).exists()
    ]

    return [
        ssh + [host, f"mkdir -p {home}"],
        ["rsync", "-a", "--relative", "-e", " ".join(ssh), *sources, f"{host}:{home}/"],
        ssh + [host, f"HEARTH_HOME={home} {remote_command} install"],
    ]


def deploy(config: HearthConfig, host: str, **options) -> None:
    """Run every deploy step, stopping at the first failure."""
    for command in build_commands(config, host, **options):
        info(" ".join(command))
        try:
            proc = subprocess.run(command)
        except OSError as e:
            raise ExecutionError(command[0], detail=str(e)) from e
        if proc.returncode != 0:
            raise ExecutionError(" ".join(command), proc.returncode)
