"""Configuration — locate the home directory and read ``config.yaml``.

The home directory is taken from, in order: an explicit argument, the
``HEARTH_HOME`` environment variable, or ``~/.hearth``. Optional settings
live in ``<home>/config.yaml``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

from hearth.errors import ValidationError

HOME_ENV_VAR = "HEARTH_HOME"
CONFIG_FILE = "config.yaml"
SHELL_KINDS = ("sh", "bash", "zsh", "fish")


@dataclass
class HearthConfig:
    """Resolved settings for one hearth invocation."""

    home: Path
    package_manager: str | None = None  # Force a strategy instead of probing
    remote_home: str = "~/.hearth"  # Default home on deploy targets
    shell: str = "bash"  # Default ``initsh`` kind

    @property
    def pkg_dir(self) -> Path:
        return self.home / "pkg"

    @property
    def mod_dir(self) -> Path:
        return self.home / "mod"

    @property
    def cmd_dir(self) -> Path:
        return self.home / "cmd"

    @property
    def bin_dir(self) -> Path:
        return self.home / "bin"

    @property
    def env_file(self) -> Path:
        return self.home / "env"

    @property
    def dep_file(self) -> Path:
        return self.home / "dep"

    def ensure_layout(self) -> None:
        """Create the home directory tree if any part is missing."""
        for directory in (self.pkg_dir, self.mod_dir, self.cmd_dir, self.bin_dir):
            directory.mkdir(parents=True, exist_ok=True)
        self.env_file.touch(exist_ok=True)
        self.dep_file.touch(exist_ok=True)


def default_home() -> Path:
    value = os.environ.get(HOME_ENV_VAR)
    if value:
        return Path(value).expanduser()
    return Path.home() / ".hearth"


def load_config(home: str | Path | None = None) -> HearthConfig:
    """Build a ``HearthConfig``, overlaying ``config.yaml`` when present.

    Raises:
        ValidationError: If the config file is not a mapping, names an
            unknown key, or holds an invalid value.
    """
    home_path = Path(home).expanduser() if home else default_home()
    config = HearthConfig(home=home_path.absolute())

    config_path = config.home / CONFIG_FILE
    if not config_path.exists():
        return config

    with open(config_path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValidationError(f"{config_path}: invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ValidationError(f"{config_path}: expected a mapping at top level")

    known = {f.name for f in fields(HearthConfig)} - {"home"}
    for key, value in data.items():
        if key not in known:
            raise ValidationError(f"{config_path}: unknown setting '{key}'")
        if not isinstance(value, str):
            raise ValidationError(f"{config_path}: '{key}' must be a string")
        setattr(config, key, value)

    if config.shell not in SHELL_KINDS:
        raise ValidationError(
            f"{config_path}: shell must be one of {', '.join(SHELL_KINDS)}"
        )
    return config
