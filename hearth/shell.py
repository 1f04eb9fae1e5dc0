"""Shell init snippets printed by ``hearth initsh``."""

from __future__ import annotations

import shlex

from hearth.config import SHELL_KINDS, HearthConfig
from hearth.errors import ValidationError


def init_script(config: HearthConfig, kind: str) -> str:
    """Return the snippet a shell rc file evals to use hearth.

    It exports ``HEARTH_HOME``, puts ``<home>/bin`` first on ``PATH`` and
    sources the environment file.
    """
    if kind not in SHELL_KINDS:
        raise ValidationError(f"unsupported shell {kind!r}; expected one of {', '.join(SHELL_KINDS)}")

    home = shlex.quote(str(config.home))
    bin_dir = shlex.quote(str(config.bin_dir))
    env_file = shlex.quote(str(config.env_file))

    if kind == "fish":
        return "\n".join([
            f"set -gx HEARTH_HOME {home}",
            f"fish_add_path -g --move {bin_dir}",
            f"test -f {env_file}; and source {env_file}",
        ]) + "\n"

    return "\n".join([
        f"export HEARTH_HOME={home}",
        f'case ":$PATH:" in *:{bin_dir}:*) ;; *) export PATH={bin_dir}:"$PATH" ;; esac',
        f"[ -f {env_file} ] && . {env_file}",
    ]) + "\n"
