"""hearth CLI — the main entry point."""

from __future__ import annotations

import os
import shutil
import signal
import subprocess

import click
from rich.table import Table

from hearth import __version__
from hearth.config import SHELL_KINDS, HearthConfig, load_config
from hearth.errors import ExecutionError, HearthError, TypeConflictError
from hearth.fs.resolver import resolve
from hearth.fs.walker import EntryKind, kind_at
from hearth.session import Session
from hearth.utils.console import console, error, info, set_quiet, warn


class FailFastGroup(click.Group):
    """Report the first hearth failure on stderr and exit non-zero.

    Session cleanup runs as the click context unwinds.
    """

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except (HearthError, OSError) as e:
            operation = ctx.invoked_subcommand or "install"
            error(f"{operation}: {e}")
            ctx.exit(1)


def _exit_on_signal(signum, frame):
    raise SystemExit(128 + signum)


def _session() -> Session:
    ctx = click.get_current_context()
    return ctx.with_resource(Session(ctx.find_object(HearthConfig)))


@click.group(cls=FailFastGroup, invoke_without_command=True)
@click.version_option(version=__version__)
@click.option(
    "--home",
    type=click.Path(file_okay=False),
    default=None,
    help="Home directory (default: $HEARTH_HOME or ~/.hearth)",
)
@click.option("--quiet", "-q", is_flag=True, help="Only print warnings and errors")
@click.pass_context
def main(ctx: click.Context, home: str | None, quiet: bool):
    """hearth — bootstrap and maintain your environment.

    Installs packages of modules and commands under a home directory and
    loads modules into the session. Without a command, runs 'install'.
    """
    set_quiet(quiet)
    for signum in (signal.SIGTERM, signal.SIGHUP):
        signal.signal(signum, _exit_on_signal)

    ctx.obj = load_config(home)
    if ctx.invoked_subcommand is None:
        ctx.invoke(install)


# ── Install ──────────────────────────────────────────────────────────


@main.command()
@click.argument("package_dirs", nargs=-1, type=click.Path(exists=True, file_okay=False))
@click.option("--skip-deps", is_flag=True, help="Do not install system dependencies")
@click.option("--load/--no-load", default=True, help="Load modules after installing")
@click.pass_obj
def install(config: HearthConfig, package_dirs: tuple[str, ...], skip_deps: bool, load: bool):
    """Install packages, or refresh every installed package.

    Each PACKAGE_DIR holds a NAME file and optional mod/, cmd/ and dep.
    """
    from hearth.modules.loader import ModuleLoader
    from hearth.packages.installer import PackageInstaller, read_name_list
    from hearth.packages.system import ensure_installed

    config.ensure_layout()
    session = _session()
    _link_self(config)

    installer = PackageInstaller(session)
    if package_dirs:
        for package_dir in package_dirs:
            installer.install(package_dir)
    else:
        results = installer.relink()
        info(f"refreshed {len(results)} installed package(s)")

    if not skip_deps:
        missing = ensure_installed(read_name_list(config.dep_file), config.package_manager)
        if missing:
            info(f"installed system packages: {' '.join(missing)}")

    if load:
        ModuleLoader(session).load_all()


def _link_self(config: HearthConfig) -> None:
    """Expose the running ``hearth`` executable in ``<home>/bin``."""
    found = shutil.which("hearth")
    if found is None:
        warn("hearth executable not found on PATH; not linking it into bin/")
        return

    target = resolve(found)
    link = config.bin_dir / "hearth"
    if target == str(link):
        return

    current = kind_at(link)
    if current is EntryKind.SYMLINK:
        if os.readlink(link) == target:
            return
        link.unlink()
    elif current is not None:
        raise TypeConflictError(str(link), "symlink", current.value)
    link.symlink_to(target)


# ── Modules ──────────────────────────────────────────────────────────


@main.command()
@click.argument("names", nargs=-1, required=True)
@click.option("--force", "-f", is_flag=True, help="Reload even if already loaded")
def load(names: tuple[str, ...], force: bool):
    """Load modules by name or path, in the given order."""
    from hearth.modules.loader import ModuleLoader

    loader = ModuleLoader(_session())
    for name in names:
        outcome = loader.load_one(name, force=force)
        status = "loaded" if outcome.executed else "up to date"
        console.print(f"  [cyan]{outcome.module.name}[/] {status}")


@main.command(name="list")
@click.pass_obj
def list_installed(config: HearthConfig):
    """List exposed modules and commands."""
    from hearth.modules.loader import SENTINEL_PREFIX

    table = Table(title=f"hearth ({config.home})")
    table.add_column("Kind", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Target")

    for kind, directory in (("mod", config.mod_dir), ("cmd", config.cmd_dir)):
        if not directory.is_dir():
            continue
        with os.scandir(directory) as it:
            for entry in it:
                if entry.name.startswith(SENTINEL_PREFIX):
                    continue
                target = os.readlink(entry.path) if entry.is_symlink() else entry.path
                table.add_row(kind, entry.name, target)

    console.print(table)


# ── Commands ─────────────────────────────────────────────────────────


@main.command(
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False}
)
@click.argument("name")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def run(ctx: click.Context, name: str, args: tuple[str, ...]):
    """Run an installed command with the session environment."""
    config = ctx.find_object(HearthConfig)
    _session()
    command = resolve(config.cmd_dir / name)
    argv = [command] if os.access(command, os.X_OK) else ["/bin/sh", command]
    try:
        proc = subprocess.run(argv + list(args))
    except OSError as e:
        raise ExecutionError(name, detail=str(e)) from e
    ctx.exit(proc.returncode)


@main.command()
@click.argument("name")
@click.argument("value")
def setenv(name: str, value: str):
    """Add NAME=VALUE to the environment file (no-op if already present)."""
    if _session().env.define(name, value):
        info(f"defined {name}")


@main.command()
@click.argument("shell", required=False, type=click.Choice(SHELL_KINDS))
@click.pass_obj
def initsh(config: HearthConfig, shell: str | None):
    """Print the init snippet for a shell rc file.

    Add `eval "$(hearth initsh bash)"` to ~/.bashrc.
    """
    from hearth.shell import init_script

    click.echo(init_script(config, shell or config.shell), nl=False)


# ── Remote ───────────────────────────────────────────────────────────


@main.command()
@click.argument("host")
@click.option("--remote-home", default=None, help="Home directory on HOST")
@click.option("--ssh-port", "-p", type=int, default=None, help="SSH port on HOST")
@click.option("--remote-command", default="hearth", help="hearth executable on HOST")
@click.pass_obj
def deploy(config: HearthConfig, host: str, remote_home: str | None, ssh_port: int | None,
           remote_command: str):
    """Copy installed packages to HOST and install them there."""
    from hearth.deploy import deploy as run_deploy

    run_deploy(
        config,
        host,
        remote_home=remote_home,
        ssh_port=ssh_port,
        remote_command=remote_command,
    )
    console.print(f"[green]Deployed to[/] {host}")


@main.command()
@click.pass_context
def update(ctx: click.Context):
    """Pull the latest hearth and reinstall."""
    from hearth.utils.git_ops import find_checkout, pull

    result = pull(find_checkout())
    if result.changed:
        info(f"updated {result.checkout} to {result.after[:12]}")
    else:
        info(f"{result.checkout} is up to date")
    ctx.invoke(install)


if __name__ == "__main__":
    main()
