"""Tests for module loading and staleness markers."""

import os
import tempfile
from pathlib import Path

import pytest

from hearth.config import HearthConfig
from hearth.errors import ExecutionError, ResolutionError, ValidationError
from hearth.modules.loader import SENTINEL_PREFIX, ModuleLoader
from hearth.session import Session


def _config(tmpdir: str) -> HearthConfig:
    config = HearthConfig(home=Path(tmpdir) / "home")
    config.ensure_layout()
    return config


def _write_module(config: HearthConfig, name: str, body: str, executable: bool = False) -> Path:
    path = config.mod_dir / name
    path.write_text(body)
    if executable:
        os.chmod(path, 0o755)
    return path


RECORDING_MODULE = 'echo "$HEARTH_MODULE" >> "$HEARTH_HOME/runs"\n'


def _runs(config: HearthConfig) -> list[str]:
    path = config.home / "runs"
    return path.read_text().split() if path.exists() else []


def test_load_runs_module_and_writes_marker():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _config(tmpdir)
        _write_module(config, "greet", RECORDING_MODULE)

        with Session(config) as session:
            outcome = ModuleLoader(session).load_one("greet")

        assert outcome.executed
        assert _runs(config) == ["greet"]
        assert (config.mod_dir / f"{SENTINEL_PREFIX}greet").exists()
        assert outcome.module.last_load_mtime_ns is not None


def test_fresh_marker_skips_load():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _config(tmpdir)
        _write_module(config, "greet", RECORDING_MODULE)

        with Session(config) as session:
            loader = ModuleLoader(session)
            loader.load_one("greet")
            second = loader.load_one("greet")

        assert not second.executed
        assert _runs(config) == ["greet"]


def test_newer_script_reloads():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _config(tmpdir)
        script = _write_module(config, "greet", RECORDING_MODULE)

        with Session(config) as session:
            loader = ModuleLoader(session)
            loader.load_one("greet")
            marker = config.mod_dir / f"{SENTINEL_PREFIX}greet"
            later = marker.stat().st_mtime_ns + 10_000_000_000
            os.utime(script, ns=(later, later))
            assert loader.load_one("greet").executed

        assert _runs(config) == ["greet", "greet"]


def test_force_always_reloads():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _config(tmpdir)
        _write_module(config, "greet", RECORDING_MODULE)

        with Session(config) as session:
            loader = ModuleLoader(session)
            loader.load_one("greet")
            assert loader.load_one("greet", force=True).executed

        assert _runs(config) == ["greet", "greet"]


def test_module_runs_in_scratch_dir_and_caller_cwd_is_kept():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _config(tmpdir)
        _write_module(config, "where", 'pwd -P > "$HEARTH_HOME/cwd"\ncd /\n')
        before = os.getcwd()

        with Session(config) as session:
            ModuleLoader(session).load_one("where")
            assert session.scratch_dirs == []

        ran_in = (config.home / "cwd").read_text().strip()
        assert os.path.basename(ran_in).startswith("hearth_where_")
        assert not os.path.exists(ran_in)
        assert os.getcwd() == before


def test_module_environment_reaches_session_only_through_env_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _config(tmpdir)
        _write_module(
            config,
            "envy",
            'export HEARTH_LEAKED=1\n'
            'echo \'export HEARTH_PERSISTED="yes"\' >> "$HEARTH_ENV"\n',
        )

        with Session(config) as session:
            ModuleLoader(session).load_one("envy")
            assert os.environ.get("HEARTH_PERSISTED") == "yes"
            assert "HEARTH_LEAKED" not in os.environ


def test_executable_module_runs_directly():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _config(tmpdir)
        _write_module(config, "direct", "#!/bin/sh\n" + RECORDING_MODULE, executable=True)

        with Session(config) as session:
            ModuleLoader(session).load_one("direct")

        assert _runs(config) == ["direct"]


def test_load_by_path():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _config(tmpdir)
        elsewhere = Path(tmpdir) / "scripts"
        elsewhere.mkdir()
        (elsewhere / "local").write_text(RECORDING_MODULE)

        with Session(config) as session:
            outcome = ModuleLoader(session).load_one(str(elsewhere / "local"))

        assert outcome.module.name == "local"
        assert outcome.module.script_path == os.path.realpath(elsewhere / "local")
        assert (config.mod_dir / f"{SENTINEL_PREFIX}local").exists()


def test_failing_module_raises_and_leaves_no_marker():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _config(tmpdir)
        _write_module(config, "broken", "exit 3\n")

        with Session(config) as session:
            with pytest.raises(ExecutionError) as exc:
                ModuleLoader(session).load_one("broken")
            assert exc.value.returncode == 3

        assert not (config.mod_dir / f"{SENTINEL_PREFIX}broken").exists()


def test_batch_stops_at_first_failure():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _config(tmpdir)
        _write_module(config, "first", RECORDING_MODULE)
        _write_module(config, "second", RECORDING_MODULE + "exit 1\n")
        _write_module(config, "third", RECORDING_MODULE)

        with Session(config) as session:
            with pytest.raises(ExecutionError):
                ModuleLoader(session).load(["first", "second", "third"])

        assert _runs(config) == ["first", "second"]
        assert (config.mod_dir / f"{SENTINEL_PREFIX}first").exists()
        assert not (config.mod_dir / f"{SENTINEL_PREFIX}third").exists()


def test_batch_keeps_caller_order():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _config(tmpdir)
        for name in ("a", "b", "c"):
            _write_module(config, name, RECORDING_MODULE)

        with Session(config) as session:
            ModuleLoader(session).load(["c", "a", "b"])

        assert _runs(config) == ["c", "a", "b"]


def test_load_all_skips_markers():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _config(tmpdir)
        for name in ("a", "b"):
            _write_module(config, name, RECORDING_MODULE)

        with Session(config) as session:
            loader = ModuleLoader(session)
            assert all(o.executed for o in loader.load_all())
            assert not any(o.executed for o in loader.load_all())

        assert sorted(_runs(config)) == ["a", "b"]


def test_missing_module_fails():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _config(tmpdir)
        with Session(config) as session:
            with pytest.raises(ResolutionError):
                ModuleLoader(session).load_one("ghost")


def test_invalid_identifier_fails():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = _config(tmpdir)
        with Session(config) as session:
            with pytest.raises(ValidationError):
                ModuleLoader(session).load_one("..")
