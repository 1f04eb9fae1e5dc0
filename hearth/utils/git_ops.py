"""Git operations — locate and update the checkout hearth runs from."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from hearth.errors import ExecutionError


@dataclass
class UpdateResult:
    """Outcome of pulling a checkout."""

    checkout: Path
    before: str
    after: str

    @property
    def changed(self) -> bool:
        return self.before != self.after


def find_checkout(start: str | Path | None = None) -> Path:
    """Return the working tree containing ``start`` (default: this package).

    Raises:
        ExecutionError: If ``start`` is not inside a Git working tree.
    """
    path = Path(start) if start else Path(__file__).resolve().parent
    try:
        repo = Repo(path, search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError):
        raise ExecutionError("update", detail=f"{path} is not inside a git checkout") from None
    if repo.working_tree_dir is None:
        raise ExecutionError("update", detail=f"{path} is a bare repository")
    return Path(repo.working_tree_dir)


def pull(checkout: str | Path) -> UpdateResult:
    """Fast-forward ``checkout`` from its first remote."""
    repo = Repo(checkout)
    if not repo.remotes:
        raise ExecutionError("git pull", detail=f"{checkout} has no remote")

    before = repo.head.commit.hexsha
    try:
        repo.remotes[0].pull(ff_only=True)
    except GitCommandError as e:
        raise ExecutionError("git pull", e.status, str(e.stderr).strip()) from e
    return UpdateResult(checkout=Path(checkout), before=before, after=repo.head.commit.hexsha)
