"""Shared fixtures: fake command executors and dulwich repository builders."""

import os
import stat
from collections.abc import Sequence
from pathlib import Path
from typing import Optional

import pytest
from dulwich.objects import Blob, Commit, Tree
from dulwich.repo import Repo

from barehub.core.executor import CommandExecutor, CommandResult


class FakeGit(CommandExecutor):
    """Simulates ``git init --bare``, ``git config``, ``git clone`` and ``chown``.

    ``fail`` holds the sub-commands that should exit non-zero
    ("init", "config", "clone", "chown").
    """

    def __init__(self, fail: Optional[set[str]] = None):
        self.fail = set(fail or ())
        self.calls: list[tuple[list[str], Optional[Path]]] = []

    async def run(self, argv: Sequence[str], cwd: Optional[Path] = None) -> CommandResult:
        argv = [str(arg) for arg in argv]
        self.calls.append((argv, cwd))
        command = "chown" if Path(argv[0]).name == "chown" else argv[1]

        if command in self.fail:
            if command == "init":
                # git leaves a half-written repository behind when it dies
                (Path(argv[-1]) / "objects").mkdir(parents=True, exist_ok=True)
            return CommandResult(128, "", f"fatal: simulated {command} failure")

        if command == "init":
            repo_path = Path(argv[-1])
            for directory in ("objects/info", "objects/pack", "refs/heads", "refs/tags"):
                (repo_path / directory).mkdir(parents=True, exist_ok=True)
            (repo_path / "HEAD").write_text("ref: refs/heads/main\n")
            (repo_path / "config").write_text("[core]\n\trepositoryformatversion = 0\n\tbare = true\n")
        elif command == "clone":
            materialize(Path(argv[-2]), Path(argv[-1]))

        return CommandResult(0, "", "")

    def commands(self) -> list[str]:
        return [" ".join(argv) for argv, _ in self.calls]


def _build_tree(repo: Repo, entries: dict) -> Tree:
    tree = Tree()
    for name, value in entries.items():
        if isinstance(value, dict):
            subtree = _build_tree(repo, value)
            tree.add(name.encode("utf-8"), 0o040000, subtree.id)
        else:
            mode, data = value if isinstance(value, tuple) else (0o100644, value)
            blob = Blob.from_string(data)
            repo.object_store.add_object(blob)
            tree.add(name.encode("utf-8"), mode, blob.id)
    repo.object_store.add_object(tree)
    return tree


def commit_files(repo_path: Path, files: dict, message: bytes = b"update") -> bytes:
    """Commit a nested ``{name: bytes | dict}`` layout to HEAD of a bare repository.

    A ``(mode, bytes)`` tuple commits the blob with an explicit mode, such as
    ``0o120000`` for a symlink.

    The repository is initialized when ``repo_path`` does not exist.
    """
    if repo_path.exists():
        repo = Repo(str(repo_path))
    else:
        repo = Repo.init_bare(str(repo_path), mkdir=True)

    with repo:
        tree = _build_tree(repo, files)

        commit = Commit()
        commit.tree = tree.id
        try:
            commit.parents = [repo.head()]
        except KeyError:
            commit.parents = []
        commit.author = commit.committer = b"Test User <test@example.com>"
        commit.author_time = commit.commit_time = 1700000000
        commit.author_timezone = commit.commit_timezone = 0
        commit.encoding = b"UTF-8"
        commit.message = message
        repo.object_store.add_object(commit)

        repo.refs[b"HEAD"] = commit.id
        return commit.id


def _write_tree(repo: Repo, tree: Tree, target: Path) -> None:
    target.mkdir(parents=True, exist_ok=True)
    for entry in tree.items():
        obj = repo[entry.sha]
        path = target / entry.path.decode("utf-8")
        if isinstance(obj, Tree):
            _write_tree(repo, obj, path)
        elif stat.S_ISLNK(entry.mode):
            os.symlink(obj.as_raw_string().decode("utf-8"), path)
        else:
            path.write_bytes(obj.as_raw_string())


def materialize(repo_path: Path, target: Path) -> None:
    """Write HEAD's files to ``target`` the way a clone would."""
    with Repo(str(repo_path)) as repo:
        tree = repo[repo[repo.head()].tree]
        _write_tree(repo, tree, target)
    (target / ".git").mkdir(exist_ok=True)
    (target / ".git" / "HEAD").write_text("ref: refs/heads/main\n")


@pytest.fixture
def fake_git():
    """FakeGit executor with no failures."""
    return FakeGit()


@pytest.fixture
def base_directory(tmp_path):
    """Base directory for bare repositories."""
    path = tmp_path / "repositories"
    path.mkdir()
    return path


@pytest.fixture
def failing_git():
    """Factory for FakeGit executors that fail the given sub-commands."""

    def _make(*commands: str) -> FakeGit:
        return FakeGit(fail=set(commands))

    return _make


@pytest.fixture
def commit():
    """Commit a nested file layout to a bare repository (see ``commit_files``)."""
    return commit_files
