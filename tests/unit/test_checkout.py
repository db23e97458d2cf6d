"""Unit tests for checkout-based tree introspection."""

import asyncio
import os
from pathlib import Path

import pytest

from barehub.config.schema import IntrospectionConfig
from barehub.core.errors import (
    FileNotFoundInRepositoryError,
    InvalidPathError,
    RepositoryNotFoundError,
    SubprocessError,
)
from barehub.core.paths import PathSanitizer
from barehub.entities import count_files, total_size
from barehub.introspection.checkout import CheckoutIntrospector
from barehub.introspection.object_graph import ObjectGraphIntrospector


@pytest.fixture
def worktree_root(tmp_path):
    return tmp_path / "worktrees"


def _introspector(base_directory, worktree_root, executor, **config):
    return CheckoutIntrospector(
        PathSanitizer(base_directory),
        worktree_root=worktree_root,
        executor=executor,
        config=IntrospectionConfig(**config),
    )


def _clone_count(executor) -> int:
    return sum(1 for argv, _ in executor.calls if argv[1] == "clone")


@pytest.mark.asyncio
class TestCheckoutRead:
    """Test CheckoutIntrospector.read and its worktree cache."""

    async def test_matches_object_graph(self, base_directory, worktree_root, fake_git, commit):
        commit(
            base_directory / "demo.git",
            {
                "a.txt": b"0123456789",
                "src": {"main.py": b"print('hi')\n", "data.bin": b"\x00\x01"},
                "node_modules": {"x.js": b"x"},
                ".hidden": b"secret",
            },
        )
        checkout = _introspector(base_directory, worktree_root, fake_git)
        object_graph = ObjectGraphIntrospector(PathSanitizer(base_directory))

        from_checkout = await checkout.read("demo")
        from_objects = await object_graph.read("demo")

        assert from_checkout == from_objects
        assert count_files(from_checkout) == 3
        assert total_size(from_checkout) == 10 + 12 + 2

    async def test_symlinks_match_object_graph(self, base_directory, worktree_root, fake_git, commit):
        commit(base_directory / "demo.git", {"README.md": b"# Demo\n", "docs": (0o120000, b"README.md")})
        checkout = _introspector(base_directory, worktree_root, fake_git)
        object_graph = ObjectGraphIntrospector(PathSanitizer(base_directory))

        from_checkout = await checkout.read("demo")
        from_objects = await object_graph.read("demo")

        assert from_checkout == from_objects
        assert from_objects.children[1].content is None

    async def test_clone_is_cached(self, base_directory, worktree_root, fake_git, commit):
        commit(base_directory / "demo.git", {"a.txt": b"a"})
        checkout = _introspector(base_directory, worktree_root, fake_git)

        await checkout.read("demo")
        await checkout.read("demo")

        assert _clone_count(fake_git) == 1
        assert checkout.cached == ["demo"]
        assert (worktree_root / "demo" / "a.txt").exists()

    async def test_clone_argv(self, base_directory, worktree_root, fake_git, commit):
        commit(base_directory / "demo.git", {"a.txt": b"a"})
        checkout = _introspector(base_directory, worktree_root, fake_git)

        await checkout.read("demo")

        argv, _ = fake_git.calls[0]
        assert argv == ["git", "clone", "--quiet", str(base_directory / "demo.git"), str(worktree_root / "demo")]

    async def test_head_change_forces_reclone(self, base_directory, worktree_root, fake_git, commit):
        repo_path = base_directory / "demo.git"
        commit(repo_path, {"old.txt": b"old"})
        checkout = _introspector(base_directory, worktree_root, fake_git)
        await checkout.read("demo")

        commit(repo_path, {"new.txt": b"new!"})
        tree = await checkout.read("demo")

        assert [child.name for child in tree.children] == ["new.txt"]
        assert _clone_count(fake_git) == 2
        assert not (worktree_root / "demo" / "old.txt").exists()

    async def test_unknown_worktree_is_replaced(self, base_directory, worktree_root, fake_git, commit):
        commit(base_directory / "demo.git", {"a.txt": b"a"})
        leftover = worktree_root / "demo"
        leftover.mkdir(parents=True)
        (leftover / "stale.txt").write_text("from an earlier process")
        checkout = _introspector(base_directory, worktree_root, fake_git)

        tree = await checkout.read("demo")

        assert [child.name for child in tree.children] == ["a.txt"]
        assert not (leftover / "stale.txt").exists()

    async def test_lru_eviction(self, base_directory, worktree_root, fake_git, commit):
        for name in ("one", "two", "three"):
            commit(base_directory / f"{name}.git", {f"{name}.txt": b"x"})
        checkout = _introspector(base_directory, worktree_root, fake_git, max_cached_worktrees=2)

        await checkout.read("one")
        await checkout.read("two")
        await checkout.read("one")
        await checkout.read("three")

        assert checkout.cached == ["one", "three"]
        assert not (worktree_root / "two").exists()
        assert (worktree_root / "one").is_dir()

    async def test_invalidate(self, base_directory, worktree_root, fake_git, commit):
        commit(base_directory / "demo.git", {"a.txt": b"a"})
        checkout = _introspector(base_directory, worktree_root, fake_git)
        await checkout.read("demo")

        await checkout.invalidate("demo")

        assert checkout.cached == []
        assert not (worktree_root / "demo").exists()

        await checkout.read("demo")
        assert _clone_count(fake_git) == 2

    async def test_invalidate_unknown_name(self, base_directory, worktree_root, fake_git):
        checkout = _introspector(base_directory, worktree_root, fake_git)

        await checkout.invalidate("never-read")

        assert checkout.cached == []

    async def test_failed_clone_leaves_no_worktree(self, base_directory, worktree_root, failing_git, commit):
        commit(base_directory / "demo.git", {"a.txt": b"a"})
        executor = failing_git("clone")
        checkout = _introspector(base_directory, worktree_root, executor)

        with pytest.raises(SubprocessError):
            await checkout.read("demo")

        assert checkout.cached == []
        assert not (worktree_root / "demo").exists()

    async def test_missing_repository(self, base_directory, worktree_root, fake_git):
        checkout = _introspector(base_directory, worktree_root, fake_git)

        with pytest.raises(RepositoryNotFoundError):
            await checkout.read("absent")

        assert fake_git.calls == []

    async def test_unreadable_subtree_is_omitted(self, base_directory, worktree_root, fake_git, commit, monkeypatch):
        commit(base_directory / "demo.git", {"open": {"a.txt": b"aaa"}, "secret": {"b.txt": b"bbbb"}})
        checkout = _introspector(base_directory, worktree_root, fake_git)
        await checkout.read("demo")

        real_scandir = os.scandir

        def flaky_scandir(path):
            if Path(path).name == "secret":
                raise PermissionError(13, "Permission denied", str(path))
            return real_scandir(path)

        monkeypatch.setattr(os, "scandir", flaky_scandir)
        tree = await checkout.read("demo")

        assert [child.name for child in tree.children] == ["open"]
        assert total_size(tree) == 3

    async def test_concurrent_reads_clone_once(self, base_directory, worktree_root, fake_git, commit):
        commit(base_directory / "demo.git", {"a.txt": b"a"})
        checkout = _introspector(base_directory, worktree_root, fake_git)

        trees = await asyncio.gather(checkout.read("demo"), checkout.read("demo"), checkout.read("demo"))

        assert trees[0] == trees[1] == trees[2]
        assert _clone_count(fake_git) == 1


@pytest.mark.asyncio
class TestCheckoutReadFile:
    """Test CheckoutIntrospector.read_file."""

    async def test_reads_file(self, base_directory, worktree_root, fake_git, commit):
        commit(base_directory / "demo.git", {"docs": {"guide.md": b"# Guide\n"}})
        checkout = _introspector(base_directory, worktree_root, fake_git)

        file = await checkout.read_file("demo", "docs/guide.md")

        assert file.path == "docs/guide.md"
        assert file.size == 8
        assert file.content == "# Guide\n"
        assert not file.is_binary

    async def test_missing_file(self, base_directory, worktree_root, fake_git, commit):
        commit(base_directory / "demo.git", {"a.txt": b"a"})
        checkout = _introspector(base_directory, worktree_root, fake_git)

        with pytest.raises(FileNotFoundInRepositoryError):
            await checkout.read_file("demo", "b.txt")

    async def test_rejects_traversal(self, base_directory, worktree_root, fake_git, commit):
        commit(base_directory / "demo.git", {"a.txt": b"a"})
        checkout = _introspector(base_directory, worktree_root, fake_git)

        with pytest.raises(InvalidPathError):
            await checkout.read_file("demo", "../demo.git/config")

    async def test_rejects_symlink_escape(self, tmp_path, base_directory, worktree_root, fake_git, commit):
        commit(base_directory / "demo.git", {"a.txt": b"a"})
        outside = tmp_path / "outside.txt"
        outside.write_text("host file")
        checkout = _introspector(base_directory, worktree_root, fake_git)
        await checkout.read("demo")

        (worktree_root / "demo" / "link.txt").symlink_to(outside)

        with pytest.raises(InvalidPathError):
            await checkout.read_file("demo", "link.txt")

    async def test_rejects_directory(self, base_directory, worktree_root, fake_git, commit):
        commit(base_directory / "demo.git", {"src": {"a.py": b"a"}})
        checkout = _introspector(base_directory, worktree_root, fake_git)

        with pytest.raises(InvalidPathError):
            await checkout.read_file("demo", "src")
