"""Unit tests for the authorized_keys editor."""

import pytest

from barehub.service import AuthorizedKeysFile

ALICE = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIAlice alice@laptop"
BOB = "ssh-rsa AAAAB3NzaC1yc2EAAAADAQABAAABbob bob@desktop"


@pytest.mark.asyncio
class TestAuthorizedKeysFile:
    """Test key add, remove, and list."""

    async def test_add_creates_file_and_parent(self, tmp_path):
        path = tmp_path / "home" / "git" / ".ssh" / "authorized_keys"
        keys = AuthorizedKeysFile(path)

        await keys.add_key(ALICE)

        assert path.read_text() == ALICE + "\n"

    async def test_add_appends(self, tmp_path):
        keys = AuthorizedKeysFile(tmp_path / "authorized_keys")

        await keys.add_key(ALICE)
        await keys.add_key(f"  {BOB}\n")

        assert await keys.list_keys() == [ALICE, BOB]

    @pytest.mark.parametrize("key", ["", "   ", f"{ALICE}\ncommand=\"rm -rf /\" {BOB}", "ssh-rsa AAA\rx"])
    async def test_rejects_blank_and_multiline_keys(self, tmp_path, key):
        path = tmp_path / "authorized_keys"
        keys = AuthorizedKeysFile(path)

        with pytest.raises(ValueError):
            await keys.add_key(key)

        assert not path.exists()

    async def test_remove_drops_matching_lines(self, tmp_path):
        path = tmp_path / "authorized_keys"
        path.write_text(f"{ALICE}\n{BOB}\n{ALICE}\n")
        keys = AuthorizedKeysFile(path)

        removed = await keys.remove_key(ALICE)

        assert removed == 2
        assert path.read_text() == BOB + "\n"

    async def test_remove_by_key_body(self, tmp_path):
        """A line containing the key is removed even with options or comments around it."""
        path = tmp_path / "authorized_keys"
        path.write_text(f'no-pty,command="git-shell" {BOB}\n{ALICE}\n')
        keys = AuthorizedKeysFile(path)

        removed = await keys.remove_key("AAAAB3NzaC1yc2EAAAADAQABAAABbob")

        assert removed == 1
        assert await keys.list_keys() == [ALICE]

    async def test_remove_missing_key(self, tmp_path):
        path = tmp_path / "authorized_keys"
        path.write_text(ALICE + "\n")
        keys = AuthorizedKeysFile(path)

        assert await keys.remove_key(BOB) == 0
        assert path.read_text() == ALICE + "\n"

    async def test_missing_file(self, tmp_path):
        keys = AuthorizedKeysFile(tmp_path / "absent")

        assert await keys.list_keys() == []
        assert await keys.remove_key(ALICE) == 0

    async def test_list_skips_blank_lines(self, tmp_path):
        path = tmp_path / "authorized_keys"
        path.write_text(f"\n{ALICE}\n\n  \n{BOB}\n")

        assert await AuthorizedKeysFile(path).list_keys() == [ALICE, BOB]


@pytest.mark.asyncio
class TestReplaceKey:
    """Test swapping one key for another."""

    async def test_replace_swaps_key(self, tmp_path):
        path = tmp_path / "authorized_keys"
        path.write_text(f"{ALICE}\n{BOB}\n")
        keys = AuthorizedKeysFile(path)
        rotated = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIRotated alice@laptop"

        removed = await keys.replace_key(ALICE, rotated)

        assert removed == 1
        assert await keys.list_keys() == [BOB, rotated]

    async def test_replace_missing_old_key_still_adds(self, tmp_path):
        path = tmp_path / ".ssh" / "authorized_keys"
        keys = AuthorizedKeysFile(path)

        removed = await keys.replace_key(ALICE, BOB)

        assert removed == 0
        assert path.read_text() == BOB + "\n"

    async def test_replace_rejects_multiline_new_key(self, tmp_path):
        path = tmp_path / "authorized_keys"
        path.write_text(ALICE + "\n")
        keys = AuthorizedKeysFile(path)

        with pytest.raises(ValueError):
            await keys.replace_key(ALICE, f"{BOB}\n{BOB}")

        assert path.read_text() == ALICE + "\n"
