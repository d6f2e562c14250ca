"""Tests for identity discovery and ranking."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import asyncssh
import pytest

from ssh_remote.models import IdentityKey
from ssh_remote.services.identity import (
    IdentityResolver,
    compute_fingerprint,
    key_type_of,
    rank_identities,
    strip_pub_suffix,
)


def _key(name: str, fingerprint: str, agent: bool = False) -> IdentityKey:
    return IdentityKey(
        filename=name,
        public_key=None,
        fingerprint=fingerprint,
        key_type="ssh-ed25519",
        agent_backed=agent,
        is_ephemeral=agent,
        agent_key=MagicMock(name=f"agent-{name}") if agent else None,
    )


def _write_keypair(directory: Path, name: str) -> asyncssh.SSHKey:
    key = asyncssh.generate_private_key("ssh-ed25519", comment=name)
    key.write_private_key(str(directory / name))
    key.write_public_key(str(directory / f"{name}.pub"))
    return key


def _agent_pair(key: asyncssh.SSHKey, comment: str) -> MagicMock:
    pair = MagicMock()
    pair.public_data = key.public_data
    pair.get_comment.return_value = comment
    return pair


class TestRankIdentities:
    """Ordering of file and agent keys."""

    def test_agent_matched_file_keys_first(self) -> None:
        """File keys also held by the agent move to the front, in agent order."""
        a, b, c = _key("a", "fa"), _key("b", "fb"), _key("c", "fc")
        agent_c, agent_a = _key("c-agent", "fc", agent=True), _key("a-agent", "fa", agent=True)

        ranked = rank_identities([a, b, c], [agent_c, agent_a], identities_only=False)

        assert [k.filename for k in ranked] == ["c", "a", "b"]
        assert ranked[0].agent_backed and ranked[1].agent_backed
        assert ranked[0].agent_key is agent_c.agent_key
        assert not ranked[2].agent_backed

    def test_agent_only_keys_between(self) -> None:
        """Agent keys without a file come after matched keys."""
        a, b = _key("a", "fa"), _key("b", "fb")
        agent_a, agent_x = _key("a-agent", "fa", agent=True), _key("x", "fx", agent=True)

        ranked = rank_identities([a, b], [agent_x, agent_a], identities_only=False)

        assert [k.filename for k in ranked] == ["a", "x", "b"]

    def test_identities_only_excludes_agent_only(self) -> None:
        """IdentitiesOnly drops keys that exist only in the agent."""
        a = _key("a", "fa")
        agent_a, agent_x = _key("a-agent", "fa", agent=True), _key("x", "fx", agent=True)

        ranked = rank_identities([a], [agent_a, agent_x], identities_only=True)

        assert [k.filename for k in ranked] == ["a"]
        assert ranked[0].agent_backed

    def test_no_agent(self) -> None:
        """Without an agent the configured order is kept."""
        keys = [_key("a", "fa"), _key("b", "fb")]
        assert rank_identities(keys, [], identities_only=False) == keys


def test_key_type_of_reads_prefix() -> None:
    """Key type is the first SSH string of the blob."""
    key = asyncssh.generate_private_key("ssh-ed25519")
    assert key_type_of(key.public_data) == "ssh-ed25519"


def test_key_type_of_short_blob() -> None:
    """Truncated blobs are rejected."""
    with pytest.raises(ValueError):
        key_type_of(b"\x00\x00")
    with pytest.raises(ValueError):
        key_type_of(b"\x00\x00\x00\x10ssh")


def test_fingerprint_is_stable() -> None:
    """Same blob, same fingerprint."""
    assert compute_fingerprint(b"blob") == compute_fingerprint(b"blob")
    assert compute_fingerprint(b"blob") != compute_fingerprint(b"other")


def test_strip_pub_suffix() -> None:
    """.pub paths name the private key."""
    assert strip_pub_suffix("/k/id.pub") == "/k/id"
    assert strip_pub_suffix("/k/id") == "/k/id"


class TestIdentityResolver:
    """Gathering keys from files and the agent."""

    @pytest.mark.asyncio
    async def test_gather_files_without_agent(self, tmp_path: Path) -> None:
        """Keys with a .pub file are loaded; missing ones are skipped."""
        _write_keypair(tmp_path, "id_one")
        _write_keypair(tmp_path, "id_two")

        resolver = IdentityResolver(agent_path=None)
        keys = await resolver.gather(
            [
                str(tmp_path / "id_one"),
                str(tmp_path / "missing"),
                str(tmp_path / "id_two.pub"),
                str(tmp_path / "id_one"),
            ]
        )

        assert [k.filename for k in keys] == [str(tmp_path / "id_one"), str(tmp_path / "id_two")]
        assert all(k.key_type == "ssh-ed25519" for k in keys)
        assert not any(k.agent_backed for k in keys)

    @pytest.mark.asyncio
    async def test_gather_reconciles_with_agent(self, tmp_path: Path) -> None:
        """A file key the agent holds is agent-backed and tried first."""
        _write_keypair(tmp_path, "id_file_only")
        shared = _write_keypair(tmp_path, "id_shared")
        agent_only = asyncssh.generate_private_key("ssh-ed25519")

        agent = MagicMock()
        agent.get_keys = AsyncMock(
            return_value=[_agent_pair(shared, "shared"), _agent_pair(agent_only, "laptop")]
        )

        with patch(
            "ssh_remote.services.identity.asyncssh.connect_agent",
            AsyncMock(return_value=agent),
        ):
            resolver = IdentityResolver(agent_path="/tmp/agent.sock")
            keys = await resolver.gather(
                [str(tmp_path / "id_file_only"), str(tmp_path / "id_shared")]
            )

        assert [k.filename for k in keys] == [
            str(tmp_path / "id_shared"),
            "laptop",
            str(tmp_path / "id_file_only"),
        ]
        assert keys[0].agent_backed and not keys[0].is_ephemeral
        assert keys[1].agent_backed and keys[1].is_ephemeral

        resolver.close()
        agent.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_agent_failure_is_not_fatal(self, tmp_path: Path) -> None:
        """An unreachable agent contributes no keys."""
        _write_keypair(tmp_path, "id_one")

        with patch(
            "ssh_remote.services.identity.asyncssh.connect_agent",
            AsyncMock(side_effect=OSError("no such socket")),
        ):
            resolver = IdentityResolver(agent_path="/nonexistent.sock")
            keys = await resolver.gather([str(tmp_path / "id_one")])

        assert [k.filename for k in keys] == [str(tmp_path / "id_one")]

    @pytest.mark.asyncio
    async def test_defaults_used_without_identity_files(self) -> None:
        """No IdentityFile means the OpenSSH default list."""
        resolver = IdentityResolver()
        with patch.object(resolver, "_load_file_keys", return_value=[]) as mock_load:
            await resolver.gather([])

        paths = mock_load.call_args.args[0]
        assert paths[0].endswith("id_rsa")
        assert any(p.endswith("id_ed25519") for p in paths)
