"""Unit tests for sync presets and policy resolution."""

import pytest

from pydirsync.exceptions import PolicyError
from pydirsync.sync.modes import (
    SyncDirection,
    SyncPolicy,
    SyncPreset,
    resolve_policy,
)


class TestSyncPreset:
    """Tests for SyncPreset parsing."""

    def test_from_string(self):
        assert SyncPreset.from_string("mirror") == SyncPreset.MIRROR
        assert SyncPreset.from_string("Mirror") == SyncPreset.MIRROR
        assert SyncPreset.from_string(" SYNC ") == SyncPreset.SYNC

    def test_from_string_invalid(self):
        with pytest.raises(PolicyError, match="Invalid preset"):
            SyncPreset.from_string("backup")


class TestSyncDirection:
    """Tests for SyncDirection parsing."""

    def test_from_string(self):
        assert SyncDirection.from_string("Both") == SyncDirection.BOTH
        assert SyncDirection.from_string("reverse") == SyncDirection.REVERSE

    def test_from_string_invalid(self):
        with pytest.raises(PolicyError, match="Invalid direction"):
            SyncDirection.from_string("sideways")

    def test_is_bidirectional(self):
        assert SyncDirection.BOTH.is_bidirectional
        assert not SyncDirection.FORWARD.is_bidirectional
        assert not SyncDirection.REVERSE.is_bidirectional


class TestResolvePolicy:
    """Tests for expanding presets into policies."""

    @pytest.mark.parametrize(
        "preset,direction,skip_delete,skip_existing",
        [
            ("sync", SyncDirection.BOTH, False, False),
            ("merge", SyncDirection.BOTH, True, False),
            ("mirror", SyncDirection.FORWARD, False, False),
            ("contribute", SyncDirection.FORWARD, True, False),
            ("missing", SyncDirection.FORWARD, True, True),
        ],
    )
    def test_preset_defaults(self, preset, direction, skip_delete, skip_existing):
        policy = resolve_policy(preset)

        assert policy.direction == direction
        assert policy.skip_delete is skip_delete
        assert policy.skip_existing is skip_existing
        assert policy.purge is False
        assert policy.recurse is True
        assert policy.check_hash is False
        assert policy.skip_files is False
        assert policy.create_path is False
        assert policy.create_destination is False

    def test_default_preset_is_sync(self):
        assert resolve_policy() == resolve_policy(SyncPreset.SYNC)

    def test_overrides_win(self):
        policy = resolve_policy("missing", skip_existing=False, check_hash=True)

        assert policy.skip_existing is False
        assert policy.check_hash is True
        assert policy.skip_delete is True  # still from preset

    def test_direction_override(self):
        policy = resolve_policy("mirror", direction="reverse")
        assert policy.direction == SyncDirection.REVERSE

        policy = resolve_policy("merge", direction=SyncDirection.FORWARD)
        assert policy.direction == SyncDirection.FORWARD
        assert policy.skip_delete is True

    def test_none_override_is_not_supplied(self):
        policy = resolve_policy("merge", skip_delete=None, direction=None)
        assert policy.skip_delete is True
        assert policy.direction == SyncDirection.BOTH

    def test_unknown_override(self):
        with pytest.raises(PolicyError, match="Unknown policy field"):
            resolve_policy("sync", delete_everything=True)

    def test_policy_is_immutable(self):
        policy = resolve_policy("sync")
        with pytest.raises(AttributeError):
            policy.purge = True

    def test_to_dict(self):
        data = SyncPolicy(direction=SyncDirection.FORWARD, purge=True).to_dict()
        assert data["direction"] == "forward"
        assert data["purge"] is True
        assert set(data) == {
            "direction",
            "purge",
            "recurse",
            "check_hash",
            "skip_delete",
            "skip_existing",
            "skip_files",
            "create_path",
            "create_destination",
        }
