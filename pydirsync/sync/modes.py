"""Sync directions, presets and the resolved sync policy."""

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Optional, Union

from ..exceptions import PolicyError


class SyncDirection(str, Enum):
    """Which endpoint(s) may receive changes derived from the other."""

    FORWARD = "forward"
    """path is the source, destination is the target"""

    REVERSE = "reverse"
    """destination is the source, path is the target"""

    BOTH = "both"
    """changes flow in both directions"""

    @classmethod
    def from_string(cls, value: str) -> "SyncDirection":
        """Parse a direction name (case-insensitive).

        Raises:
            PolicyError: If the name is unknown
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(d.value for d in cls)
            raise PolicyError(
                f"Invalid direction: {value}. Must be one of: {valid}"
            ) from None

    @property
    def is_bidirectional(self) -> bool:
        return self == SyncDirection.BOTH


class SyncPreset(str, Enum):
    """Named combinations of direction and deletion behaviour.

    - SYNC: two-way, deletions propagate in both directions
    - MERGE: two-way, nothing is ever deleted
    - MIRROR: one-way, the target becomes a copy of the source
    - CONTRIBUTE: one-way, new and changed files only, no deletions
    - MISSING: one-way, only files absent on the target are copied
    """

    SYNC = "sync"
    MERGE = "merge"
    MIRROR = "mirror"
    CONTRIBUTE = "contribute"
    MISSING = "missing"

    @classmethod
    def from_string(cls, value: str) -> "SyncPreset":
        """Parse a preset name (case-insensitive).

        Raises:
            PolicyError: If the name is unknown
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise PolicyError(
                f"Invalid preset: {value}. Must be one of: {valid}"
            ) from None


@dataclass(frozen=True)
class SyncPolicy:
    """Fully resolved policy for one synchronization run.

    Immutable for the duration of a run. Every downstream component reads
    these named fields and never re-derives them from a preset.
    """

    direction: SyncDirection = SyncDirection.BOTH
    purge: bool = False
    """Clear the resolved target before anything else (never the source)"""

    recurse: bool = True
    """Descend into subdirectories and reconcile directories"""

    check_hash: bool = False
    """Compare content hashes instead of modification times for common files"""

    skip_delete: bool = False
    skip_existing: bool = False
    """Do not resolve files that exist on both sides"""

    skip_files: bool = False
    """Only reconcile directories"""

    create_path: bool = False
    create_destination: bool = False

    @property
    def is_bidirectional(self) -> bool:
        return self.direction.is_bidirectional

    def to_dict(self) -> dict:
        return {
            f.name: (
                getattr(self, f.name).value
                if isinstance(getattr(self, f.name), Enum)
                else getattr(self, f.name)
            )
            for f in fields(self)
        }


# direction, skip_delete, skip_existing
_PRESET_DEFAULTS: dict[SyncPreset, tuple[SyncDirection, bool, bool]] = {
    SyncPreset.SYNC: (SyncDirection.BOTH, False, False),
    SyncPreset.MERGE: (SyncDirection.BOTH, True, False),
    SyncPreset.MIRROR: (SyncDirection.FORWARD, False, False),
    SyncPreset.CONTRIBUTE: (SyncDirection.FORWARD, True, False),
    SyncPreset.MISSING: (SyncDirection.FORWARD, True, True),
}

POLICY_FIELDS = frozenset(f.name for f in fields(SyncPolicy))


def resolve_policy(
    preset: Union[SyncPreset, str] = SyncPreset.SYNC,
    direction: Optional[Union[SyncDirection, str]] = None,
    **overrides: Optional[bool],
) -> SyncPolicy:
    """Expand a preset into a complete SyncPolicy.

    Explicit overrides always win over the preset's defaults. An override
    whose value is None counts as "not supplied".

    Args:
        preset: Preset name or SyncPreset
        direction: Optional explicit direction
        **overrides: Any other SyncPolicy field by name

    Returns:
        Resolved SyncPolicy

    Raises:
        PolicyError: If the preset, direction or an override name is unknown

    Examples:
        >>> resolve_policy("mirror").direction
        <SyncDirection.FORWARD: 'forward'>
        >>> resolve_policy("mirror", skip_delete=True).skip_delete
        True
    """
    if isinstance(preset, str) and not isinstance(preset, SyncPreset):
        preset = SyncPreset.from_string(preset)

    unknown = set(overrides) - POLICY_FIELDS
    if unknown:
        raise PolicyError(f"Unknown policy field(s): {', '.join(sorted(unknown))}")

    preset_direction, skip_delete, skip_existing = _PRESET_DEFAULTS[preset]
    policy = SyncPolicy(
        direction=preset_direction,
        skip_delete=skip_delete,
        skip_existing=skip_existing,
    )

    if direction is not None:
        if not isinstance(direction, SyncDirection):
            direction = SyncDirection.from_string(direction)
        policy = replace(policy, direction=direction)

    explicit = {k: bool(v) for k, v in overrides.items() if v is not None}
    if explicit:
        policy = replace(policy, **explicit)

    return policy
