"""Sync job definition: two endpoints plus the policy between them."""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from ..exceptions import PolicyError, SyncConfigError
from ..output import OutputFormatter
from .coordinator import synchronize
from .engine import SyncResult
from .modes import POLICY_FIELDS, SyncPolicy, SyncPreset, resolve_policy
from .state import CheckpointStrategy

# camelCase job-file keys and their policy field names
_CAMEL_CASE_FIELDS = {
    "checkHash": "check_hash",
    "skipDelete": "skip_delete",
    "skipExisting": "skip_existing",
    "skipFiles": "skip_files",
    "createPath": "create_path",
    "createDestination": "create_destination",
}


@dataclass
class SyncJob:
    """A configured synchronization between a path and a destination."""

    path: Path
    destination: Path
    policy: SyncPolicy = field(default_factory=resolve_policy)
    alias: Optional[str] = None
    ignore: list[str] = field(default_factory=list)
    checkpoint: CheckpointStrategy = CheckpointStrategy.SIDECAR
    state_file: Optional[Path] = None

    def __post_init__(self) -> None:
        if isinstance(self.path, str):
            self.path = Path(self.path)
        if isinstance(self.destination, str):
            self.destination = Path(self.destination)
        if isinstance(self.checkpoint, str) and not isinstance(
            self.checkpoint, CheckpointStrategy
        ):
            self.checkpoint = CheckpointStrategy(self.checkpoint)
        if isinstance(self.state_file, str):
            self.state_file = Path(self.state_file)

    @property
    def name(self) -> str:
        return self.alias or f"{self.path} -> {self.destination}"

    def run(
        self,
        host_identity: str,
        dry_run: bool = False,
        advance_on_errors: bool = True,
        output: Optional[OutputFormatter] = None,
    ) -> SyncResult:
        """Run this job once. See ``synchronize`` for the arguments."""
        return synchronize(
            self.path,
            self.destination,
            self.policy,
            host_identity,
            checkpoint=self.checkpoint,
            state_file=self.state_file,
            ignore_patterns=self.ignore,
            dry_run=dry_run,
            advance_on_errors=advance_on_errors,
            output=output,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncJob":
        """Create a SyncJob from a job-file entry.

        Policy switches may be given in snake_case or camelCase.

        Raises:
            SyncConfigError: If required keys are missing or values are invalid

        Examples:
            >>> job = SyncJob.from_dict({
            ...     "path": "/data", "destination": "/backup", "preset": "mirror",
            ...     "skipDelete": True,
            ... })
            >>> job.policy.skip_delete
            True
        """
        if "path" not in data or "destination" not in data:
            raise SyncConfigError("Job requires 'path' and 'destination'")

        overrides: dict[str, Optional[bool]] = {}
        for key, value in data.items():
            name = _CAMEL_CASE_FIELDS.get(key, key)
            if name in POLICY_FIELDS and name != "direction":
                if not isinstance(value, bool):
                    raise SyncConfigError(f"'{key}' must be true or false")
                overrides[name] = value

        try:
            policy = resolve_policy(
                data.get("preset", SyncPreset.SYNC),
                direction=data.get("direction"),
                **overrides,
            )
            checkpoint = CheckpointStrategy(data.get("checkpoint", "sidecar"))
        except (PolicyError, ValueError) as e:
            raise SyncConfigError(str(e)) from e

        ignore = data.get("ignore", [])
        if not isinstance(ignore, list):
            raise SyncConfigError("'ignore' must be a list of patterns")

        state_file = data.get("stateFile", data.get("state_file"))
        return cls(
            path=Path(data["path"]),
            destination=Path(data["destination"]),
            policy=policy,
            alias=data.get("alias"),
            ignore=[str(p) for p in ignore],
            checkpoint=checkpoint,
            state_file=Path(state_file) if state_file else None,
        )

    @classmethod
    def parse_literal(
        cls, literal: str, policy_overrides: Optional[dict[str, Any]] = None
    ) -> "SyncJob":
        """Parse a literal job string.

        Accepted forms are ``path:preset:destination`` and
        ``path:destination`` (preset defaults to sync). Windows drive letters
        such as ``C:`` at the start of either path are kept intact.

        Args:
            literal: Job string
            policy_overrides: Extra policy fields passed to resolve_policy

        Raises:
            SyncConfigError: If the string cannot be parsed

        Examples:
            >>> job = SyncJob.parse_literal("/data:mirror:/backup")
            >>> job.policy.direction.value
            'forward'
        """
        parts = _split_literal(literal)
        if len(parts) == 2:
            path, destination = parts
            preset: Union[str, SyncPreset] = SyncPreset.SYNC
        elif len(parts) == 3:
            path, preset, destination = parts
        else:
            raise SyncConfigError(
                f"Expected 'path:preset:destination', got: {literal}"
            )

        if not path or not destination:
            raise SyncConfigError(f"Empty path in job: {literal}")

        try:
            policy = resolve_policy(preset, **(policy_overrides or {}))
        except PolicyError as e:
            raise SyncConfigError(str(e)) from e
        return cls(path=Path(path), destination=Path(destination), policy=policy)


_DRIVE_RE = re.compile(r"^[A-Za-z]:[\\/]")


def _split_literal(literal: str) -> list[str]:
    """Split on colons that are not part of a Windows drive letter."""
    parts: list[str] = []
    rest = literal
    while rest:
        if _DRIVE_RE.match(rest):
            head, sep, tail = rest[2:].partition(":")
            parts.append(rest[:2] + head)
        else:
            head, sep, tail = rest.partition(":")
            parts.append(head)
        if not sep:
            break
        rest = tail
        if not rest:
            parts.append("")
    return parts


def is_literal_job(value: str) -> bool:
    """Check whether a command-line argument is a literal job string."""
    return len(_split_literal(value)) in (2, 3)
