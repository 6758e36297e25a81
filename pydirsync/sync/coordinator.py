"""Public entry point that runs one synchronization pass."""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..exceptions import CheckpointError, EndpointError
from ..output import OutputFormatter
from ..utils import utc_now
from .comparator import TreeComparator
from .engine import SyncEngine, SyncError, SyncResult
from .modes import SyncDirection, SyncPolicy
from .scanner import DirectoryScanner, ScanResult
from .state import (
    CheckpointStore,
    CheckpointStrategy,
    create_checkpoint_store,
    make_instance_key,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Endpoint:
    """One of the two directory trees of a run."""

    absolute_path: Path
    exists: bool


def resolve_endpoint(path: Union[str, Path], create: bool, label: str) -> Endpoint:
    """Resolve a root endpoint, creating it when allowed.

    Args:
        path: Endpoint path
        create: Create the directory if it does not exist
        label: "path" or "destination", used in error messages

    Returns:
        Endpoint with an absolute path that exists

    Raises:
        EndpointError: If the endpoint is missing and may not be created,
            cannot be created, or is not a directory
    """
    absolute = Path(path).expanduser().resolve()

    if absolute.exists():
        if not absolute.is_dir():
            raise EndpointError(
                f"The {label} is not a directory: {absolute}", str(absolute)
            )
        return Endpoint(absolute_path=absolute, exists=True)

    if not create:
        raise EndpointError(f"The {label} does not exist: {absolute}", str(absolute))

    try:
        absolute.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise EndpointError(
            f"Cannot create {label} {absolute}: {e}", str(absolute)
        ) from e
    logger.info(f"Created {label} {absolute}")
    return Endpoint(absolute_path=absolute, exists=True)


def synchronize(
    path: Union[str, Path],
    destination: Union[str, Path],
    policy: SyncPolicy,
    host_identity: str,
    checkpoint: Union[CheckpointStrategy, str, CheckpointStore] = (
        CheckpointStrategy.SIDECAR
    ),
    state_file: Optional[Path] = None,
    ignore_patterns: Optional[list[str]] = None,
    dry_run: bool = False,
    advance_on_errors: bool = True,
    output: Optional[OutputFormatter] = None,
) -> SyncResult:
    """Synchronize two directory trees according to a policy.

    Args:
        path: The "path" endpoint
        destination: The "destination" endpoint
        policy: Resolved sync policy
        host_identity: Machine identity used in the checkpoint key
        checkpoint: Checkpoint strategy, or a ready CheckpointStore
        state_file: Explicit sidecar checkpoint file
        ignore_patterns: Glob patterns excluded from both trees
        dry_run: Plan operations without changing anything
        advance_on_errors: Save the checkpoint even if some items failed
        output: Output formatter for displaying progress/status

    Returns:
        SyncResult with the new checkpoint time and per-item errors

    Raises:
        EndpointError: If an endpoint is missing and its create flag is off

    Examples:
        >>> policy = resolve_policy("mirror")
        >>> result = synchronize("/data", "/mnt/backup/data", policy, "host1")
        >>> result.success
        True
    """
    run_start = utc_now()
    start = time.time()
    output = output or OutputFormatter(quiet=True)

    path_endpoint = resolve_endpoint(path, policy.create_path, "path")
    destination_endpoint = resolve_endpoint(
        destination, policy.create_destination, "destination"
    )
    path_root = path_endpoint.absolute_path
    destination_root = destination_endpoint.absolute_path

    if policy.direction == SyncDirection.REVERSE:
        source_root, target_root = destination_root, path_root
    else:
        source_root, target_root = path_root, destination_root

    if not output.quiet:
        arrow = "<->" if policy.is_bidirectional else "->"
        output.info(f"Syncing: {source_root} {arrow} {target_root}")
        output.info(f"Direction: {policy.direction.value}")
        if dry_run:
            output.info("Dry run: No changes will be made")
        output.print("")

    logger.debug(f"Policy: {policy.to_dict()}")
    instance_key = make_instance_key(host_identity, path_root, destination_root)
    if isinstance(checkpoint, CheckpointStore):
        store = checkpoint
    else:
        store = create_checkpoint_store(
            checkpoint,
            endpoints=(path_root, destination_root),
            state_file=state_file,
        )

    last_checkpoint = None
    if policy.purge:
        logger.debug("Purge requested, ignoring checkpoint")
    else:
        try:
            last_checkpoint = store.load(path_root, destination_root, instance_key)
        except CheckpointError as e:
            logger.warning(f"Ignoring unreadable checkpoint: {e}")

    scanner = DirectoryScanner(ignore_patterns=ignore_patterns)
    engine = SyncEngine(policy, output=output, scanner=scanner, dry_run=dry_run)
    result = SyncResult(dry_run=dry_run)

    if policy.purge:
        engine.purge(target_root, result)

    source_scan = scanner.scan(source_root, recurse=policy.recurse)
    if policy.purge and dry_run:
        target_scan = ScanResult(root=target_root)
    else:
        target_scan = scanner.scan(target_root, recurse=policy.recurse)

    diff = TreeComparator(policy).diff(source_scan, target_scan, last_checkpoint)
    if diff.files.is_empty and diff.directories.is_empty:
        logger.debug("No missing or stale items")
    engine.execute(diff, result)

    if dry_run:
        logger.debug("Dry run, checkpoint not saved")
    elif result.errors and not advance_on_errors:
        logger.warning(
            f"{len(result.errors)} item(s) failed, keeping previous checkpoint"
        )
    else:
        try:
            store.save(path_root, destination_root, instance_key, run_start)
            result.new_checkpoint_time = run_start
        except CheckpointError as e:
            logger.warning(str(e))
            result.errors.append(
                SyncError(item=instance_key, operation="checkpoint", cause=str(e))
            )
            result.stats["errors"] += 1

    logger.info(
        f"Synchronized {path_root} and {destination_root} in "
        f"{time.time() - start:.2f}s with {len(result.errors)} error(s)"
    )
    if not output.quiet:
        engine.display_summary(result)
    return result
