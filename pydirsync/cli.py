"""CLI interface for pydirsync."""

import logging
import socket
from pathlib import Path
from typing import Any, Optional

import click
from click.core import ParameterSource

from .exceptions import CheckpointError, PyDirSyncError
from .output import OutputFormatter
from .sync import (
    CheckpointStore,
    CheckpointStrategy,
    SyncDirection,
    SyncJob,
    SyncPreset,
    SyncResult,
    create_checkpoint_store,
    load_sync_jobs_from_json,
    make_instance_key,
    resolve_policy,
)
from .sync.pair import is_literal_job

logger = logging.getLogger(__name__)

# Exit code for runs that completed with per-item errors
EXIT_ITEM_ERRORS = 2


def _report(out: OutputFormatter, result: SyncResult, name: Optional[str] = None) -> int:
    """Print a result and return the matching exit code."""
    if out.json_output:
        data = result.to_dict()
        if name is not None:
            data["job"] = name
        out.output_json(data)
    return EXIT_ITEM_ERRORS if result.errors else 0


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.option(
    "--host-id",
    envvar="PYDIRSYNC_HOST_ID",
    default=None,
    help="Host identity used in checkpoint keys (default: host name)",
)
@click.version_option(package_name="pydirsync")
@click.pass_context
def main(
    ctx: Any, quiet: bool, json: bool, verbose: bool, host_id: Optional[str]
) -> None:
    """pydirsync - Synchronize two directory trees."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["host_id"] = host_id or socket.gethostname()

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pydirsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.argument("path", type=str)
@click.argument("destination", type=str, required=False)
@click.option(
    "--preset",
    "-p",
    type=click.Choice([p.value for p in SyncPreset], case_sensitive=False),
    default=None,
    help="Policy preset (default: sync)",
)
@click.option(
    "--direction",
    "-d",
    type=click.Choice([d.value for d in SyncDirection], case_sensitive=False),
    default=None,
    help="Override the preset's direction",
)
@click.option("--purge/--no-purge", default=None, help="Empty the target first")
@click.option(
    "--recurse/--no-recurse", default=None, help="Descend into subdirectories"
)
@click.option(
    "--check-hash/--no-check-hash",
    default=None,
    help="Compare content hashes instead of modification times",
)
@click.option(
    "--skip-delete/--no-skip-delete", default=None, help="Never delete anything"
)
@click.option(
    "--skip-existing/--no-skip-existing",
    default=None,
    help="Leave files that exist on both sides untouched",
)
@click.option(
    "--skip-files/--no-skip-files",
    default=None,
    help="Only reconcile directories",
)
@click.option(
    "--create-path", is_flag=True, help="Create PATH if missing"
)
@click.option(
    "--create-destination",
    is_flag=True,
    help="Create DESTINATION if missing",
)
@click.option(
    "--checkpoint",
    type=click.Choice([s.value for s in CheckpointStrategy]),
    default=CheckpointStrategy.SIDECAR.value,
    help="Where the last sync time is stored (default: sidecar)",
)
@click.option(
    "--state-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Explicit sidecar checkpoint file",
)
@click.option(
    "--ignore",
    "-i",
    multiple=True,
    help="Glob pattern to exclude (can be used multiple times)",
)
@click.option(
    "--dry-run", is_flag=True, help="Show what would be synced without syncing"
)
@click.option(
    "--keep-checkpoint-on-errors",
    is_flag=True,
    help="Do not advance the checkpoint if any item failed",
)
@click.pass_context
def sync(
    ctx: Any,
    path: str,
    destination: Optional[str],
    preset: Optional[str],
    direction: Optional[str],
    purge: Optional[bool],
    recurse: Optional[bool],
    check_hash: Optional[bool],
    skip_delete: Optional[bool],
    skip_existing: Optional[bool],
    skip_files: Optional[bool],
    create_path: Optional[bool],
    create_destination: Optional[bool],
    checkpoint: str,
    state_file: Optional[Path],
    ignore: tuple[str, ...],
    dry_run: bool,
    keep_checkpoint_on_errors: bool,
) -> None:
    """Synchronize PATH and DESTINATION.

    PATH may also be a literal job in the format path:preset:destination,
    in which case DESTINATION is omitted.

    Presets:
      - sync: two-way, deletions propagate
      - merge: two-way, never delete
      - mirror: one-way, target becomes a copy of the source
      - contribute: one-way, never delete
      - missing: one-way, only copy files absent on the target

    Examples:
        pydirsync sync ./docs /mnt/nas/docs
        pydirsync sync ./docs /mnt/nas/docs -p mirror --dry-run
        pydirsync sync /data:contribute:/mnt/backup
    """
    out: OutputFormatter = ctx.obj["out"]
    overrides = {
        name: value
        for name, value in (
            ("purge", purge),
            ("recurse", recurse),
            ("check_hash", check_hash),
            ("skip_delete", skip_delete),
            ("skip_existing", skip_existing),
            ("skip_files", skip_files),
            ("create_path", create_path),
            ("create_destination", create_destination),
        )
        if ctx.get_parameter_source(name) != ParameterSource.DEFAULT
    }

    try:
        if destination is None:
            if not is_literal_job(path):
                out.error("Missing DESTINATION (or use path:preset:destination)")
                ctx.exit(1)
            if preset is not None:
                out.error("Cannot use --preset with a literal job")
                ctx.exit(1)
            job = SyncJob.parse_literal(
                path, policy_overrides={"direction": direction, **overrides}
            )
        else:
            policy = resolve_policy(
                preset or SyncPreset.SYNC, direction=direction, **overrides
            )
            job = SyncJob(path=Path(path), destination=Path(destination), policy=policy)

        job.ignore = list(ignore)
        job.checkpoint = CheckpointStrategy(checkpoint)
        job.state_file = state_file

        result = job.run(
            ctx.obj["host_id"],
            dry_run=dry_run,
            advance_on_errors=not keep_checkpoint_on_errors,
            output=out,
        )
    except KeyboardInterrupt:
        out.warning("Sync cancelled by user")
        ctx.exit(130)
    except PyDirSyncError as e:
        out.error(str(e))
        ctx.exit(1)

    ctx.exit(_report(out, result))


@main.command()
@click.argument("job_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--alias", "-a", multiple=True, help="Only run jobs with this alias")
@click.option(
    "--dry-run", is_flag=True, help="Show what would be synced without syncing"
)
@click.option(
    "--keep-checkpoint-on-errors",
    is_flag=True,
    help="Do not advance the checkpoint if any item failed",
)
@click.pass_context
def run(
    ctx: Any,
    job_file: Path,
    alias: tuple[str, ...],
    dry_run: bool,
    keep_checkpoint_on_errors: bool,
) -> None:
    """Run every job defined in JOB_FILE.

    A failing job is reported and the remaining jobs still run.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        jobs = load_sync_jobs_from_json(job_file)
    except PyDirSyncError as e:
        out.error(str(e))
        ctx.exit(1)

    if alias:
        jobs = [job for job in jobs if job.alias in alias]
        if not jobs:
            out.error(f"No job matches alias: {', '.join(alias)}")
            ctx.exit(1)

    exit_code = 0
    for job in jobs:
        out.info(f"Job: {job.name}")
        try:
            result = job.run(
                ctx.obj["host_id"],
                dry_run=dry_run,
                advance_on_errors=not keep_checkpoint_on_errors,
                output=out,
            )
        except KeyboardInterrupt:
            out.warning("Sync cancelled by user")
            ctx.exit(130)
        except PyDirSyncError as e:
            out.error(f"{job.name}: {e}")
            exit_code = 1
            continue
        exit_code = max(exit_code, _report(out, result, job.name))

    ctx.exit(exit_code)


@main.group("checkpoint")
def checkpoint_group() -> None:
    """Inspect or reset stored checkpoints."""


def _open_store(
    path: Path, destination: Path, strategy: str, state_file: Optional[Path]
) -> tuple[CheckpointStore, Path, Path]:
    path = path.expanduser().resolve()
    destination = destination.expanduser().resolve()
    store = create_checkpoint_store(
        strategy, endpoints=(path, destination), state_file=state_file
    )
    return store, path, destination


_checkpoint_options = [
    click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path)),
    click.argument(
        "destination", type=click.Path(exists=True, file_okay=False, path_type=Path)
    ),
    click.option(
        "--checkpoint",
        "strategy",
        type=click.Choice([s.value for s in CheckpointStrategy]),
        default=CheckpointStrategy.SIDECAR.value,
        help="Checkpoint strategy (default: sidecar)",
    ),
    click.option(
        "--state-file",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        help="Explicit sidecar checkpoint file",
    ),
]


def checkpoint_options(func: Any) -> Any:
    for decorator in reversed(_checkpoint_options):
        func = decorator(func)
    return func


@checkpoint_group.command("show")
@checkpoint_options
@click.pass_context
def checkpoint_show(
    ctx: Any,
    path: Path,
    destination: Path,
    strategy: str,
    state_file: Optional[Path],
) -> None:
    """Show the last sync time of PATH and DESTINATION."""
    out: OutputFormatter = ctx.obj["out"]
    store, path, destination = _open_store(path, destination, strategy, state_file)
    key = make_instance_key(ctx.obj["host_id"], path, destination)

    try:
        stored = store.load(path, destination, key)
    except CheckpointError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json(
            {
                "instance_key": key,
                "last_sync_time": stored.last_sync_time.isoformat() if stored else None,
                "ticks": stored.ticks if stored else None,
            }
        )
    elif stored is None:
        out.info(f"No checkpoint for {path} -> {destination} (key {key})")
    else:
        out.info(f"Instance key: {key}")
        out.info(f"Last sync:    {stored.last_sync_time.isoformat()}")


@checkpoint_group.command("clear")
@checkpoint_options
@click.pass_context
def checkpoint_clear(
    ctx: Any,
    path: Path,
    destination: Path,
    strategy: str,
    state_file: Optional[Path],
) -> None:
    """Forget the checkpoint of PATH and DESTINATION.

    The next run performs a full comparison and deletes nothing.
    """
    out: OutputFormatter = ctx.obj["out"]
    store, path, destination = _open_store(path, destination, strategy, state_file)
    key = make_instance_key(ctx.obj["host_id"], path, destination)

    try:
        cleared = store.clear(path, destination, key)
    except CheckpointError as e:
        out.error(str(e))
        ctx.exit(1)

    if cleared:
        out.success("Checkpoint cleared")
    else:
        out.info("No checkpoint to clear")


if __name__ == "__main__":
    main()
