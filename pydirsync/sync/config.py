"""Loading sync jobs from JSON files."""

import json
import logging
from pathlib import Path
from typing import Union

from ..exceptions import SyncConfigError
from .pair import SyncJob

logger = logging.getLogger(__name__)


def load_sync_jobs_from_json(file_path: Union[str, Path]) -> list[SyncJob]:
    """Load sync jobs from a JSON file.

    The file holds either a list of job objects or an object with a
    ``jobs`` list::

        {
          "jobs": [
            {"path": "/data", "destination": "/mnt/nas/data", "preset": "mirror"},
            {"path": "/docs", "destination": "/mnt/nas/docs", "skipDelete": true}
          ]
        }

    Args:
        file_path: Path to the JSON file

    Returns:
        List of SyncJob objects

    Raises:
        SyncConfigError: If the file cannot be read or is invalid
    """
    file_path = Path(file_path)
    try:
        with open(file_path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise SyncConfigError(f"Job file not found: {file_path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise SyncConfigError(f"Cannot read job file {file_path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("jobs")
    if not isinstance(data, list):
        raise SyncConfigError(f"{file_path}: expected a list of jobs")

    jobs: list[SyncJob] = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise SyncConfigError(f"{file_path}: job {index} is not an object")
        try:
            jobs.append(SyncJob.from_dict(entry))
        except SyncConfigError as e:
            raise SyncConfigError(f"{file_path}: job {index}: {e}") from e

    logger.debug(f"Loaded {len(jobs)} job(s) from {file_path}")
    return jobs
