"""Unit tests for sync jobs and job files."""

import json
from pathlib import Path

import pytest

from pydirsync.exceptions import SyncConfigError
from pydirsync.sync.config import load_sync_jobs_from_json
from pydirsync.sync.modes import SyncDirection, SyncPreset, resolve_policy
from pydirsync.sync.pair import SyncJob, is_literal_job
from pydirsync.sync.state import CheckpointStrategy

from .helpers import BASE_TIME, tree, write_file


class TestSyncJob:
    """Tests for SyncJob class."""

    def test_create_sync_job(self):
        job = SyncJob(path="/home/user/docs", destination="/mnt/nas/docs")

        assert job.path == Path("/home/user/docs")
        assert job.destination == Path("/mnt/nas/docs")
        assert job.policy == resolve_policy(SyncPreset.SYNC)
        assert job.checkpoint == CheckpointStrategy.SIDECAR
        assert job.alias is None
        assert job.ignore == []
        assert job.name == "/home/user/docs -> /mnt/nas/docs"

    def test_from_dict(self):
        data = {
            "path": "/data",
            "destination": "/backup",
            "preset": "mirror",
            "alias": "data",
            "skipDelete": True,
            "check_hash": True,
            "ignore": ["*.tmp"],
            "checkpoint": "metadata",
            "stateFile": "/var/lib/pydirsync/state.json",
        }

        job = SyncJob.from_dict(data)

        assert job.path == Path("/data")
        assert job.destination == Path("/backup")
        assert job.policy.direction == SyncDirection.FORWARD
        assert job.policy.skip_delete is True
        assert job.policy.check_hash is True
        assert job.alias == "data"
        assert job.name == "data"
        assert job.ignore == ["*.tmp"]
        assert job.checkpoint == CheckpointStrategy.METADATA
        assert job.state_file == Path("/var/lib/pydirsync/state.json")

    def test_from_dict_minimal(self):
        job = SyncJob.from_dict({"path": "/data", "destination": "/backup"})

        assert job.policy == resolve_policy("sync")
        assert job.state_file is None

    def test_from_dict_direction_override(self):
        job = SyncJob.from_dict(
            {"path": "/a", "destination": "/b", "preset": "mirror", "direction": "reverse"}
        )
        assert job.policy.direction == SyncDirection.REVERSE

    @pytest.mark.parametrize(
        "data",
        [
            {"path": "/a"},
            {"path": "/a", "destination": "/b", "preset": "backup"},
            {"path": "/a", "destination": "/b", "purge": "yes"},
            {"path": "/a", "destination": "/b", "checkpoint": "sql"},
            {"path": "/a", "destination": "/b", "ignore": "*.tmp"},
        ],
    )
    def test_from_dict_invalid(self, data):
        with pytest.raises(SyncConfigError):
            SyncJob.from_dict(data)

    def test_parse_literal(self):
        job = SyncJob.parse_literal("/data:mirror:/backup")

        assert job.path == Path("/data")
        assert job.destination == Path("/backup")
        assert job.policy == resolve_policy("mirror")

    def test_parse_literal_without_preset(self):
        job = SyncJob.parse_literal("./docs:../docs-copy")

        assert job.destination == Path("../docs-copy")
        assert job.policy == resolve_policy("sync")

    def test_parse_literal_windows_drives(self):
        job = SyncJob.parse_literal(r"C:\Users\me:contribute:D:\backup")

        assert str(job.path) == r"C:\Users\me"
        assert str(job.destination) == r"D:\backup"
        assert job.policy == resolve_policy("contribute")

    def test_parse_literal_overrides(self):
        job = SyncJob.parse_literal(
            "/a:merge:/b", policy_overrides={"skip_delete": False, "direction": None}
        )
        assert job.policy.skip_delete is False
        assert job.policy.direction == SyncDirection.BOTH

    @pytest.mark.parametrize("literal", ["/a:x:y:/b", "/a:", "/a:nope:/b"])
    def test_parse_literal_invalid(self, literal):
        with pytest.raises(SyncConfigError):
            SyncJob.parse_literal(literal)

    def test_is_literal_job(self):
        assert is_literal_job("/a:/b")
        assert is_literal_job("/a:mirror:/b")
        assert not is_literal_job("/just/a/path")
        assert not is_literal_job(r"C:\just\a\path")

    def test_run(self, endpoints):
        a, b = endpoints
        write_file(a, "x.txt", "x", BASE_TIME)
        job = SyncJob(path=a, destination=b, policy=resolve_policy("mirror"))

        result = job.run("host")

        assert result.success
        assert tree(b) == {"x.txt": "x"}


class TestLoadSyncJobs:
    """Tests for JSON job files."""

    def test_load_jobs_object(self, temp_dir):
        job_file = temp_dir / "jobs.json"
        job_file.write_text(
            json.dumps(
                {
                    "jobs": [
                        {"path": "/a", "destination": "/b", "preset": "mirror"},
                        {"path": "/c", "destination": "/d", "alias": "second"},
                    ]
                }
            )
        )

        jobs = load_sync_jobs_from_json(job_file)

        assert len(jobs) == 2
        assert jobs[0].policy.direction == SyncDirection.FORWARD
        assert jobs[1].alias == "second"

    def test_load_jobs_list(self, temp_dir):
        job_file = temp_dir / "jobs.json"
        job_file.write_text(json.dumps([{"path": "/a", "destination": "/b"}]))

        assert len(load_sync_jobs_from_json(job_file)) == 1

    def test_missing_file(self, temp_dir):
        with pytest.raises(SyncConfigError, match="not found"):
            load_sync_jobs_from_json(temp_dir / "missing.json")

    def test_invalid_json(self, temp_dir):
        job_file = temp_dir / "jobs.json"
        job_file.write_text("{")
        with pytest.raises(SyncConfigError):
            load_sync_jobs_from_json(job_file)

    @pytest.mark.parametrize("content", ['{"jobs": 1}', '["x"]', '{"other": []}'])
    def test_invalid_structure(self, temp_dir, content):
        job_file = temp_dir / "jobs.json"
        job_file.write_text(content)
        with pytest.raises(SyncConfigError):
            load_sync_jobs_from_json(job_file)

    def test_invalid_job_reports_index(self, temp_dir):
        job_file = temp_dir / "jobs.json"
        job_file.write_text(json.dumps([{"path": "/a", "destination": "/b"}, {}]))
        with pytest.raises(SyncConfigError, match="job 1"):
            load_sync_jobs_from_json(job_file)
