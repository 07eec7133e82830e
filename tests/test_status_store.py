"""Tests for specwright.status.store and specwright.status.locking."""

import json
import os
from datetime import datetime, timezone

import pytest

from specwright.lib.types import Agent, PhaseRef, PhaseStatus
from specwright.status.locking import LockTimeout, project_lock
from specwright.status.store import (
    JsonStatusStore,
    StatusWriteError,
    create_initial_status,
    get_or_create_status,
    stamp,
)


@pytest.fixture
def json_store(tmp_path):
    return JsonStatusStore(tmp_path / "outputs", lock_timeout=0.2)


def _stamped(project_id="p1"):
    return stamp(create_initial_status(project_id))


class TestRead:
    """Tests for reading status files."""

    def test_missing_file_reads_as_none(self, json_store):
        assert json_store.read("nope") is None

    def test_corrupt_json_reads_as_none(self, json_store, caplog):
        path = json_store.status_path("p1")
        path.parent.mkdir(parents=True)
        path.write_text("{not json")
        assert json_store.read("p1") is None
        assert "Error reading status file for p1" in caplog.text

    def test_off_schema_record_reads_as_none(self, json_store):
        path = json_store.status_path("p1")
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"currentAgent": "pm", "currentPhase": "pm-questions-generate"}))
        assert json_store.read("p1") is None

    def test_bad_enum_reads_as_none(self, json_store):
        data = _stamped().to_dict()
        data["agents"]["pm"]["phases"]["questions-generate"]["status"] = "finished"
        path = json_store.status_path("p1")
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps(data))
        assert json_store.read("p1") is None


class TestWrite:
    """Tests for atomic writes."""

    def test_write_then_read(self, json_store):
        status = _stamped()
        json_store.write("p1", status)
        loaded = json_store.read("p1")
        assert loaded.to_dict() == status.to_dict()

    def test_file_layout(self, json_store, tmp_path):
        json_store.write("p1", _stamped())
        path = tmp_path / "outputs" / "projects" / "p1" / "project_status.json"
        assert path.exists()
        assert json.loads(path.read_text())["currentPhase"] == "pm-questions-generate"

    def test_write_without_timestamp_raises(self, json_store):
        with pytest.raises(StatusWriteError, match="lastUpdatedAt"):
            json_store.write("p1", create_initial_status("p1"))
        assert not json_store.status_path("p1").exists()

    def test_off_schema_write_is_refused(self, json_store):
        status = _stamped()
        json_store.write("p1", status)
        before = json_store.status_path("p1").read_text()

        status.settings = "not a mapping"
        stamp(status)
        with pytest.raises(StatusWriteError, match="Invalid project status"):
            json_store.write("p1", status)
        assert json_store.status_path("p1").read_text() == before

    def test_unserializable_value_raises_write_error(self, json_store):
        """Values the schema accepts but JSON can't encode still fail cleanly."""
        status = _stamped()
        json_store.write("p1", status)
        before = json_store.status_path("p1").read_text()

        status.settings = {"question_depth": object()}
        stamp(status)
        with pytest.raises(StatusWriteError):
            json_store.write("p1", status)

        path = json_store.status_path("p1")
        assert path.read_text() == before
        assert list(path.parent.glob("*.tmp")) == []

    def test_failed_rename_leaves_old_file_and_no_temp(self, json_store, monkeypatch):
        """A crash between temp write and rename never corrupts the record."""
        status = _stamped()
        json_store.write("p1", status)
        before = json_store.status_path("p1").read_text()

        def boom(src, dst):
            raise OSError("rename failed")

        monkeypatch.setattr(os, "replace", boom)
        status.settings = {"question_depth": "deep"}
        stamp(status)
        with pytest.raises(StatusWriteError):
            json_store.write("p1", status)

        path = json_store.status_path("p1")
        assert path.read_text() == before
        assert list(path.parent.glob("*.tmp")) == []

    def test_write_does_not_stamp(self, json_store):
        status = _stamped()
        stamped_at = status.last_updated_at
        json_store.write("p1", status)
        assert json_store.read("p1").last_updated_at == stamped_at


class TestStamp:
    """Tests for lastUpdatedAt handling."""

    def test_stamp_uses_clock(self, clock):
        status = create_initial_status("p1", clock=clock)
        stamp(status, clock)
        assert status.last_updated_at == "2026-01-01T12:00:00.000000+00:00"

    def test_stamp_is_strictly_increasing_with_frozen_clock(self, clock):
        status = create_initial_status("p1", clock=clock)
        stamp(status, clock)
        first = status.last_updated_at
        stamp(status, clock)
        assert status.last_updated_at > first

    def test_stamp_survives_clock_going_backwards(self):
        status = create_initial_status("p1")
        status.last_updated_at = "2030-01-01T00:00:00.000000+00:00"
        stamp(status, lambda: datetime(2026, 1, 1, tzinfo=timezone.utc))
        assert status.last_updated_at == "2030-01-01T00:00:00.000001+00:00"


class TestGetOrCreate:
    """Tests for initialization of missing records."""

    def test_creates_default_record(self, json_store, clock):
        status = get_or_create_status(json_store, "p1", clock=clock)
        assert status.current_agent is Agent.PM
        assert status.current_phase_key == "pm-questions-generate"
        assert status.history == []
        assert status.settings == {"question_depth": "standard", "document_length": "standard"}
        for agent in (Agent.PM, Agent.UX, Agent.ENGINEER):
            assert all(r.status is PhaseStatus.NOT_STARTED for r in status.agents[agent].phases.values())
        assert json_store.read("p1") is not None

    def test_custom_settings(self, json_store):
        status = get_or_create_status(json_store, "p1", settings={"question_depth": "light"})
        assert status.settings == {"question_depth": "light"}

    def test_existing_record_is_returned_unchanged(self, json_store):
        status = _stamped()
        status.move_to(PhaseRef(Agent.UX, "questions-answer"))
        json_store.write("p1", status)
        loaded = get_or_create_status(json_store, "p1")
        assert loaded.current_phase_key == "ux-questions-answer"

    def test_corrupt_record_is_replaced_with_default(self, json_store):
        path = json_store.status_path("p1")
        path.parent.mkdir(parents=True)
        path.write_text("garbage")
        status = get_or_create_status(json_store, "p1")
        assert status.current_phase_key == "pm-questions-generate"
        assert json_store.read("p1") is not None


class TestProjectLock:
    """Tests for per-project locking."""

    def test_lock_file_location(self, tmp_path):
        with project_lock(tmp_path, "p1"):
            assert (tmp_path / "locks" / "projects" / "p1.lock").exists()

    def test_second_acquire_times_out(self, json_store):
        with json_store.lock("p1"):
            with pytest.raises(LockTimeout):
                with json_store.lock("p1"):
                    pass

    def test_different_projects_do_not_contend(self, json_store):
        with json_store.lock("p1"):
            with json_store.lock("p2"):
                pass

    def test_lock_released_after_block(self, json_store):
        with json_store.lock("p1"):
            pass
        with json_store.lock("p1"):
            pass
