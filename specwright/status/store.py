"""
Status store - persistence for ProjectStatus records.

One JSON file per project:
  <outputs>/projects/<project_id>/project_status.json

Writes go to a temp file that is then renamed over the real path, so a
reader never sees a partially written record. The store never stamps
lastUpdatedAt itself; callers set it via stamp() before every write.
"""

import json
import logging
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, ContextManager, Protocol

from specwright.lib.constants import (
    AGENT_PHASES,
    DEFAULT_SETTINGS,
    STATUS_FILENAME,
    STATUS_VERSION,
    first_phase,
)
from specwright.lib.types import (
    Agent,
    AgentStatus,
    PhaseRecord,
    ProjectStatus,
    WORKING_AGENTS,
    parse_iso,
    to_iso,
    utc_now,
)
from specwright.lib.validate import StatusSchemaError, validate_status, validate_status_before_write
from specwright.status.locking import project_lock

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class StatusWriteError(Exception):
    """Persisting a status record failed. The previous file is untouched."""

    def __init__(self, project_id: str, message: str):
        self.project_id = project_id
        super().__init__(f"Failed to write project status for {project_id}: {message}")


class StatusStore(Protocol):
    """What the engines need from persistence."""

    def read(self, project_id: str) -> ProjectStatus | None: ...

    def write(self, project_id: str, status: ProjectStatus) -> None: ...

    def lock(self, project_id: str) -> ContextManager[None]: ...


class JsonStatusStore:
    """StatusStore backed by one JSON file per project."""

    def __init__(self, outputs_dir: Path, lock_timeout: float = 30):
        self.outputs_dir = Path(outputs_dir)
        self.lock_timeout = lock_timeout

    @property
    def projects_dir(self) -> Path:
        return self.outputs_dir / "projects"

    def project_dir(self, project_id: str) -> Path:
        return self.projects_dir / project_id

    def status_path(self, project_id: str) -> Path:
        return self.project_dir(project_id) / STATUS_FILENAME

    def read(self, project_id: str) -> ProjectStatus | None:
        """Load the record. Missing, unparseable or off-schema files read as None."""
        path = self.status_path(project_id)
        if not path.exists():
            return None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            validate_status(data)
            return ProjectStatus.from_dict(data, project_id=project_id)
        except (OSError, json.JSONDecodeError, StatusSchemaError, KeyError, ValueError, TypeError) as e:
            logger.error(f"[STATUS] Error reading status file for {project_id}: {e}")
            return None

    def write(self, project_id: str, status: ProjectStatus) -> None:
        """Atomically replace the record.

        Raises:
            StatusWriteError: lastUpdatedAt unset, schema failure, values JSON
                can't encode, or I/O failure.
        """
        if not status.last_updated_at:
            raise StatusWriteError(project_id, "lastUpdatedAt must be set by the caller")

        path = self.status_path(project_id)
        temp_path = path.with_name(path.name + ".tmp")

        try:
            data = status.to_dict()
            validate_status_before_write(data, path)
            text = json.dumps(data, indent=2)
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(text, encoding="utf-8")
            os.replace(temp_path, path)
        except (OSError, StatusSchemaError, TypeError, ValueError) as e:
            logger.error(f"[STATUS] Failed to write status for {project_id}: {e}")
            _remove_quietly(temp_path)
            raise StatusWriteError(project_id, str(e)) from e

        logger.debug(f"[STATUS] Wrote status for {project_id} ({status.current_phase_key})")

    def lock(self, project_id: str) -> ContextManager[None]:
        return project_lock(self.outputs_dir, project_id, self.lock_timeout)


def _remove_quietly(path: Path) -> None:
    # The real file was never touched, so a leftover temp file is harmless.
    try:
        path.unlink(missing_ok=True)
    except OSError:
        pass


def stamp(status: ProjectStatus, clock: Clock = utc_now) -> ProjectStatus:
    """Set lastUpdatedAt, guaranteeing it moves strictly forward."""
    moment = clock()
    if status.last_updated_at:
        previous = parse_iso(status.last_updated_at)
        if moment <= previous:
            moment = previous + timedelta(microseconds=1)
    status.last_updated_at = to_iso(moment)
    return status


def create_initial_status(
    project_id: str,
    settings: dict | None = None,
    clock: Clock = utc_now,
) -> ProjectStatus:
    """Default record: PM at questions-generate, every phase not started."""
    agents = {
        agent: AgentStatus(
            phases={spec.name: PhaseRecord() for spec in AGENT_PHASES[agent]},
        )
        for agent in WORKING_AGENTS
    }
    status = ProjectStatus(
        project_id=project_id,
        current_agent=Agent.PM,
        agents=agents,
        settings=dict(settings) if settings is not None else dict(DEFAULT_SETTINGS),
        version=STATUS_VERSION,
        created_at=to_iso(clock()),
    )
    status.move_to(first_phase(Agent.PM))
    return status


def get_or_create_status(
    store: StatusStore,
    project_id: str,
    settings: dict | None = None,
    clock: Clock = utc_now,
) -> ProjectStatus:
    """Read the record, initializing and persisting a default one if absent."""
    status = store.read(project_id)
    if status is None:
        logger.info(f"[STATUS] Initializing status for {project_id}")
        status = stamp(create_initial_status(project_id, settings, clock), clock)
        store.write(project_id, status)
    return status
