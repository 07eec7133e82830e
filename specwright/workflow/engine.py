"""Phase transition engine.

All mutations of workflow progress go through here. Each public operation
is one read-modify-write cycle on the project's status record, run under
the store's per-project lock and persisted with at most one write.
"""

import logging

from specwright.lib.constants import AGENT_PHASES, is_human_phase, phase_names, phase_spec
from specwright.lib.types import (
    Agent,
    HistoryEntry,
    PhaseRecord,
    PhaseStatus,
    ProjectStatus,
    UnknownPhase,
    to_iso,
    utc_now,
)
from specwright.status.store import Clock, StatusStore, get_or_create_status, stamp
from specwright.workflow.fsm import PhaseCursor

logger = logging.getLogger(__name__)


def _parse_agent(agent: Agent | str) -> Agent:
    agent = Agent(agent)
    if agent not in AGENT_PHASES:
        raise UnknownPhase(agent.value)
    return agent


def _parse_status(status: PhaseStatus | str) -> PhaseStatus:
    return PhaseStatus(status)


def is_human_input_required(status: ProjectStatus) -> bool:
    """True when the current phase can only be completed by the user."""
    ref = status.current_phase
    return ref is not None and is_human_phase(ref)


class PhaseTransitionEngine:
    """Advances project status through the PM -> UX -> Engineer workflow."""

    def __init__(self, store: StatusStore, clock: Clock = utc_now):
        self.store = store
        self.clock = clock

    # -- reads -------------------------------------------------------------

    def get_or_create_status(self, project_id: str, settings: dict | None = None) -> ProjectStatus:
        with self.store.lock(project_id):
            return get_or_create_status(self.store, project_id, settings, self.clock)

    # -- operations --------------------------------------------------------

    def update_phase_status(
        self,
        project_id: str,
        agent: Agent | str,
        phase: str,
        new_status: PhaseStatus | str,
    ) -> ProjectStatus:
        """Set one phase's status and persist.

        Raises:
            UnknownPhase: phase is not in the agent's phase list
            StatusWriteError: persisting failed
        """
        agent = _parse_agent(agent)
        new_status = _parse_status(new_status)
        phase_spec(agent, phase)

        with self.store.lock(project_id):
            status = self._load(project_id)
            self._apply_phase_status(status, agent, phase, new_status)
            return self._save(project_id, status)

    def advance_to_next_phase(self, project_id: str) -> ProjectStatus:
        """Move the cursor past the current phase if that phase is complete.

        A no-op (nothing written) at the terminal state or while the current
        phase is still open, so callers may call it speculatively.
        """
        with self.store.lock(project_id):
            status = self._load(project_id)
            if self._apply_advance(status):
                self._save(project_id, status)
            return status

    def complete_phase_and_advance(self, project_id: str, agent: Agent | str, phase: str) -> ProjectStatus:
        """Mark a phase complete and advance, with a single write."""
        agent = _parse_agent(agent)
        phase_spec(agent, phase)

        with self.store.lock(project_id):
            status = self._load(project_id)
            self._complete_and_advance(status, agent, phase)
            return self._save(project_id, status)

    def mark_ai_work_started(self, project_id: str) -> ProjectStatus:
        """Flag the current phase as ai-working."""
        with self.store.lock(project_id):
            status = self._load(project_id)
            ref = status.current_phase
            if status.is_complete or ref is None:
                logger.debug(f"[ENGINE] {project_id}: nothing to start ({status.current_phase_key or 'no phase'})")
                return status

            logger.info(f"[ENGINE] {project_id}: AI work started on {ref}")
            self._apply_phase_status(status, ref.agent, ref.phase, PhaseStatus.AI_WORKING)
            return self._save(project_id, status)

    def mark_ai_work_complete(self, project_id: str) -> ProjectStatus:
        """Complete the current phase and advance to the next one."""
        with self.store.lock(project_id):
            status = self._load(project_id)
            ref = status.current_phase
            if status.is_complete or ref is None:
                logger.debug(f"[ENGINE] {project_id}: nothing to complete ({status.current_phase_key or 'no phase'})")
                return status

            logger.info(f"[ENGINE] {project_id}: AI work complete on {ref}")
            self._complete_and_advance(status, ref.agent, ref.phase)
            return self._save(project_id, status)

    def update_settings(self, project_id: str, settings: dict) -> ProjectStatus:
        with self.store.lock(project_id):
            status = self._load(project_id)
            status.settings = dict(settings)
            return self._save(project_id, status)

    def update_icon(self, project_id: str, icon: dict | None) -> ProjectStatus:
        """Set the project icon, or remove it when icon is None."""
        with self.store.lock(project_id):
            status = self._load(project_id)
            status.icon = dict(icon) if icon is not None else None
            return self._save(project_id, status)

    # -- in-memory steps ---------------------------------------------------

    def _load(self, project_id: str) -> ProjectStatus:
        return get_or_create_status(self.store, project_id, clock=self.clock)

    def _save(self, project_id: str, status: ProjectStatus) -> ProjectStatus:
        stamp(status, self.clock)
        self.store.write(project_id, status)
        return status

    def _now(self) -> str:
        return to_iso(self.clock())

    def _complete_and_advance(self, status: ProjectStatus, agent: Agent, phase: str) -> None:
        self._apply_phase_status(status, agent, phase, PhaseStatus.COMPLETE)
        self._apply_advance(status)

    def _apply_phase_status(
        self,
        status: ProjectStatus,
        agent: Agent,
        phase: str,
        new_status: PhaseStatus,
    ) -> None:
        agent_status = status.agents[agent]
        record = agent_status.phases.setdefault(phase, PhaseRecord())
        old_status = record.status
        now = self._now()

        record.status = new_status
        if new_status is not PhaseStatus.NOT_STARTED and not record.started_at:
            record.started_at = now
        if new_status is PhaseStatus.COMPLETE and not record.completed_at:
            record.completed_at = now

        if old_status is not new_status:
            status.history.append(HistoryEntry(
                phase=f"{agent.value}-{phase}",
                started_at=record.started_at or now,
                completed_at=record.completed_at,
                status=new_status,
            ))
            logger.debug(f"[ENGINE] {status.project_id}: {agent.value}-{phase} {old_status.value} -> {new_status.value}")

        self._refresh_agent_state(status, agent, now)

    def _refresh_agent_state(self, status: ProjectStatus, agent: Agent, now: str) -> None:
        status.agents[agent].refresh_state(phase_names(agent), now)

    def _apply_advance(self, status: ProjectStatus) -> bool:
        """Advance the cursor in memory. Returns True if it moved."""
        if status.is_complete:
            return False

        try:
            cursor = PhaseCursor(status)
        except UnknownPhase as e:
            logger.error(f"[ENGINE] {status.project_id}: cannot advance: {e}")
            return False

        if not cursor.can_advance():
            return False

        moved = cursor.advance(timestamp=self._now())
        if not moved:
            logger.debug(f"[ENGINE] {status.project_id}: {status.current_phase_key} not complete, staying put")
        return moved
