"""Workflow cursor state machine using transitions library.

The cursor walks the fixed, linear phase order:

    pm-questions-generate -> ... -> pm-prd-review
    -> ux-questions-generate -> ... -> ux-design-brief-review
    -> engineer-questions-generate -> ... -> engineer-spec-review
    -> complete

One trigger, ``advance``, moves it forward along the TRANSITIONS table. The trigger is guarded
by "the phase being left is complete", so speculative calls are no-ops.
The FSM never persists anything: it mutates the ProjectStatus it wraps and
the engine decides when to write.

Usage:
    from specwright.workflow.fsm import PhaseCursor

    cursor = PhaseCursor(status)
    if cursor.advance(timestamp=now):
        store.write(project_id, status)
"""

import logging
from typing import Callable

from transitions import Machine

from specwright.lib.constants import phase_spec, workflow_order
from specwright.lib.types import PhaseRecord, PhaseRef, PhaseStatus, ProjectStatus, UnknownPhase

logger = logging.getLogger(__name__)


STATES = [ref.key for ref in workflow_order()]

# One guarded "advance" edge per consecutive pair; complete has no outgoing edge.
TRANSITIONS = [
    {"trigger": "advance", "source": src, "dest": dst, "conditions": "current_phase_complete"}
    for src, dst in zip(STATES, STATES[1:])
]


class PhaseCursor:
    """State machine for a project's position in the workflow.

    Wraps the transitions library with workflow-specific logic:
    - Initial state is the status record's current phase
    - Entering a phase applies its entry status from the phase table
    - Logs all transitions
    """

    def __init__(
        self,
        status: ProjectStatus,
        on_transition: Callable[[PhaseRef, PhaseRef], None] | None = None,
    ):
        """Initialize the cursor for a status record.

        Args:
            status: Record to move; mutated in place on advance
            on_transition: Optional callback(from_ref, to_ref) called after transitions

        Raises:
            UnknownPhase: If the record's current phase isn't in the workflow
        """
        self.status = status
        self.on_transition = on_transition

        ref = status.current_phase
        if ref is None or ref.key not in STATES:
            raise UnknownPhase(ref.key if ref else "", status.current_agent)

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial=ref.key,
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    def current_phase_complete(self, event) -> bool:
        """Guard: only a completed phase can be left."""
        record = self.status.phase_record(PhaseRef.parse(event.transition.source))
        return record is not None and record.status is PhaseStatus.COMPLETE

    def on_state_change(self, event) -> None:
        """Callback after any transition: move the record's cursor."""
        source = PhaseRef.parse(event.transition.source)
        dest = PhaseRef.parse(event.transition.dest)
        self.status.move_to(dest)

        if not dest.is_complete:
            spec = phase_spec(dest.agent, dest.phase)
            record = self.status.agents[dest.agent].phases.setdefault(dest.phase, PhaseRecord())
            if spec.requires_human:
                record.status = spec.entry_status
                timestamp = event.kwargs.get("timestamp")
                if timestamp and not record.started_at:
                    record.started_at = timestamp

        logger.info(f"[FSM] {self.status.project_id}: {source} -> {dest}")

        if self.on_transition:
            self.on_transition(source, dest)

    def can_advance(self) -> bool:
        """True unless the cursor is at the terminal state."""
        return "advance" in self.machine.get_triggers(self.state)
