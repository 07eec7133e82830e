"""Tests for specwright.lib.types and specwright.lib.constants."""

import pytest

from specwright.lib.constants import (
    AGENT_PHASES,
    first_phase,
    is_human_phase,
    phase_names,
    phase_spec,
    workflow_order,
)
from specwright.lib.types import (
    Agent,
    AgentState,
    COMPLETE_REF,
    PhaseRef,
    PhaseStatus,
    ProjectStatus,
    UnknownPhase,
)
from specwright.status.store import create_initial_status


class TestPhaseRef:
    """Tests for the composite phase identifier."""

    def test_key_joins_agent_and_phase(self):
        assert PhaseRef(Agent.UX, "design-brief-review").key == "ux-design-brief-review"

    def test_complete_key(self):
        assert COMPLETE_REF.key == "complete"
        assert COMPLETE_REF.is_complete

    def test_parse_splits_on_agent_prefix_not_first_hyphen(self):
        """Phase names contain hyphens; only the agent prefix is stripped."""
        ref = PhaseRef.parse("engineer-questions-generate")
        assert ref.agent is Agent.ENGINEER
        assert ref.phase == "questions-generate"

    def test_parse_complete(self):
        assert PhaseRef.parse("complete") is COMPLETE_REF

    @pytest.mark.parametrize("key", ["", "pm-", "designer-questions-generate", "pm"])
    def test_parse_rejects_unknown(self, key):
        with pytest.raises(UnknownPhase):
            PhaseRef.parse(key)

    def test_refs_are_hashable_and_comparable(self):
        assert PhaseRef(Agent.PM, "prd-review") == PhaseRef.parse("pm-prd-review")
        assert {PhaseRef(Agent.PM, "prd-review"): 1}[PhaseRef.parse("pm-prd-review")] == 1


class TestPhaseTable:
    """Tests for the fixed workflow tables."""

    def test_each_agent_has_four_phases(self):
        for agent in (Agent.PM, Agent.UX, Agent.ENGINEER):
            assert len(phase_names(agent)) == 4

    def test_phase_order(self):
        assert phase_names(Agent.PM) == ["questions-generate", "questions-answer", "prd-generate", "prd-review"]
        assert phase_names(Agent.UX) == ["questions-generate", "questions-answer", "design-brief-generate", "design-brief-review"]
        assert phase_names(Agent.ENGINEER) == ["questions-generate", "questions-answer", "spec-generate", "spec-review"]

    def test_workflow_order_is_thirteen_states(self):
        order = workflow_order()
        assert len(order) == 13
        assert order[0] == PhaseRef(Agent.PM, "questions-generate")
        assert order[4] == PhaseRef(Agent.UX, "questions-generate")
        assert order[-1] == COMPLETE_REF

    def test_human_phases(self):
        """Exactly the answer and review phases need the user."""
        human = [ref.key for ref in workflow_order() if is_human_phase(ref)]
        assert human == [
            "pm-questions-answer", "pm-prd-review",
            "ux-questions-answer", "ux-design-brief-review",
            "engineer-questions-answer", "engineer-spec-review",
        ]

    def test_entry_statuses(self):
        assert phase_spec(Agent.PM, "questions-answer").entry_status is PhaseStatus.AWAITING_USER
        assert phase_spec(Agent.PM, "prd-review").entry_status is PhaseStatus.USER_REVIEWING
        assert phase_spec(Agent.PM, "prd-generate").entry_status is PhaseStatus.NOT_STARTED

    def test_unknown_phase_raises(self):
        with pytest.raises(UnknownPhase) as exc_info:
            phase_spec(Agent.UX, "prd-review")
        assert exc_info.value.agent is Agent.UX

    def test_complete_is_not_a_working_agent(self):
        assert Agent.COMPLETE not in AGENT_PHASES
        with pytest.raises(UnknownPhase):
            phase_names(Agent.COMPLETE)

    def test_first_phase(self):
        assert first_phase(Agent.ENGINEER).key == "engineer-questions-generate"


class TestProjectStatus:
    """Tests for the persisted record shape."""

    def test_current_phase_is_derived_from_agent_cursor(self):
        status = create_initial_status("p1")
        assert status.current_phase_key == "pm-questions-generate"
        status.agents[Agent.PM].current_phase = "prd-generate"
        assert status.current_phase_key == "pm-prd-generate"

    def test_move_to_keeps_both_cursors_in_sync(self):
        status = create_initial_status("p1")
        status.move_to(PhaseRef(Agent.UX, "questions-answer"))
        assert status.current_agent is Agent.UX
        assert status.agents[Agent.UX].current_phase == "questions-answer"
        assert status.current_phase_key == "ux-questions-answer"

    def test_move_to_complete(self):
        status = create_initial_status("p1")
        status.move_to(COMPLETE_REF)
        assert status.is_complete
        assert status.current_phase_key == "complete"

    def test_to_dict_uses_camel_case(self):
        status = create_initial_status("p1")
        status.last_updated_at = "2026-01-01T00:00:00.000000+00:00"
        data = status.to_dict()
        assert data["projectId"] == "p1"
        assert data["currentAgent"] == "pm"
        assert data["currentPhase"] == "pm-questions-generate"
        assert data["agents"]["pm"]["currentPhase"] == "questions-generate"
        assert data["agents"]["ux"]["currentPhase"] is None
        assert data["agents"]["pm"]["phases"]["questions-generate"] == {"status": "not-started"}
        assert data["lastUpdatedAt"] == "2026-01-01T00:00:00.000000+00:00"

    def test_from_dict_round_trip(self):
        status = create_initial_status("p1", settings={"question_depth": "deep"})
        status.icon = {"emoji": "rocket"}
        status.agents[Agent.PM].status = AgentState.IN_PROGRESS
        data = status.to_dict()
        assert ProjectStatus.from_dict(data).to_dict() == data

    def test_unknown_top_level_keys_are_preserved(self):
        data = create_initial_status("p1").to_dict()
        data["customField"] = {"a": 1}
        assert ProjectStatus.from_dict(data).to_dict()["customField"] == {"a": 1}

    def test_from_dict_recovers_agent_cursor_from_composite(self):
        """Records missing the per-agent cursor take it from currentPhase."""
        data = create_initial_status("p1").to_dict()
        data["currentAgent"] = "ux"
        data["currentPhase"] = "ux-design-brief-generate"
        data["agents"]["ux"]["currentPhase"] = None
        status = ProjectStatus.from_dict(data)
        assert status.current_phase == PhaseRef(Agent.UX, "design-brief-generate")

    def test_from_dict_missing_agents_raises(self):
        with pytest.raises(KeyError):
            ProjectStatus.from_dict({"currentAgent": "pm", "currentPhase": "pm-questions-generate"})


class TestAgentStatusRefresh:
    """Tests for recomputing an agent's state from its phases."""

    def test_states(self):
        agent = create_initial_status("p1").agents[Agent.PM]
        order = phase_names(Agent.PM)
        agent.refresh_state(order, "t1")
        assert agent.status is AgentState.NOT_STARTED

        agent.phases["questions-generate"].status = PhaseStatus.AI_WORKING
        agent.refresh_state(order, "t1")
        assert agent.status is AgentState.IN_PROGRESS

        for name in order:
            agent.phases[name].status = PhaseStatus.COMPLETE
        agent.refresh_state(order, "t2")
        assert agent.status is AgentState.COMPLETE
        assert agent.completed_at == "t2"

    def test_reopened_agent_keeps_completed_at(self):
        agent = create_initial_status("p1").agents[Agent.PM]
        order = phase_names(Agent.PM)
        for name in order:
            agent.phases[name].status = PhaseStatus.COMPLETE
        agent.refresh_state(order, "t1")

        agent.phases["prd-generate"].status = PhaseStatus.NOT_STARTED
        agent.refresh_state(order, "t2")
        assert agent.status is AgentState.IN_PROGRESS
        assert agent.completed_at == "t1"

    def test_missing_record_is_not_complete(self):
        agent = create_initial_status("p1").agents[Agent.UX]
        order = phase_names(Agent.UX)
        for name in order:
            agent.phases[name].status = PhaseStatus.COMPLETE
        del agent.phases["design-brief-review"]
        agent.refresh_state(order, "t1")
        assert agent.status is AgentState.IN_PROGRESS
