"""Workflow tables: agent order, per-agent phase lists and phase metadata."""

from dataclasses import dataclass

from specwright.lib.types import Agent, PhaseRef, PhaseStatus, UnknownPhase, WORKING_AGENTS

STATUS_FILENAME = "project_status.json"
STATUS_VERSION = "1.0.0"
CONFIG_FILENAME = "specwright.yaml"

DEFAULT_SETTINGS = {
    "question_depth": "standard",
    "document_length": "standard",
}

AGENT_ORDER = (Agent.PM, Agent.UX, Agent.ENGINEER, Agent.COMPLETE)


@dataclass(frozen=True)
class PhaseSpec:
    """Metadata for one phase.

    entry_status is what the phase record is set to when the cursor
    advances into it; human-required phases start waiting on the user.
    """
    name: str
    requires_human: bool = False
    entry_status: PhaseStatus = PhaseStatus.NOT_STARTED


def _ai(name: str) -> PhaseSpec:
    return PhaseSpec(name)


def _answer(name: str) -> PhaseSpec:
    return PhaseSpec(name, requires_human=True, entry_status=PhaseStatus.AWAITING_USER)


def _review(name: str) -> PhaseSpec:
    return PhaseSpec(name, requires_human=True, entry_status=PhaseStatus.USER_REVIEWING)


# Ordering defines the linear progression within each agent.
AGENT_PHASES: dict[Agent, tuple[PhaseSpec, ...]] = {
    Agent.PM: (
        _ai("questions-generate"),
        _answer("questions-answer"),
        _ai("prd-generate"),
        _review("prd-review"),
    ),
    Agent.UX: (
        _ai("questions-generate"),
        _answer("questions-answer"),
        _ai("design-brief-generate"),
        _review("design-brief-review"),
    ),
    Agent.ENGINEER: (
        _ai("questions-generate"),
        _answer("questions-answer"),
        _ai("spec-generate"),
        _review("spec-review"),
    ),
}


def phase_names(agent: Agent) -> list[str]:
    """Ordered phase names for a working agent."""
    if agent not in AGENT_PHASES:
        raise UnknownPhase(agent.value)
    return [spec.name for spec in AGENT_PHASES[agent]]


def phase_spec(agent: Agent, phase: str) -> PhaseSpec:
    for spec in AGENT_PHASES.get(agent, ()):
        if spec.name == phase:
            return spec
    raise UnknownPhase(phase, agent)


def first_phase(agent: Agent) -> PhaseRef:
    return PhaseRef(agent, AGENT_PHASES[agent][0].name)


def workflow_order() -> list[PhaseRef]:
    """Every phase of every agent in progression order, ending at complete."""
    refs = [PhaseRef(agent, spec.name) for agent in WORKING_AGENTS for spec in AGENT_PHASES[agent]]
    refs.append(PhaseRef(Agent.COMPLETE))
    return refs


def is_human_phase(ref: PhaseRef) -> bool:
    if ref.is_complete:
        return False
    try:
        return phase_spec(ref.agent, ref.phase).requires_human
    except UnknownPhase:
        return False
