"""
Shared data types for the workflow core.

The persisted record is camelCase JSON (project_status.json); these
dataclasses are the in-memory form. Conversion happens only in
to_dict()/from_dict().
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Agent(Enum):
    """Workflow roles, in progression order. COMPLETE is the terminal cursor."""

    PM = "pm"
    UX = "ux"
    ENGINEER = "engineer"
    COMPLETE = "complete"


WORKING_AGENTS = (Agent.PM, Agent.UX, Agent.ENGINEER)


class PhaseStatus(Enum):
    NOT_STARTED = "not-started"
    AI_WORKING = "ai-working"
    AWAITING_USER = "awaiting-user"
    USER_REVIEWING = "user-reviewing"
    COMPLETE = "complete"


class AgentState(Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"


class UnknownPhase(ValueError):
    """Raised for a phase name or composite phase id the workflow doesn't define."""

    def __init__(self, phase: str, agent: Agent | None = None):
        self.phase = phase
        self.agent = agent
        super().__init__(
            f"Unknown phase: {phase}" + (f" (agent: {agent.value})" if agent else "")
        )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    return moment.isoformat(timespec="microseconds")


def parse_iso(value: str) -> datetime:
    """Parse an ISO8601 timestamp. Naive values are taken as UTC."""
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


@dataclass(frozen=True)
class PhaseRef:
    """Structured form of the "<agent>-<phase>" identifier.

    Phase names contain hyphens themselves, so parsing matches on the known
    agent prefix instead of splitting.
    """

    agent: Agent
    phase: str | None = None

    @property
    def key(self) -> str:
        if self.agent is Agent.COMPLETE:
            return Agent.COMPLETE.value
        return f"{self.agent.value}-{self.phase}"

    @property
    def is_complete(self) -> bool:
        return self.agent is Agent.COMPLETE

    @classmethod
    def parse(cls, key: str) -> "PhaseRef":
        if key == Agent.COMPLETE.value:
            return COMPLETE_REF
        for agent in WORKING_AGENTS:
            prefix = f"{agent.value}-"
            if key.startswith(prefix) and len(key) > len(prefix):
                return cls(agent, key[len(prefix):])
        raise UnknownPhase(key)

    def __str__(self) -> str:
        return self.key


COMPLETE_REF = PhaseRef(Agent.COMPLETE)


@dataclass
class PhaseRecord:
    status: PhaseStatus = PhaseStatus.NOT_STARTED
    started_at: str | None = None
    completed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status.value}
        if self.started_at:
            data["startedAt"] = self.started_at
        if self.completed_at:
            data["completedAt"] = self.completed_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PhaseRecord":
        return cls(
            status=PhaseStatus(data.get("status", PhaseStatus.NOT_STARTED.value)),
            started_at=data.get("startedAt"),
            completed_at=data.get("completedAt"),
        )


@dataclass(frozen=True)
class HistoryEntry:
    """One observed phase status change. Frozen: history is append-only."""

    phase: str
    started_at: str
    status: PhaseStatus
    completed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"phase": self.phase, "startedAt": self.started_at}
        if self.completed_at:
            data["completedAt"] = self.completed_at
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryEntry":
        return cls(
            phase=data["phase"],
            started_at=data["startedAt"],
            status=PhaseStatus(data["status"]),
            completed_at=data.get("completedAt"),
        )


@dataclass
class AgentStatus:
    current_phase: str | None = None
    status: AgentState = AgentState.NOT_STARTED
    completed_at: str | None = None
    phases: dict[str, PhaseRecord] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "currentPhase": self.current_phase,
            "status": self.status.value,
        }
        if self.completed_at:
            data["completedAt"] = self.completed_at
        data["phases"] = {name: rec.to_dict() for name, rec in self.phases.items()}
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AgentStatus":
        return cls(
            current_phase=data.get("currentPhase") or None,
            status=AgentState(data.get("status", AgentState.NOT_STARTED.value)),
            completed_at=data.get("completedAt"),
            phases={
                name: PhaseRecord.from_dict(rec)
                for name, rec in (data.get("phases") or {}).items()
            },
        )

    def refresh_state(self, phase_order: list[str], now: str) -> None:
        """Recompute status from the agent's ordered phase list.

        Complete only when every listed phase is complete. completed_at is
        set the first time and never cleared.
        """
        records = [self.phases.get(name) for name in phase_order]
        if all(r is not None and r.status is PhaseStatus.COMPLETE for r in records):
            self.status = AgentState.COMPLETE
            if not self.completed_at:
                self.completed_at = now
        elif any(r is not None and r.status is not PhaseStatus.NOT_STARTED for r in records):
            self.status = AgentState.IN_PROGRESS
        else:
            self.status = AgentState.NOT_STARTED


# Top-level keys owned by ProjectStatus; anything else on disk is carried
# through untouched in ProjectStatus.extra.
_KNOWN_KEYS = {
    "version", "projectId", "currentAgent", "currentPhase", "agents", "history",
    "settings", "icon", "createdAt", "lastUpdatedAt",
}


@dataclass
class ProjectStatus:
    """Root persisted record for one project.

    current_phase is derived from current_agent and that agent's
    current_phase, so the composite id can never disagree with the
    per-agent cursor. Use move_to() to reposition the cursor.
    """

    project_id: str
    current_agent: Agent
    agents: dict[Agent, AgentStatus]
    history: list[HistoryEntry] = field(default_factory=list)
    settings: dict[str, Any] | None = None
    icon: dict[str, Any] | None = None
    version: str = "1.0.0"
    created_at: str | None = None
    last_updated_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def current_phase(self) -> PhaseRef | None:
        """Cursor position, or None if the current agent has no phase set."""
        if self.current_agent is Agent.COMPLETE:
            return COMPLETE_REF
        phase = self.agents[self.current_agent].current_phase
        if not phase:
            return None
        return PhaseRef(self.current_agent, phase)

    @property
    def current_phase_key(self) -> str:
        ref = self.current_phase
        return ref.key if ref else ""

    @property
    def is_complete(self) -> bool:
        return self.current_agent is Agent.COMPLETE

    def move_to(self, ref: PhaseRef) -> None:
        self.current_agent = ref.agent
        if not ref.is_complete:
            self.agents[ref.agent].current_phase = ref.phase

    def phase_record(self, ref: PhaseRef) -> PhaseRecord | None:
        if ref.is_complete:
            return None
        return self.agents[ref.agent].phases.get(ref.phase)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        data.update({
            "version": self.version,
            "projectId": self.project_id,
            "currentAgent": self.current_agent.value,
            "currentPhase": self.current_phase_key,
            "agents": {agent.value: self.agents[agent].to_dict() for agent in WORKING_AGENTS},
            "history": [entry.to_dict() for entry in self.history],
        })
        if self.settings is not None:
            data["settings"] = self.settings
        if self.icon is not None:
            data["icon"] = self.icon
        if self.created_at:
            data["createdAt"] = self.created_at
        if self.last_updated_at:
            data["lastUpdatedAt"] = self.last_updated_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], project_id: str | None = None) -> "ProjectStatus":
        """Build from the persisted shape.

        Raises KeyError/ValueError/TypeError on structurally broken input.
        """
        agents = {
            agent: AgentStatus.from_dict(data["agents"][agent.value])
            for agent in WORKING_AGENTS
        }
        current_agent = Agent(data["currentAgent"])
        status = cls(
            project_id=data.get("projectId") or project_id or "",
            current_agent=current_agent,
            agents=agents,
            history=[HistoryEntry.from_dict(e) for e in data.get("history", [])],
            settings=data.get("settings"),
            icon=data.get("icon"),
            version=data.get("version", "1.0.0"),
            created_at=data.get("createdAt"),
            last_updated_at=data.get("lastUpdatedAt"),
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )
        # Older records may carry a composite phase without the per-agent
        # cursor; recover it from the composite string.
        stored = data.get("currentPhase")
        if stored and current_agent is not Agent.COMPLETE and not agents[current_agent].current_phase:
            ref = PhaseRef.parse(stored)
            if ref.agent is current_agent:
                agents[current_agent].current_phase = ref.phase
        return status
