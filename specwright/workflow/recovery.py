"""Validation and recovery of recorded workflow state.

Human phases (``*-questions-answer``, ``*-review``) assume their inputs
exist on disk. This module cross-checks that claim and, when the record
has drifted from reality, moves the cursor back to the phase that
produces the missing artifact.

Call validate_and_recover_phase() before trusting current_phase to decide
what to show or run next.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from specwright.lib.config import ValidationConfig
from specwright.lib.constants import phase_names
from specwright.lib.types import (
    Agent,
    PhaseRecord,
    PhaseRef,
    PhaseStatus,
    ProjectStatus,
    WORKING_AGENTS,
    to_iso,
    utc_now,
)
from specwright.status.store import Clock, StatusStore, get_or_create_status, stamp
from specwright.workflow.artifacts import (
    document_path,
    markdown_file_ok,
    questions_file_ok,
    questions_path,
)

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    is_valid: bool
    missing_files: list[Path] = field(default_factory=list)
    reason: str | None = None
    suggested_phase: PhaseRef | None = None


@dataclass(frozen=True)
class ArtifactRule:
    """One artifact a phase depends on, and where to fall back if it's bad."""
    phase: PhaseRef
    label: str
    locate: Callable[[Path], Path]
    check: Callable[[Path, ValidationConfig], bool]
    fallback: PhaseRef


def _questions_rule(agent: Agent, label: str) -> ArtifactRule:
    return ArtifactRule(
        phase=PhaseRef(agent, "questions-answer"),
        label=f"{label} questions file",
        locate=lambda project_dir: questions_path(project_dir, agent),
        check=lambda path, config: questions_file_ok(path),
        fallback=PhaseRef(agent, "questions-generate"),
    )


def _document_rule(agent: Agent, phase: str, document: str, label: str, fallback: str) -> ArtifactRule:
    return ArtifactRule(
        phase=PhaseRef(agent, phase),
        label=f"{label} file",
        locate=lambda project_dir: document_path(project_dir, document),
        check=lambda path, config: markdown_file_ok(path, config.min_length(document)),
        fallback=PhaseRef(agent, fallback),
    )


PHASE_RULES: dict[PhaseRef, list[ArtifactRule]] = {
    PhaseRef(Agent.PM, "questions-answer"): [_questions_rule(Agent.PM, "PM")],
    PhaseRef(Agent.PM, "prd-review"): [
        _document_rule(Agent.PM, "prd-review", "prd", "PRD", "prd-generate"),
    ],
    PhaseRef(Agent.UX, "questions-answer"): [_questions_rule(Agent.UX, "UX")],
    PhaseRef(Agent.UX, "design-brief-review"): [
        _document_rule(Agent.UX, "design-brief-review", "design_brief", "Design brief", "design-brief-generate"),
    ],
    PhaseRef(Agent.ENGINEER, "questions-answer"): [_questions_rule(Agent.ENGINEER, "Engineer")],
    PhaseRef(Agent.ENGINEER, "spec-review"): [
        _document_rule(Agent.ENGINEER, "spec-review", "technical_specification", "Technical specification", "spec-generate"),
    ],
}


@dataclass
class DriftReport:
    has_drift: bool
    issues: list[str] = field(default_factory=list)


def validate_phase_artifacts(
    project_dir: Path,
    phase: PhaseRef | str,
    config: ValidationConfig | None = None,
) -> ValidationResult:
    """Check the artifacts the given phase depends on.

    Phases without rules (generate phases, complete) are always valid.
    """
    config = config or ValidationConfig()
    ref = PhaseRef.parse(phase) if isinstance(phase, str) else phase

    rules = PHASE_RULES.get(ref)
    if not rules:
        return ValidationResult(is_valid=True)

    for rule in rules:
        path = rule.locate(project_dir)
        if not rule.check(path, config):
            logger.debug(f"[RECOVERY] {ref}: {rule.label} missing or incomplete at {path}")
            return ValidationResult(
                is_valid=False,
                missing_files=[path],
                reason=f"{rule.label} is missing or incomplete",
                suggested_phase=rule.fallback,
            )

    return ValidationResult(is_valid=True)


def _has_user_reviewing(status: ProjectStatus) -> bool:
    for agent in WORKING_AGENTS:
        agent_status = status.agents[agent]
        if not agent_status.current_phase:
            continue
        record = agent_status.phases.get(agent_status.current_phase)
        if record is not None and record.status is PhaseStatus.USER_REVIEWING:
            return True
    return False


class RecoveryEngine:
    """Validates recorded phases against the filesystem and self-heals."""

    def __init__(
        self,
        store: StatusStore,
        projects_dir: Path,
        config: ValidationConfig | None = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.projects_dir = Path(projects_dir)
        self.config = config or ValidationConfig()
        self.clock = clock

    def project_dir(self, project_id: str) -> Path:
        return self.projects_dir / project_id

    def validate_current_phase(self, project_id: str, current_phase: PhaseRef | str) -> ValidationResult:
        return validate_phase_artifacts(self.project_dir(project_id), current_phase, self.config)

    def validate_and_recover_phase(self, project_id: str) -> ProjectStatus:
        """Revert the cursor to a generate phase if its output is missing.

        Phases under active user review are never rolled back: they can be
        advanced by side channels the validator can't observe.
        """
        with self.store.lock(project_id):
            status = get_or_create_status(self.store, project_id, clock=self.clock)
            ref = status.current_phase
            if status.is_complete or ref is None:
                return status

            result = self.validate_current_phase(project_id, ref)
            if result.is_valid:
                logger.debug(f"[RECOVERY] {project_id}: {ref} is valid")
                return status

            if _has_user_reviewing(status):
                logger.info(f"[RECOVERY] {project_id}: skipping recovery, a phase is user-reviewing ({result.reason})")
                return status

            if result.suggested_phase is None:
                return status

            target = result.suggested_phase
            logger.warning(f"[RECOVERY] {project_id}: {ref} invalid ({result.reason}), reverting to {target}")

            status.move_to(target)
            record = status.agents[target.agent].phases.setdefault(target.phase, PhaseRecord())
            record.status = PhaseStatus.NOT_STARTED
            status.agents[target.agent].refresh_state(phase_names(target.agent), to_iso(self.clock()))

            stamp(status, self.clock)
            self.store.write(project_id, status)
            return status

    def check_for_drift(self, project_id: str) -> DriftReport:
        """Report completed generate phases whose artifacts are gone. Read-only."""
        status = self.store.read(project_id)
        if status is None:
            return DriftReport(has_drift=False)

        project_dir = self.project_dir(project_id)
        issues = []
        rules = [rule for phase_rules in PHASE_RULES.values() for rule in phase_rules]
        for rule in rules:
            # The fallback phase is the one that produces the artifact.
            source = rule.fallback
            record = status.phase_record(source)
            if record is None or record.status is not PhaseStatus.COMPLETE:
                continue
            path = rule.locate(project_dir)
            if not rule.check(path, self.config):
                issues.append(f"{source}: {rule.label} is missing or incomplete ({path})")

        return DriftReport(has_drift=bool(issues), issues=issues)
