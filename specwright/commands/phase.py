"""
specwright start/complete/advance/set - Move a project through its phases.
"""

from specwright.lib.config import WorkflowConfig
from specwright.status.locking import LockTimeout
from specwright.status.store import JsonStatusStore, StatusWriteError
from specwright.workflow.engine import PhaseTransitionEngine

# UnknownPhase and bad agent/status names are ValueErrors.
COMMAND_ERRORS = (ValueError, StatusWriteError, LockTimeout)


def _engine(config: WorkflowConfig) -> PhaseTransitionEngine:
    return PhaseTransitionEngine(JsonStatusStore(config.outputs_dir, config.lock_timeout))


def cmd_start(args, config: WorkflowConfig) -> int:
    """Mark the current phase as ai-working."""
    try:
        status = _engine(config).mark_ai_work_started(args.project_id)
    except COMMAND_ERRORS as e:
        print(f"ERROR: {e}")
        return 2
    print(f"{status.project_id}: {status.current_phase_key}")
    return 0


def cmd_complete(args, config: WorkflowConfig) -> int:
    """Complete a phase (the current one by default) and advance."""
    if args.phase and not args.agent:
        print("ERROR: --agent is required with --phase")
        return 2

    engine = _engine(config)
    try:
        if args.phase:
            status = engine.complete_phase_and_advance(args.project_id, args.agent, args.phase)
        else:
            status = engine.mark_ai_work_complete(args.project_id)
    except COMMAND_ERRORS as e:
        print(f"ERROR: {e}")
        return 2
    print(f"{status.project_id}: now at {status.current_phase_key}")
    return 0


def cmd_advance(args, config: WorkflowConfig) -> int:
    """Advance past the current phase if it is complete. Returns 1 if it didn't move."""
    engine = _engine(config)
    try:
        before = engine.get_or_create_status(args.project_id).current_phase_key
        status = engine.advance_to_next_phase(args.project_id)
    except COMMAND_ERRORS as e:
        print(f"ERROR: {e}")
        return 2

    if status.current_phase_key == before:
        print(f"{status.project_id}: still at {before}")
        return 1
    print(f"{status.project_id}: {before} -> {status.current_phase_key}")
    return 0


def cmd_set(args, config: WorkflowConfig) -> int:
    """Set one phase's status without moving the cursor."""
    try:
        status = _engine(config).update_phase_status(args.project_id, args.agent, args.phase, args.status)
    except COMMAND_ERRORS as e:
        print(f"ERROR: {e}")
        return 2
    print(f"{status.project_id}: {args.agent}-{args.phase} = {args.status}")
    return 0
