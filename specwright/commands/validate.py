"""
specwright validate/drift - Check recorded progress against files on disk.
"""

from specwright.lib.config import WorkflowConfig
from specwright.status.locking import LockTimeout
from specwright.status.store import JsonStatusStore, StatusWriteError
from specwright.workflow.recovery import RecoveryEngine


def _recovery(config: WorkflowConfig) -> tuple[JsonStatusStore, RecoveryEngine]:
    store = JsonStatusStore(config.outputs_dir, config.lock_timeout)
    return store, RecoveryEngine(store, config.projects_dir, config.validation)


def cmd_validate(args, config: WorkflowConfig) -> int:
    """Validate the current phase; with --recover, roll back if invalid.

    Exit codes: 0 valid (or recovered), 1 invalid, 2 error.
    """
    store, recovery = _recovery(config)

    if args.recover:
        try:
            before = store.read(args.project_id)
            status = recovery.validate_and_recover_phase(args.project_id)
        except (StatusWriteError, LockTimeout) as e:
            print(f"ERROR: {e}")
            return 2
        before_key = before.current_phase_key if before else None
        if before_key and before_key != status.current_phase_key:
            print(f"{args.project_id}: recovered {before_key} -> {status.current_phase_key}")
        else:
            print(f"{args.project_id}: {status.current_phase_key} ok")
        return 0

    status = store.read(args.project_id)
    if status is None:
        print(f"ERROR: No readable status for project '{args.project_id}'")
        return 2
    if status.current_phase is None:
        print(f"ERROR: Project '{args.project_id}' has no current phase")
        return 2

    result = recovery.validate_current_phase(args.project_id, status.current_phase)
    if result.is_valid:
        print(f"{args.project_id}: {status.current_phase_key} ok")
        return 0

    print(f"{args.project_id}: {status.current_phase_key} invalid: {result.reason}")
    for path in result.missing_files:
        print(f"  missing: {path}")
    if result.suggested_phase:
        print(f"  suggested phase: {result.suggested_phase}")
    return 1


def cmd_drift(args, config: WorkflowConfig) -> int:
    """Report completed phases whose outputs are gone. Read-only."""
    _, recovery = _recovery(config)
    report = recovery.check_for_drift(args.project_id)
    if not report.has_drift:
        print(f"{args.project_id}: no drift")
        return 0

    print(f"{args.project_id}: {len(report.issues)} issue(s)")
    for issue in report.issues:
        print(f"  - {issue}")
    return 1
