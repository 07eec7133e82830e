"""
specwright watch - Block until a file an agent is writing has settled.
"""

from pathlib import Path

from specwright.lib.config import WorkflowConfig
from specwright.lib.watcher import wait_for_completion


def cmd_watch(args, config: WorkflowConfig) -> int:
    """Exit 0 when the file settles, 1 on timeout."""
    path = Path(args.path)
    timeout = args.timeout if args.timeout is not None else config.watch.default_timeout

    print(f"Watching {path} (timeout {timeout:g}s)...")
    if wait_for_completion(path, timeout, args.wait_for_change, config.watch):
        print(f"{path}: complete")
        return 0

    print(f"{path}: timed out after {timeout:g}s")
    return 1
