"""
Lock management for project status files.

Uses flock on a per-project sidecar lock file so read-modify-write cycles
on the same project are serialized across processes and threads.
"""

import fcntl
import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

LOCK_POLL_INTERVAL_SECONDS = 0.05


class LockTimeout(Exception):
    """Lock acquisition timed out."""
    pass


@contextmanager
def _acquire_lock(lock_file: Path, timeout: float, lock_name: str):
    """
    Internal helper to acquire a file lock.

    Args:
        lock_file: Path to the lock file
        timeout: Seconds to wait for lock
        lock_name: Human-readable name for error messages
    """
    lock_file.parent.mkdir(parents=True, exist_ok=True)

    fd = open(lock_file, 'w')
    start = time.monotonic()

    while True:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            break
        except BlockingIOError:
            if time.monotonic() - start > timeout:
                fd.close()
                raise LockTimeout(f"Could not acquire {lock_name} within {timeout}s")
            time.sleep(LOCK_POLL_INTERVAL_SECONDS)

    try:
        fd.write(f"{os.getpid()}\n")
        fd.flush()
        yield
    finally:
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            fd.close()


@contextmanager
def project_lock(outputs_dir: Path, project_id: str, timeout: float = 30):
    """
    Acquire per-project lock, yield, release on exit.

    Lock files are never deleted: removing them lets two processes hold
    "exclusive" locks on different inodes with the same path.
    """
    lock_file = outputs_dir / "locks" / "projects" / f"{project_id}.lock"
    logger.debug(f"[LOCK] acquiring {lock_file}")
    with _acquire_lock(lock_file, timeout, f"lock for project {project_id}"):
        yield
