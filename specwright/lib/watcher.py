"""
Completion detection for files written by an external editor or agent.

The writer gives no signal when it is done, so completion is inferred from
the file's content over time:

- A file that appears from nothing with valid content is done.
- Otherwise the content must differ substantially from the baseline and
  then hold the same hash for several consecutive polls, so a writer that
  is still streaming output is never mistaken for a finished one.
- A file that is already valid when watching starts is done after a short
  grace re-check, unless the caller asked to wait for a change.

Polling is used instead of filesystem events because event delivery is
unreliable for rapid successive writes. Time comes from an injected ticker
so tests can run on virtual time.
"""

import asyncio
import hashlib
import logging
import time
from pathlib import Path
from typing import Protocol

from specwright.lib.config import WatchConfig

logger = logging.getLogger(__name__)


def content_hash(content: bytes) -> str:
    return hashlib.md5(content).hexdigest()


def read_content(path: Path) -> bytes | None:
    """Read the file, or None if it is missing or unreadable right now."""
    try:
        return path.read_bytes()
    except OSError:
        return None


class CompletionDetector:
    """State machine deciding settlement from successive file contents.

    Feed it the content captured at watch start via begin(), then every
    polled content via observe(). Both return True once settled.
    """

    def __init__(self, config: WatchConfig | None = None, wait_for_change: bool = False):
        self.config = config or WatchConfig()
        self.wait_for_change = wait_for_change
        self.baseline_hash: str | None = None
        self.baseline_length = 0
        self.baseline_confirmed = False
        self.last_seen_hash: str | None = None
        self.stable_polls = 0
        self.settled = False

    def is_valid(self, content: bytes) -> bool:
        return len(content) > self.config.min_valid_length

    def is_substantial_change(self, content: bytes) -> bool:
        return abs(len(content) - self.baseline_length) > self.config.min_change_length

    def _set_baseline(self, content: bytes, digest: str) -> None:
        self.baseline_hash = digest
        self.baseline_length = len(content)
        self.last_seen_hash = digest

    def begin(self, content: bytes | None) -> bool:
        """Record the initial content.

        Returns True when the file is already valid and the caller should
        run the grace re-check (confirm_existing) before polling.
        """
        if content is None:
            return False
        self._set_baseline(content, content_hash(content))
        return not self.wait_for_change and self.is_valid(content)

    def confirm_existing(self, content: bytes | None) -> bool:
        """Grace re-check: settle if the pre-existing valid content is unchanged."""
        if content is not None and self.is_valid(content) and content_hash(content) == self.baseline_hash:
            self.settled = True
        return self.settled

    def observe(self, content: bytes) -> bool:
        """Process one poll."""
        if self.settled:
            return True

        digest = content_hash(content)

        if self.baseline_hash is None:
            # File appeared from nothing.
            if self.is_valid(content):
                self.settled = True
                return True
            self._set_baseline(content, digest)
            return False

        if digest != self.baseline_hash and self.is_substantial_change(content):
            if digest == self.last_seen_hash:
                self.stable_polls += 1
                if self.stable_polls >= self.config.stability_checks:
                    self.settled = True
            else:
                self.stable_polls = 0
                self.last_seen_hash = digest
        elif digest == self.last_seen_hash:
            if not self.baseline_confirmed:
                logger.debug("[WATCH] baseline confirmed")
            self.baseline_confirmed = True
        else:
            self.stable_polls = 0
            self.last_seen_hash = digest

        return self.settled


class Ticker(Protocol):
    """Time source for the poll loop."""

    def now(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class MonotonicTicker:
    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


async def watch_for_completion(
    path: Path | str,
    timeout: float | None = None,
    wait_for_change: bool = False,
    config: WatchConfig | None = None,
    ticker: Ticker | None = None,
) -> bool:
    """Wait until the file at path holds completed content.

    Args:
        path: File to watch; it does not need to exist yet
        timeout: Seconds before giving up (default: config.default_timeout)
        wait_for_change: Require a change from the current content even if
            it is already valid (refinement runs over existing output)
        config: Detector thresholds
        ticker: Time source (default: monotonic clock + asyncio.sleep)

    Returns:
        True once settled, False if the timeout elapsed first.
    """
    path = Path(path)
    config = config or WatchConfig()
    ticker = ticker or MonotonicTicker()
    timeout = config.default_timeout if timeout is None else timeout
    deadline = ticker.now() + timeout
    detector = CompletionDetector(config, wait_for_change)

    async def pause(seconds: float) -> bool:
        """Sleep without overshooting the deadline. False once it has passed."""
        remaining = deadline - ticker.now()
        if remaining <= 0:
            return False
        await ticker.sleep(min(seconds, remaining))
        return ticker.now() < deadline

    logger.debug(f"[WATCH] watching {path} (timeout={timeout}s, wait_for_change={wait_for_change})")

    if detector.begin(read_content(path)):
        if not await pause(config.grace_period):
            logger.info(f"[WATCH] timed out waiting for {path}")
            return False
        if detector.confirm_existing(read_content(path)):
            logger.info(f"[WATCH] {path} already complete")
            return True

    while True:
        content = read_content(path)
        if content is not None and detector.observe(content):
            logger.info(f"[WATCH] {path} settled")
            return True
        if not await pause(config.poll_interval):
            logger.info(f"[WATCH] timed out waiting for {path}")
            return False


def wait_for_completion(
    path: Path | str,
    timeout: float | None = None,
    wait_for_change: bool = False,
    config: WatchConfig | None = None,
) -> bool:
    """Blocking wrapper around watch_for_completion for synchronous callers."""
    return asyncio.run(watch_for_completion(path, timeout, wait_for_change, config))
