"""Threshold-driven, mutually exclusive commits shared by concurrent writers."""

from __future__ import annotations

from enum import Enum
import logging
import threading

from docspew.spewer.client import IndexClient, IndexHttpError, IndexServerError, IndexTransportError

logger = logging.getLogger(__name__)

# How often a cancellable waiter re-checks its cancellation signal.
_GATE_POLL_SECONDS = 0.05


class CommitOutcome(str, Enum):
    COMMITTED = "committed"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PendingCounter:
    """Count of documents written since the last successful commit."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    def get(self) -> int:
        with self._lock:
            return self._value

    def reset(self) -> None:
        with self._lock:
            self._value = 0


class CommitCoordinator:
    """Commits once more than ``threshold`` writes are pending, one committer at a time.

    Commit failures are logged and absorbed: the documents were already
    written, and the pending count carries over to the next attempt.
    """

    def __init__(self, client: IndexClient, threshold: int = 0) -> None:
        if threshold < 0:
            raise ValueError("commit threshold cannot be negative")
        self._client = client
        self._threshold = threshold
        self._pending = PendingCounter()
        self._gate = threading.Lock()

    @property
    def threshold(self) -> int:
        return self._threshold

    @threshold.setter
    def threshold(self, value: int) -> None:
        if value < 0:
            raise ValueError("commit threshold cannot be negative")
        self._threshold = value

    @property
    def pending(self) -> int:
        return self._pending.get()

    def record_write(self) -> int:
        return self._pending.increment()

    def flush(self, cancel: threading.Event | None = None) -> CommitOutcome:
        return self.maybe_commit(0, cancel=cancel)

    def maybe_commit(self, threshold: int, cancel: threading.Event | None = None) -> CommitOutcome:
        if not self._acquire_gate(cancel):
            logger.warning("Interrupted while waiting to commit.")
            return CommitOutcome.CANCELLED

        try:
            if self._pending.get() <= threshold:
                return CommitOutcome.SKIPPED
            return self._commit()
        finally:
            self._gate.release()

    def _acquire_gate(self, cancel: threading.Event | None) -> bool:
        if cancel is None:
            return self._gate.acquire()

        while not cancel.is_set():
            if self._gate.acquire(timeout=_GATE_POLL_SECONDS):
                return True
        return False

    def _commit(self) -> CommitOutcome:
        logger.warning("Committing to the index.")
        try:
            response = self._client.commit()
        except IndexServerError:
            logger.error("Failed to commit to the index. A server-side error occurred.", exc_info=True)
            return CommitOutcome.FAILED
        except IndexHttpError as exc:
            logger.error("Failed to commit to the index. HTTP error %d was returned.", exc.status_code, exc_info=True)
            return CommitOutcome.FAILED
        except (IndexTransportError, OSError):
            logger.error("Failed to commit to the index. There was an error communicating with the server.", exc_info=True)
            return CommitOutcome.FAILED

        self._pending.reset()
        logger.warning("Committed to the index in %dms.", response.elapsed_ms)
        return CommitOutcome.COMMITTED
