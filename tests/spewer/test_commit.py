from __future__ import annotations

import threading

import pytest

from docspew.spewer.client import IndexHttpError, IndexServerError, IndexTransportError, UpdateResponse
from docspew.spewer.commit import CommitCoordinator, CommitOutcome, PendingCounter


class _FakeClient:
    def __init__(self, commit_errors: list[Exception] | None = None) -> None:
        self._commit_errors = list(commit_errors or [])
        self.commits = 0

    def add(self, record, commit_within_ms=None) -> UpdateResponse:
        return UpdateResponse(status=0, qtime_ms=1, elapsed_ms=1)

    def commit(self) -> UpdateResponse:
        self.commits += 1
        if self._commit_errors:
            raise self._commit_errors.pop(0)
        return UpdateResponse(status=0, qtime_ms=2, elapsed_ms=3)

    def close(self) -> None:
        pass


class _BlockingClient(_FakeClient):
    """Holds the first commit open until released."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def commit(self) -> UpdateResponse:
        self.entered.set()
        assert self.release.wait(timeout=5.0)
        return super().commit()


def test_pending_counter_is_exact_under_concurrent_increments() -> None:
    counter = PendingCounter()

    def _work() -> None:
        for _ in range(1000):
            counter.increment()

    threads = [threading.Thread(target=_work) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert counter.get() == 8000
    counter.reset()
    assert counter.get() == 0


def test_no_commit_until_pending_exceeds_threshold() -> None:
    client = _FakeClient()
    coordinator = CommitCoordinator(client, threshold=5)

    for _ in range(5):
        coordinator.record_write()
        assert coordinator.maybe_commit(5) is CommitOutcome.SKIPPED

    coordinator.record_write()
    assert coordinator.maybe_commit(5) is CommitOutcome.COMMITTED
    assert client.commits == 1
    assert coordinator.pending == 0


@pytest.mark.parametrize(
    "error",
    [
        IndexServerError("bad reply"),
        IndexHttpError(503, "unavailable"),
        IndexTransportError("connection reset"),
        OSError("socket closed"),
    ],
)
def test_failed_commit_is_logged_and_keeps_pending(error: Exception, caplog) -> None:
    client = _FakeClient(commit_errors=[error])
    coordinator = CommitCoordinator(client, threshold=1)
    coordinator.record_write()
    coordinator.record_write()

    with caplog.at_level("ERROR"):
        outcome = coordinator.maybe_commit(1)

    assert outcome is CommitOutcome.FAILED
    assert coordinator.pending == 2
    assert "Failed to commit to the index" in caplog.text

    # The gate was released, so the retry goes through.
    assert coordinator.maybe_commit(1) is CommitOutcome.COMMITTED
    assert coordinator.pending == 0


def test_http_commit_failure_logs_status_code(caplog) -> None:
    coordinator = CommitCoordinator(_FakeClient(commit_errors=[IndexHttpError(503, "unavailable")]))
    coordinator.record_write()

    with caplog.at_level("ERROR"):
        coordinator.flush()

    assert "HTTP error 503" in caplog.text


def test_flush_commits_anything_pending() -> None:
    client = _FakeClient()
    coordinator = CommitCoordinator(client, threshold=100)

    assert coordinator.flush() is CommitOutcome.SKIPPED
    coordinator.record_write()
    assert coordinator.flush() is CommitOutcome.COMMITTED
    assert client.commits == 1


def test_cancelled_waiter_returns_without_committing_or_holding_gate() -> None:
    client = _BlockingClient()
    coordinator = CommitCoordinator(client)
    coordinator.record_write()

    committer = threading.Thread(target=coordinator.flush)
    committer.start()
    assert client.entered.wait(timeout=5.0)

    cancel = threading.Event()
    outcomes: list[CommitOutcome] = []
    waiter = threading.Thread(target=lambda: outcomes.append(coordinator.maybe_commit(0, cancel=cancel)))
    waiter.start()
    cancel.set()
    waiter.join(timeout=5.0)

    assert not waiter.is_alive()
    assert outcomes == [CommitOutcome.CANCELLED]
    assert cancel.is_set()

    client.release.set()
    committer.join(timeout=5.0)
    assert client.commits == 1

    # The gate is free again for the next committer.
    coordinator.record_write()
    assert coordinator.maybe_commit(0) is CommitOutcome.COMMITTED
    assert client.commits == 2


def test_already_cancelled_signal_skips_the_attempt() -> None:
    client = _FakeClient()
    coordinator = CommitCoordinator(client)
    coordinator.record_write()
    cancel = threading.Event()
    cancel.set()

    assert coordinator.maybe_commit(0, cancel=cancel) is CommitOutcome.CANCELLED
    assert client.commits == 0
    assert coordinator.pending == 1
    assert coordinator.maybe_commit(0) is CommitOutcome.COMMITTED


def test_waiter_without_cancellation_blocks_then_skips() -> None:
    client = _BlockingClient()
    coordinator = CommitCoordinator(client)
    coordinator.record_write()

    committer = threading.Thread(target=coordinator.flush)
    committer.start()
    assert client.entered.wait(timeout=5.0)

    outcomes: list[CommitOutcome] = []
    waiter = threading.Thread(target=lambda: outcomes.append(coordinator.maybe_commit(0)))
    waiter.start()
    waiter.join(timeout=0.2)
    assert waiter.is_alive()

    client.release.set()
    committer.join(timeout=5.0)
    waiter.join(timeout=5.0)

    # The first commit reset the counter, so the second has nothing to do.
    assert outcomes == [CommitOutcome.SKIPPED]
    assert client.commits == 1


def test_negative_threshold_is_rejected() -> None:
    with pytest.raises(ValueError):
        CommitCoordinator(_FakeClient(), threshold=-1)
