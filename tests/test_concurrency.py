import threading
import time

import pytest

from discovr.scanners.base_scanner import BaseScanner
from discovr.utils.concurrency import CancellationToken, ConcurrencyGate


class _Scanner(BaseScanner):
    scanner_type = "test"

    def scan(self, session, *args, **kwargs):
        return []


def test_gate_rejects_zero_capacity():
    with pytest.raises(ValueError):
        ConcurrencyGate(0)


def test_gate_slot_releases_on_error():
    gate = ConcurrencyGate(1)
    with pytest.raises(RuntimeError):
        with gate.slot():
            assert gate.in_flight == 1
            raise RuntimeError("boom")
    assert gate.in_flight == 0


@pytest.mark.parametrize("capacity", [1, 5, 50])
def test_dispatch_never_exceeds_gate_capacity(capacity):
    gate = ConcurrencyGate(capacity)
    lock = threading.Lock()
    running = 0
    observed = 0

    def worker(item):
        nonlocal running, observed
        with lock:
            running += 1
            observed = max(observed, running)
        time.sleep(0.002)
        with lock:
            running -= 1

    dispatched = _Scanner()._dispatch(range(200), worker, gate)

    assert dispatched == 200
    assert gate.peak <= capacity
    assert observed <= capacity
    assert gate.in_flight == 0


def test_dispatch_releases_slot_when_worker_raises():
    gate = ConcurrencyGate(2)

    def worker(item):
        raise OSError("probe failed")

    assert _Scanner()._dispatch(range(10), worker, gate) == 10
    assert gate.in_flight == 0


def test_dispatch_stops_when_cancelled():
    token = CancellationToken()
    token.cancel("test")
    seen = []

    assert _Scanner()._dispatch(range(10), seen.append, ConcurrencyGate(4), token) == 0
    assert seen == []


def test_token_with_deadline_cancels_itself():
    token = CancellationToken.with_deadline(0.05)
    try:
        assert token.wait(2.0)
        assert token.reason == "deadline exceeded"
    finally:
        token.dispose()


def test_token_keeps_first_reason():
    token = CancellationToken()
    token.cancel("first")
    token.cancel("second")
    assert token.cancelled
    assert token.reason == "first"
