import threading
import time

import pytest

from discovr.config.config_loader import PassiveConfig
from discovr.core.data_models import PassiveResult
from discovr.core.result_store import ScanSession
from discovr.scanners.passive_capture import PassiveCapture
from discovr.utils.concurrency import CancellationToken
from discovr.utils.error_handler import CaptureOpenError, NetworkDetectionError

from .fakes import OWN_MAC, FakeCaptureHandle, FakeDetector, FakeOpener, bare_ipv4_packet, ipv4_frame

LOCAL = "10.0.0.5"


def make_capture(opener, detector=None):
    config = PassiveConfig(interface="eth0", duration=0.3, read_timeout=0.02)
    return PassiveCapture(
        config=config,
        detector=detector or FakeDetector(local_addresses=[LOCAL, "192.168.1.10"]),
        capture_opener=opener,
    )


def passive_threads():
    return [t for t in threading.enumerate() if t.name.startswith("passive-") and t.is_alive()]


def test_workers_are_finished_and_handle_closed_after_duration():
    opener = FakeOpener()
    started = time.monotonic()

    make_capture(opener).capture(ScanSession(), "eth0", 0.3)

    assert time.monotonic() - started >= 0.3
    assert opener.handle.closed
    assert opener.handle.close_calls == 1
    assert passive_threads() == []


def test_opens_non_promiscuous_listen_only_capture():
    opener = FakeOpener()
    make_capture(opener).capture(ScanSession(), "eth1", 0.1)

    device, kwargs = opener.calls[0]
    assert device == "eth1"
    assert kwargs == {"snaplen": 1024, "promisc": False, "listen_only": True}


def test_records_first_sighting_of_peers_talking_to_local_addresses():
    handle = FakeCaptureHandle(packets=[
        ipv4_frame("10.0.0.7", LOCAL, proto=1),
        ipv4_frame("10.0.0.8", "10.0.0.200"),
        ipv4_frame("10.0.0.7", LOCAL, src_mac="02:00:00:00:00:77", proto=6),
        bare_ipv4_packet("10.0.0.9", "192.168.1.10"),
    ])
    session = ScanSession()

    results = make_capture(FakeOpener(handle)).capture(session, "eth0", 0.3)

    assert sorted(results, key=lambda r: r.src_ip) == [
        PassiveResult("10.0.0.7", 1, "02:00:00:00:00:07", OWN_MAC, 0x0800),
        PassiveResult("10.0.0.9", 17, None, None, None),
    ]
    assert session.passive_results.duplicates == 0


def test_open_failure_is_raised_without_waiting_for_duration():
    opener = FakeOpener(error=CaptureOpenError("no such device"))
    capture = make_capture(opener)
    started = time.monotonic()

    with pytest.raises(CaptureOpenError):
        capture.capture(ScanSession(), "eth0", 5.0)

    assert time.monotonic() - started < 2.0
    assert passive_threads() == []


def test_local_address_failure_aborts_before_opening():
    opener = FakeOpener()
    detector = FakeDetector(local_error=NetworkDetectionError("psutil failed"))

    with pytest.raises(NetworkDetectionError):
        make_capture(opener, detector).capture(ScanSession(), "eth0", 0.1)
    assert opener.calls == []


def test_external_cancellation_ends_capture_early():
    opener = FakeOpener()
    token = CancellationToken()
    token.cancel("test")
    started = time.monotonic()

    make_capture(opener).capture(ScanSession(), "eth0", 5.0, cancel_token=token)

    assert time.monotonic() - started < 2.0
    assert opener.handle.closed
    assert passive_threads() == []
