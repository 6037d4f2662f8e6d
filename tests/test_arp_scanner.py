import time

import pytest
from scapy.error import Scapy_Exception
from scapy.layers.l2 import ARP, Ether

from discovr.config.config_loader import ARPConfig
from discovr.core.data_models import ArpResult
from discovr.core.result_store import ScanSession
from discovr.scanners.arp_scanner import ARPScanner, build_arp_request
from discovr.utils.error_handler import (
    ArpWriteError,
    DeviceNotFound,
    InterfaceNotFound,
    InvalidTarget,
    LoopbackRejected,
    NetworkTooLarge,
    TargetOutsideInterfaceNetwork,
)

from .fakes import OWN_MAC, FakeCaptureHandle, FakeOpener, arp_reply, arp_request, lan_detector


def make_scanner(detector=None, opener=None, grace_period=0.3):
    config = ARPConfig(concurrency=8, grace_period=grace_period, read_timeout=0.01)
    return ARPScanner(
        config=config,
        detector=detector or lan_detector(),
        capture_opener=opener or FakeOpener(),
    )


def written_targets(handle):
    return [Ether(frame)[ARP].pdst for frame in handle.written]


def test_build_arp_request_is_broadcast_who_has():
    frame = Ether(build_arp_request(OWN_MAC, "10.0.0.5", "10.0.0.9"))
    assert frame.dst == "ff:ff:ff:ff:ff:ff"
    assert frame.type == 0x0806
    assert frame[ARP].op == 1
    assert frame[ARP].hwsrc == OWN_MAC
    assert frame[ARP].psrc == "10.0.0.5"
    assert frame[ARP].hwdst == "00:00:00:00:00:00"
    assert frame[ARP].pdst == "10.0.0.9"


def test_scan_without_target_probes_whole_interface_network():
    opener = FakeOpener()
    scanner = make_scanner(opener=opener, grace_period=0.0)

    scanner.scan(ScanSession(), "eth0")

    targets = written_targets(opener.handle)
    assert len(targets) == 254
    assert set(targets) == {f"10.0.0.{i}" for i in range(1, 255)}
    device, kwargs = opener.calls[0]
    assert device == "eth0"
    assert kwargs["promisc"] is True
    assert kwargs["bpf_filter"] == "arp"
    assert opener.handle.closed


def test_scan_with_narrower_target_stays_inside_it():
    opener = FakeOpener()
    make_scanner(opener=opener, grace_period=0.0).scan(ScanSession(), "eth0", "10.0.0.20/28")

    assert set(written_targets(opener.handle)) == {f"10.0.0.{i}" for i in range(17, 31)}


def test_replies_are_recorded_and_deduplicated():
    mac_a, mac_b = "02:00:00:00:00:07", "02:00:00:00:00:08"
    handle = FakeCaptureHandle(packets=[
        arp_reply("10.0.0.7", mac_a),
        arp_reply("10.0.0.7", mac_a),
        arp_reply("10.0.0.7", mac_b),
        arp_reply("10.0.0.9", "02:00:00:00:00:09"),
    ])
    session = ScanSession()

    results = make_scanner(opener=FakeOpener(handle)).scan(session, "eth0")

    assert sorted(results, key=lambda r: r.key) == [
        ArpResult("eth0", "10.0.0.7", mac_a),
        ArpResult("eth0", "10.0.0.7", mac_b),
        ArpResult("eth0", "10.0.0.9", "02:00:00:00:00:09"),
    ]
    assert session.arp_results.duplicates == 1


def test_own_replies_requests_and_other_traffic_are_ignored():
    handle = FakeCaptureHandle(packets=[
        arp_reply("10.0.0.5", OWN_MAC),
        arp_request("10.0.0.8", "02:00:00:00:00:08"),
        Ether(src="02:00:00:00:00:09", dst=OWN_MAC, type=0x0800),
    ])

    results = make_scanner(opener=FakeOpener(handle)).scan(ScanSession(), "eth0")

    assert results == []


def test_target_outside_interface_network_sends_nothing():
    opener = FakeOpener()
    with pytest.raises(TargetOutsideInterfaceNetwork):
        make_scanner(opener=opener).scan(ScanSession(), "eth0", "192.168.50.0/24")

    assert opener.calls == []
    assert opener.handle.written == []


def test_single_address_target_is_rejected():
    opener = FakeOpener()
    with pytest.raises(InvalidTarget):
        make_scanner(opener=opener).scan(ScanSession(), "eth0", "10.0.0.7")
    assert opener.calls == []


def test_loopback_interface_is_rejected():
    detector = lan_detector(address="127.0.0.1", netmask="255.255.255.0", name="lo")
    with pytest.raises(LoopbackRejected):
        make_scanner(detector=detector).scan(ScanSession(), "lo")


def test_network_larger_than_slash_16_is_rejected():
    detector = lan_detector(netmask="255.254.0.0")
    with pytest.raises(NetworkTooLarge):
        make_scanner(detector=detector).scan(ScanSession(), "eth0")


def test_unknown_interface_is_rejected():
    with pytest.raises(InterfaceNotFound):
        make_scanner().scan(ScanSession(), "wlan9")


def test_missing_capture_device_is_rejected_before_opening():
    detector = lan_detector()
    detector.devices = []
    opener = FakeOpener()
    with pytest.raises(DeviceNotFound):
        make_scanner(detector=detector, opener=opener).scan(ScanSession(), "eth0")
    assert opener.calls == []


def test_write_failure_raises_after_closing_and_skips_grace_window():
    handle = FakeCaptureHandle(
        packets=[arp_reply("10.0.0.7", "02:00:00:00:00:07")],
        write_error=OSError("no buffer space available"),
    )
    session = ScanSession()
    started = time.monotonic()

    with pytest.raises(ArpWriteError):
        make_scanner(opener=FakeOpener(handle), grace_period=10.0).scan(session, "eth0", "10.0.0.0/29")

    assert time.monotonic() - started < 5.0
    assert handle.closed


def test_one_failed_write_does_not_stop_the_others():
    handle = FakeCaptureHandle(fail_for={"10.0.0.3"})

    with pytest.raises(ArpWriteError) as exc:
        make_scanner(opener=FakeOpener(handle), grace_period=0.0).scan(ScanSession(), "eth0", "10.0.0.0/29")

    assert sorted(written_targets(handle)) == ["10.0.0.1", "10.0.0.2", "10.0.0.4", "10.0.0.5", "10.0.0.6"]
    assert isinstance(exc.value.__cause__, OSError)
    assert "10.0.0.3" in str(exc.value.__cause__)
    assert handle.closed


def test_scapy_write_error_is_reported_as_arp_write_error():
    handle = FakeCaptureHandle(write_error=Scapy_Exception("interface is down"))

    with pytest.raises(ArpWriteError) as exc:
        make_scanner(opener=FakeOpener(handle), grace_period=0.0).scan(ScanSession(), "eth0", "10.0.0.0/30")

    assert isinstance(exc.value.__cause__, Scapy_Exception)
    assert handle.closed
