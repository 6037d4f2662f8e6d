import threading

from discovr.core.data_models import ArpResult, IcmpResult
from discovr.core.result_store import ResultStore, ScanSession


def test_add_rejects_duplicate_key():
    store = ResultStore("ICMP", key=lambda r: r.ip)
    assert store.add(IcmpResult("10.0.0.1", 0.01))
    assert not store.add(IcmpResult("10.0.0.1", 0.02))
    assert len(store) == 1
    assert store.duplicates == 1
    assert store.snapshot()[0].average_rtt == 0.01
    assert "10.0.0.1" in store


def test_snapshot_is_a_copy():
    store = ResultStore("ICMP", key=lambda r: r.ip)
    store.add(IcmpResult("10.0.0.1", 0.01))
    snapshot = store.snapshot()
    snapshot.clear()
    assert len(store) == 1


def test_concurrent_adds_keep_one_item_per_key():
    store = ResultStore("ICMP", key=lambda r: r.ip)
    barrier = threading.Barrier(8)

    def add_all():
        barrier.wait()
        for i in range(100):
            store.add(IcmpResult(f"10.0.{i // 256}.{i % 256}", 0.001))

    threads = [threading.Thread(target=add_all) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(store) == 100
    assert len(store.keys()) == 100
    assert store.duplicates == 700


def test_arp_key_includes_mac():
    session = ScanSession()
    assert session.arp_results.add(ArpResult("eth0", "10.0.0.7", "02:00:00:00:00:07"))
    assert session.arp_results.add(ArpResult("eth0", "10.0.0.7", "02:00:00:00:00:08"))
    assert not session.arp_results.add(ArpResult("eth0", "10.0.0.7", "02:00:00:00:00:07"))
    assert len(session.arp_results) == 2


def test_discovered_addresses_is_ordered_union():
    session = ScanSession()
    session.arp_results.add(ArpResult("eth0", "10.0.0.7", "02:00:00:00:00:07"))
    session.arp_results.add(ArpResult("eth0", "10.0.0.7", "02:00:00:00:00:08"))
    session.arp_results.add(ArpResult("eth0", "", "02:00:00:00:00:09"))
    session.icmp_results.add(IcmpResult("10.0.0.9", 0.01))
    session.icmp_results.add(IcmpResult("10.0.0.7", 0.01))

    assert session.discovered_addresses() == ["10.0.0.7", "10.0.0.9"]


def test_sessions_are_independent():
    first, second = ScanSession(), ScanSession()
    first.icmp_results.add(IcmpResult("10.0.0.1", 0.01))
    assert len(second.icmp_results) == 0
