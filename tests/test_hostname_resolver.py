import socket
import threading

from discovr.config.config_loader import HostnameConfig
from discovr.core.data_models import HostnameResult
from discovr.core.result_store import ScanSession
from discovr.scanners.hostname_resolver import HostnameResolver


class RecordingLookup:
    def __init__(self, answers):
        self.answers = answers
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, ip):
        with self._lock:
            self.calls.append(ip)
        answer = self.answers.get(ip, [])
        if isinstance(answer, Exception):
            raise answer
        return answer


def make_resolver(lookup, timeout=1.0):
    return HostnameResolver(config=HostnameConfig(concurrency=4, timeout=timeout), lookup=lookup)


def test_trailing_dot_is_trimmed_and_first_name_is_fqdn():
    lookup = RecordingLookup({"10.0.0.7": ["printer.lan.", "laserjet.lan."]})
    session = ScanSession()

    results = make_resolver(lookup).resolve(session, ["10.0.0.7"])

    assert results == [HostnameResult("10.0.0.7", ("printer.lan", "laserjet.lan"), "printer.lan", "")]
    assert session.hostname_results.snapshot() == results


def test_lookup_error_is_recorded_as_text():
    lookup = RecordingLookup({"10.0.0.8": socket.herror(1, "Unknown host")})

    (result,) = make_resolver(lookup).resolve(ScanSession(), ["10.0.0.8"])

    assert result.fqdn == ""
    assert result.ptr_names == ()
    assert "Unknown host" in result.error_text


def test_missing_ptr_record_leaves_fields_empty():
    (result,) = make_resolver(RecordingLookup({})).resolve(ScanSession(), ["10.0.0.9"])
    assert result == HostnameResult("10.0.0.9")


def test_duplicates_and_blanks_are_looked_up_once():
    lookup = RecordingLookup({"10.0.0.1": ["gw.lan"]})

    results = make_resolver(lookup).resolve(ScanSession(), ["10.0.0.1", "", "10.0.0.2", "10.0.0.1"])

    assert sorted(lookup.calls) == ["10.0.0.1", "10.0.0.2"]
    assert sorted(r.ip for r in results) == ["10.0.0.1", "10.0.0.2"]


def test_slow_lookup_times_out():
    release = threading.Event()

    def hanging_lookup(ip):
        release.wait(5.0)
        return ["late.lan"]

    try:
        (result,) = make_resolver(hanging_lookup, timeout=0.05).resolve(ScanSession(), ["10.0.0.3"])
    finally:
        release.set()

    assert result.fqdn == ""
    assert "timed out" in result.error_text


def test_no_addresses_means_no_lookups():
    lookup = RecordingLookup({})
    assert make_resolver(lookup).resolve(ScanSession(), []) == []
    assert lookup.calls == []


def test_hung_lookup_does_not_eat_the_next_lookups_timeout():
    release = threading.Event()

    def lookup(ip):
        if ip == "10.0.0.1":
            release.wait(3.0)
            return ["slow.lan"]
        return ["fast.lan"]

    try:
        results = make_resolver(lookup, timeout=0.3).resolve(
            ScanSession(), ["10.0.0.1", "10.0.0.2"], concurrency=1
        )
    finally:
        release.set()

    by_ip = {r.ip: r for r in results}
    assert "timed out" in by_ip["10.0.0.1"].error_text
    assert by_ip["10.0.0.2"].fqdn == "fast.lan"
    assert by_ip["10.0.0.2"].error_text == ""
