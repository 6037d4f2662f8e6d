import pytest

from discovr.core.data_models import CaptureDevice, ScanMode, ScanStatus, ScanSummary
from discovr.core.result_store import ScanSession
from discovr.main import DiscovrApp, create_argument_parser, main
from discovr.utils.error_handler import ErrorType, TargetOutsideInterfaceNetwork

from .fakes import FakeDetector


class FakeOrchestrator:
    def __init__(self, config=None, logger=None, status=ScanStatus.COMPLETED, error=None, on_run=None):
        self.config = config
        self.status = status
        self.error = error
        self.on_run = on_run
        self.active_calls = []
        self.passive_calls = []

    def _summary(self, mode):
        if self.error is not None:
            raise self.error
        return ScanSummary(mode=mode, status=self.status, duration=0.0, session=ScanSession(),
                           errors=["boom"] if self.status != ScanStatus.COMPLETED else [])

    def run_active_scan(self, target, mode, concurrency, timeout, count, cancel_token):
        self.active_calls.append((target, mode, concurrency, timeout, count))
        if self.on_run is not None:
            self.on_run(cancel_token)
        return self._summary(mode.value)

    def run_passive_scan(self, interface_name, duration, cancel_token=None):
        self.passive_calls.append((interface_name, duration))
        return self._summary("passive")


class Factory:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.instances = []

    def __call__(self, config, logger):
        orchestrator = FakeOrchestrator(config, logger, **self.kwargs)
        self.instances.append(orchestrator)
        return orchestrator


def parse(*argv):
    return create_argument_parser().parse_args(list(argv))


def test_active_flags_are_parsed():
    args = parse("active", "-i", "eth0", "-m", "-r", "10.0.0.0/24", "-p", "100", "-t", "0.5", "-c", "3")
    assert args.command == "active"
    assert args.interface == "eth0"
    assert args.icmp is True
    assert args.cidr == "10.0.0.0/24"
    assert (args.concurrency, args.timeout, args.count) == (100, 0.5, 3)
    assert args.no_hostnames is False


@pytest.mark.parametrize("argv", [
    ["active", "-i", "eth0", "-p", "0"],
    ["active", "-i", "eth0", "-t", "-1"],
    ["passive", "-d", "soon"],
    [],
])
def test_bad_arguments_exit_with_usage_error(argv):
    with pytest.raises(SystemExit) as exc:
        create_argument_parser().parse_args(argv)
    assert exc.value.code == 2


def test_arp_scan_requires_interface():
    with pytest.raises(SystemExit) as exc:
        main(["active"])
    assert exc.value.code == 2


def test_active_scan_passes_overrides_to_orchestrator():
    factory = Factory()
    app = DiscovrApp(orchestrator_factory=factory)

    code = app.run(parse("active", "-i", "eth0", "-r", "10.0.0.0/28", "-p", "5", "--no-hostnames"))

    assert code == 0
    orchestrator = factory.instances[0]
    target, mode, concurrency, timeout, count = orchestrator.active_calls[0]
    assert (target.interface_name, target.target_range) == ("eth0", "10.0.0.0/28")
    assert mode == ScanMode.ARP
    assert (concurrency, timeout, count) == (5, None, None)
    assert orchestrator.config.hostname.enabled is False


def test_passive_scan_falls_back_to_configured_interface_and_duration():
    factory = Factory()
    code = DiscovrApp(orchestrator_factory=factory).run(parse("passive"))

    assert code == 0
    assert factory.instances[0].passive_calls == [("eth0", 30.0)]


def test_configuration_error_exits_with_one():
    factory = Factory(error=TargetOutsideInterfaceNetwork("outside"))
    app = DiscovrApp(orchestrator_factory=factory)

    assert app.run(parse("active", "-i", "eth0", "-r", "192.168.50.0/24")) == 1
    assert app.error_handler.error_statistics[ErrorType.CONFIGURATION_ERROR] == 1


def test_partial_scan_exits_with_one():
    app = DiscovrApp(orchestrator_factory=Factory(status=ScanStatus.PARTIAL))
    assert app.run(parse("active", "-i", "eth0")) == 1


def test_interrupted_scan_exits_with_130():
    factory = Factory(on_run=lambda token: token.cancel("received SIGINT"))
    app = DiscovrApp(orchestrator_factory=factory)
    assert app.run(parse("active", "-m", "-r", "10.0.0.0/24")) == 130


def test_missing_config_dir_is_reported(tmp_path):
    app = DiscovrApp(orchestrator_factory=Factory())
    code = app.run(parse("active", "-i", "eth0", "--config-dir", str(tmp_path / "missing")))
    assert code == 1


def test_interfaces_lists_capture_devices():
    detector = FakeDetector(devices=[CaptureDevice("eth0", "Ethernet", ("10.0.0.5",))])
    assert DiscovrApp(detector=detector).run(parse("interfaces")) == 0


def test_interfaces_without_devices_exits_with_one():
    assert DiscovrApp(detector=FakeDetector()).run(parse("interfaces")) == 1
