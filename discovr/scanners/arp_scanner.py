"""
ARP Scanner implementation for discovr.

This module implements link-layer discovery: it validates the interface and
target range, opens a live capture on the matching device, broadcasts one
ARP who-has per candidate address with bounded parallelism, and records the
replies as they come back.
"""

import ipaddress
import threading
import time
from typing import Callable, List, Optional

from scapy.arch import get_if_hwaddr
from scapy.layers.l2 import ARP, Ether

from .base_scanner import BaseScanner
from ..config.config_loader import ARPConfig
from ..core.data_models import ArpResult, InterfaceNetwork
from ..core.network_detector import NetworkDetector
from ..core.result_store import ScanSession
from ..utils.capture import CaptureHandle, open_live
from ..utils.concurrency import ConcurrencyGate
from ..utils.error_handler import (
    ArpWriteError,
    ErrorType,
    InvalidTarget,
    LoopbackRejected,
    NetworkTooLarge,
    TargetOutsideInterfaceNetwork,
    build_context,
)
from ..utils.logger import Logger
from ..utils.network_utils import (
    align_to_network,
    enumerate_hosts,
    is_subnet_within,
    parse_cidr,
    prefix_covers_top_octets,
)

BROADCAST_MAC = "ff:ff:ff:ff:ff:ff"
ZERO_MAC = "00:00:00:00:00:00"
ARP_REQUEST = 1
ARP_REPLY = 2


def build_arp_request(src_mac: str, src_ip: str, target_ip: str) -> bytes:
    """
    Serialize a broadcast Ethernet frame carrying an ARP who-has request.

    Scapy fills in lengths and checksums when the frame is turned to bytes.
    """
    frame = Ether(src=src_mac, dst=BROADCAST_MAC, type=0x0806) / ARP(
        hwtype=1,
        ptype=0x0800,
        hwlen=6,
        plen=4,
        op=ARP_REQUEST,
        hwsrc=src_mac,
        psrc=src_ip,
        hwdst=ZERO_MAC,
        pdst=target_ip,
    )
    return bytes(frame)


class ARPScanner(BaseScanner):
    """
    ARP scanner writing requests and reading replies on one capture handle.

    The capture handle is opened per scan and is not shared. Writes go
    through a single lock because scapy sockets are not safe for concurrent
    senders; the reader runs on its own thread from before the first write
    until the grace window has passed.
    """

    scanner_type = "arp"

    def __init__(
        self,
        logger: Optional[Logger] = None,
        config: Optional[ARPConfig] = None,
        detector: Optional[NetworkDetector] = None,
        capture_opener: Optional[Callable[..., CaptureHandle]] = None,
    ):
        """
        Initialize the ARP scanner.

        Args:
            logger: Logger instance for outputting scan progress and errors
            config: ARP configuration (grace window, snaplen, read timeout)
            detector: Interface and capture device lookup
            capture_opener: Factory returning a capture handle for a device
        """
        super().__init__(logger)
        self.config = config or ARPConfig()
        self.detector = detector or NetworkDetector(self.logger)
        self.capture_opener = capture_opener or open_live

    def scan(
        self,
        session: ScanSession,
        interface_name: str,
        target_range: Optional[str] = None,
        concurrency: Optional[int] = None,
    ) -> List[ArpResult]:
        """
        Execute an ARP scan from ``interface_name``.

        Args:
            session: Session receiving the results
            interface_name: Interface to probe from
            target_range: Optional CIDR inside the interface network
            concurrency: Maximum simultaneous writes

        Returns:
            Snapshot of the session's ARP results

        Raises:
            ConfigurationError: Interface or range rejected, before any I/O
            ResourceError: Capture device missing or handle failed to open
            ArpWriteError: At least one request could not be written
        """
        concurrency = concurrency or self.config.concurrency
        self._start_scan_timer()

        interface = self.detector.get_interface_network(interface_name)
        interface_net = self._validate_interface(interface)
        scan_net = self._resolve_scan_network(interface, interface_net, target_range)
        device = self.detector.find_capture_device(interface.address, interface_name)
        own_mac = interface.hardware_address or get_if_hwaddr(device.name).lower()

        self.logger.network_info(interface_name, interface.cidr, str(scan_net.network))
        self._log_info(f"Using network range {scan_net.network} for interface {interface_name}")

        handle = self.capture_opener(
            device.name, snaplen=self.config.snaplen, promisc=True, bpf_filter="arp"
        )
        stop = threading.Event()
        reader = threading.Thread(
            target=self._read_replies,
            args=(handle, session, interface_name, own_mac, stop),
            name=f"arp-reader-{interface_name}",
            daemon=True,
        )
        reader.start()

        try:
            hosts = enumerate_hosts(scan_net, interface_net)
            self.logger.progress_start(f"Sending ARP requests to {len(hosts)} addresses")
            first_error = self._write_requests(
                handle, hosts, own_mac, interface.address, concurrency
            )
            if first_error is not None:
                self.logger.progress_end()
                raise ArpWriteError(
                    f"Failed to write ARP request on {device.name}: {first_error}",
                    build_context(ErrorType.PROBE_ERROR, "write_requests", "ARPScanner",
                                  interface=interface_name, requested_range=target_range),
                ) from first_error

            self.logger.progress_update(
                f"Waiting {self.config.grace_period:g}s for late replies"
            )
            time.sleep(self.config.grace_period)
            self.logger.progress_end()
        finally:
            stop.set()
            reader.join()
            handle.close()

        results = session.arp_results.snapshot()
        self._log_info(
            f"ARP scan completed. Found {len(results)} devices in {self._end_scan_timer():.2f} seconds"
        )
        return results

    def _validate_interface(self, interface: InterfaceNetwork) -> ipaddress.IPv4Interface:
        """Apply the loopback and network-size guards."""
        interface_net = interface.interface
        if interface_net.ip.is_loopback:
            raise LoopbackRejected(
                f"Skipping loopback interface {interface.name} ({interface.address})",
                build_context(ErrorType.CONFIGURATION_ERROR, "validate_interface", "ARPScanner",
                              interface=interface.name),
            )
        if not prefix_covers_top_octets(interface.netmask):
            raise NetworkTooLarge(
                f"Network {interface.cidr} on {interface.name} is too large to safely probe",
                build_context(ErrorType.CONFIGURATION_ERROR, "validate_interface", "ARPScanner",
                              interface=interface.name, interface_network=interface.cidr),
            )
        return interface_net

    def _resolve_scan_network(
        self,
        interface: InterfaceNetwork,
        interface_net: ipaddress.IPv4Interface,
        target_range: Optional[str],
    ) -> ipaddress.IPv4Interface:
        """Pick the range to probe: the interface network or a narrower target."""
        if not target_range:
            return interface_net

        parsed = parse_cidr(target_range)
        if parsed is None:
            raise InvalidTarget(
                f"Invalid target CIDR {target_range!r}",
                build_context(ErrorType.CONFIGURATION_ERROR, "resolve_scan_network", "ARPScanner",
                              interface=interface.name, requested_range=target_range),
            )

        aligned = align_to_network(parsed)
        if not is_subnet_within(interface_net, aligned):
            raise TargetOutsideInterfaceNetwork(
                f"Requested CIDR {aligned.network} is outside connected interface network "
                f"{interface.cidr}",
                build_context(ErrorType.CONFIGURATION_ERROR, "resolve_scan_network", "ARPScanner",
                              interface=interface.name, requested_range=target_range,
                              interface_network=interface.cidr),
            )
        return aligned

    def _write_requests(
        self,
        handle: CaptureHandle,
        hosts: List[ipaddress.IPv4Address],
        own_mac: str,
        own_ip: str,
        concurrency: int,
    ) -> Optional[Exception]:
        """
        Write one ARP request per host, returning the first failure if any.

        A failed write does not stop the others.
        """
        write_lock = threading.Lock()
        error_lock = threading.Lock()
        errors: List[Exception] = []

        def send(target: ipaddress.IPv4Address) -> None:
            try:
                frame = build_arp_request(own_mac, own_ip, str(target))
                with write_lock:
                    handle.write(frame)
            except Exception as e:
                self._log_debug(f"ARP write to {target} failed: {e}")
                with error_lock:
                    errors.append(e)

        self._dispatch(hosts, send, ConcurrencyGate(concurrency))
        return errors[0] if errors else None

    def _read_replies(
        self,
        handle: CaptureHandle,
        session: ScanSession,
        interface_name: str,
        own_mac: str,
        stop: threading.Event,
    ) -> None:
        """Read frames until ``stop`` is set, recording ARP replies."""
        while not stop.is_set():
            try:
                packet = handle.read(self.config.read_timeout)
            except OSError as e:
                if not stop.is_set():
                    self._log_warning(f"ARP reader on {interface_name} stopped: {e}")
                return
            if packet is not None:
                self._handle_frame(packet, session, interface_name, own_mac)

    def _handle_frame(self, packet, session: ScanSession, interface_name: str, own_mac: str) -> None:
        if not packet.haslayer(ARP):
            return
        arp = packet[ARP]
        src_mac = str(arp.hwsrc).lower()
        if arp.op != ARP_REPLY or src_mac == own_mac:
            return

        result = ArpResult(interface_name=interface_name, dest_ip=str(arp.psrc), dest_mac=src_mac)
        if session.arp_results.add(result):
            self._log_info(
                f"IP {result.dest_ip} is at {result.dest_mac} from interface: {interface_name}"
            )
