"""
Scanner Orchestrator for discovr.

This module provides the ScannerOrchestrator class that runs one discovery
technique per call, owns the session its results land in, and enriches the
discovered addresses with reverse DNS names.
"""

import time
from typing import Callable, Optional, Sequence

from .data_models import ScanMode, ScanStatus, ScanSummary, ScanTarget
from .network_detector import NetworkDetector
from .result_store import ScanSession
from ..config.config_loader import DiscovrConfig
from ..scanners.arp_scanner import ARPScanner
from ..scanners.hostname_resolver import HostnameResolver
from ..scanners.icmp_scanner import ICMPScanner, IcmpProber
from ..scanners.passive_capture import PassiveCapture
from ..utils.capture import CaptureHandle
from ..utils.concurrency import CancellationToken
from ..utils.error_handler import ArpWriteError, ErrorType, InvalidTarget, build_context
from ..utils.logger import Logger, get_logger


class ScannerOrchestrator:
    """
    Orchestrates discovery scans.

    Every call creates a fresh ScanSession, so results from one scan never
    leak into the next. Configuration and resource errors propagate to the
    caller; an ARP write failure yields a partial summary instead.
    """

    def __init__(
        self,
        config: Optional[DiscovrConfig] = None,
        logger: Optional[Logger] = None,
        detector: Optional[NetworkDetector] = None,
        capture_opener: Optional[Callable[..., CaptureHandle]] = None,
        prober: Optional[IcmpProber] = None,
        lookup: Optional[Callable[[str], Sequence[str]]] = None,
    ):
        """
        Initialize the scanner orchestrator.

        Args:
            config: Loaded configuration (defaults when omitted)
            logger: Logger shared by the scanners
            detector: Interface and capture device lookup
            capture_opener: Factory for live capture handles
            prober: ICMP echo prober
            lookup: Reverse DNS lookup callable
        """
        self.config = config or DiscovrConfig()
        self.logger = logger or get_logger(__name__)
        self.network_detector = detector or NetworkDetector(self.logger)

        self.arp_scanner = ARPScanner(
            self.logger, self.config.arp, self.network_detector, capture_opener
        )
        self.icmp_scanner = ICMPScanner(self.logger, self.config.icmp, prober)
        self.passive_capture = PassiveCapture(
            self.logger, self.config.passive, self.network_detector, capture_opener
        )
        self.hostname_resolver = HostnameResolver(self.logger, self.config.hostname, lookup)

    def run_active_scan(
        self,
        target: ScanTarget,
        mode: ScanMode = ScanMode.ARP,
        concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
        count: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ScanSummary:
        """
        Run an ARP or ICMP scan, then resolve hostnames for what was found.

        Args:
            target: Interface and optional range to probe
            mode: Probing technique
            concurrency: Maximum probes in flight
            timeout: ICMP reply timeout in seconds
            count: ICMP echo requests per host
            cancel_token: Stops an ICMP sweep between hosts

        Returns:
            ScanSummary carrying the session with the results

        Raises:
            ConfigurationError: Interface or range rejected
            ResourceError: Capture device or handle unavailable
        """
        session = ScanSession(self.logger)
        status = ScanStatus.COMPLETED
        errors = []
        started = time.monotonic()

        if mode == ScanMode.ARP:
            self.logger.section("ARP SCAN")
            try:
                self.arp_scanner.scan(session, target.interface_name, target.target_range, concurrency)
            except ArpWriteError as e:
                self.logger.warning(f"ARP scan completed with errors: {e}")
                status = ScanStatus.PARTIAL
                errors.append(str(e))
        else:
            self.logger.section("ICMP SWEEP")
            target_range = target.target_range or self._default_icmp_target(target)
            self.icmp_scanner.scan(session, target_range, concurrency, timeout, count, cancel_token)

        if cancel_token is not None and cancel_token.cancelled:
            status = ScanStatus.PARTIAL
            errors.append(f"Scan interrupted: {cancel_token.reason}")

        if self.config.hostname.enabled:
            self._resolve_hostnames(session)

        summary = ScanSummary(
            mode=mode.value,
            status=status,
            duration=time.monotonic() - started,
            session=session,
            errors=errors,
        )
        self._log_active_results(summary)
        return summary

    def run_passive_scan(
        self,
        interface_name: Optional[str] = None,
        duration: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ScanSummary:
        """
        Listen for traffic addressed to this host.

        Args:
            interface_name: Interface to capture on (config default when omitted)
            duration: Capture length in seconds (config default when omitted)
            cancel_token: Ends the capture early when cancelled

        Returns:
            ScanSummary carrying the session with the passive results
        """
        session = ScanSession(self.logger)
        started = time.monotonic()

        self.logger.section("PASSIVE CAPTURE")
        self.passive_capture.capture(session, interface_name, duration, cancel_token)

        interrupted = cancel_token is not None and cancel_token.cancelled
        summary = ScanSummary(
            mode="passive",
            status=ScanStatus.PARTIAL if interrupted else ScanStatus.COMPLETED,
            duration=time.monotonic() - started,
            session=session,
            errors=[f"Capture interrupted: {cancel_token.reason}"] if interrupted else [],
        )

        results = session.passive_results.snapshot()
        if results:
            self.logger.info("Assets observed:")
            for result in results:
                mac_info = f" ({result.src_mac})" if result.src_mac else ""
                self.logger.info(f"  • {result.src_ip}{mac_info} protocol {result.protocol}")
        self.logger.success(
            f"Passive capture finished. {len(results)} assets in {summary.duration:.2f} seconds"
        )
        return summary

    def _default_icmp_target(self, target: ScanTarget) -> str:
        """Sweep the interface's own network when no range was given."""
        if not target.interface_name:
            raise InvalidTarget(
                "ICMP scan needs a target range or an interface",
                build_context(ErrorType.CONFIGURATION_ERROR, "default_icmp_target",
                              "ScannerOrchestrator"),
            )
        interface = self.network_detector.get_interface_network(target.interface_name)
        default_range = f"{interface.address}/{interface.prefixlen}"
        self.logger.info(f"No target given, sweeping {default_range} on {interface.name}")
        return default_range

    def _resolve_hostnames(self, session: ScanSession) -> None:
        addresses = session.discovered_addresses()
        if not addresses:
            self.logger.debug("No addresses to resolve")
            return

        self.logger.section("HOSTNAME RESOLUTION")
        self.hostname_resolver.resolve(session, addresses)

    def _log_active_results(self, summary: ScanSummary) -> None:
        session = summary.session
        hostnames = {r.ip: r.fqdn for r in session.hostname_results.snapshot() if r.fqdn}

        if summary.mode == ScanMode.ARP.value:
            results = session.arp_results.snapshot()
            if results:
                self.logger.info("Active devices discovered:")
            for result in results:
                name = hostnames.get(result.dest_ip)
                name_info = f" [{name}]" if name else ""
                self.logger.info(f"  • {result.dest_ip} ({result.dest_mac}){name_info}")
            found = len(results)
        else:
            results = session.icmp_results.snapshot()
            if results:
                self.logger.info("Hosts alive:")
            for result in results:
                name = hostnames.get(result.ip)
                name_info = f" [{name}]" if name else ""
                self.logger.info(
                    f"  • {result.ip} avg RTT {result.average_rtt * 1000:.2f}ms{name_info}"
                )
            found = len(results)

        message = (
            f"{summary.mode.upper()} scan {summary.status.value}. "
            f"Found {found} hosts in {summary.duration:.2f} seconds"
        )
        if summary.status == ScanStatus.COMPLETED:
            self.logger.success(message)
        else:
            self.logger.warning(message)
