"""
Passive Capture implementation for discovr.

Listens on an interface for a bounded time and records every peer that sends
IPv4 traffic to one of this host's addresses. Nothing is transmitted.
"""

import threading
import time
from typing import Callable, List, Optional, Set

from scapy.layers.inet import IP
from scapy.layers.l2 import Ether

from .base_scanner import BaseScanner
from ..config.config_loader import PassiveConfig
from ..core.data_models import PassiveResult
from ..core.network_detector import NetworkDetector
from ..core.result_store import ScanSession
from ..utils.capture import CaptureHandle, open_live
from ..utils.concurrency import CancellationToken
from ..utils.error_handler import DiscovrError
from ..utils.logger import Logger


class _CaptureState:
    """Handle and failure shared between the reader, closer and caller."""

    def __init__(self):
        self.handle: Optional[CaptureHandle] = None
        self.error: Optional[DiscovrError] = None


class PassiveCapture(BaseScanner):
    """
    Passive observer built from two workers joined before returning.

    The reader opens a non-promiscuous capture and processes frames until the
    cancellation token fires or its own deadline passes. The closer waits for
    the token, then for the reader to leave its loop, and closes the handle
    exactly once.
    """

    scanner_type = "passive"

    def __init__(
        self,
        logger: Optional[Logger] = None,
        config: Optional[PassiveConfig] = None,
        detector: Optional[NetworkDetector] = None,
        capture_opener: Optional[Callable[..., CaptureHandle]] = None,
    ):
        super().__init__(logger)
        self.config = config or PassiveConfig()
        self.detector = detector or NetworkDetector(self.logger)
        self.capture_opener = capture_opener or open_live

    def scan(self, session: ScanSession, *args, **kwargs) -> List[PassiveResult]:
        return self.capture(session, *args, **kwargs)

    def capture(
        self,
        session: ScanSession,
        interface_name: Optional[str] = None,
        duration: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[PassiveResult]:
        """
        Observe traffic on ``interface_name`` for ``duration`` seconds.

        Args:
            session: Session receiving the results
            interface_name: Interface to listen on
            duration: Capture length in seconds
            cancel_token: Ends the capture early when cancelled

        Returns:
            Snapshot of the session's passive results

        Raises:
            NetworkDetectionError: If local addresses cannot be listed
            ResourceError: If the capture handle cannot be opened
        """
        interface_name = interface_name or self.config.interface
        duration = duration or self.config.duration
        self._start_scan_timer()

        local_addresses = self.detector.get_local_addresses()
        self._log_debug(f"Local addresses: {sorted(local_addresses)}")

        token = CancellationToken.with_deadline(duration)
        state = _CaptureState()

        reader = threading.Thread(
            target=self._capture_worker,
            args=(session, interface_name, duration, local_addresses, token, state),
            name=f"passive-reader-{interface_name}",
            daemon=True,
        )
        closer = threading.Thread(
            target=self._close_worker,
            args=(token, reader, state),
            name=f"passive-closer-{interface_name}",
            daemon=True,
        )

        self.logger.progress_start(f"Listening on {interface_name} for {duration:g}s")
        reader.start()
        closer.start()
        try:
            self._wait(token, duration, cancel_token)
        finally:
            token.cancel("capture finished")
            reader.join()
            closer.join()
            token.dispose()
            self.logger.progress_end()

        if state.error is not None:
            raise state.error

        results = session.passive_results.snapshot()
        self._log_info(
            f"Passive capture completed. Discovered {len(results)} assets in "
            f"{self._end_scan_timer():.2f} seconds"
        )
        return results

    def _wait(
        self,
        token: CancellationToken,
        duration: float,
        cancel_token: Optional[CancellationToken],
    ) -> None:
        """Sleep for the capture window, waking early if either token fires."""
        if cancel_token is None:
            token.wait(duration)
            return
        while not token.wait(self.config.read_timeout):
            if cancel_token.cancelled:
                self._log_warning("Capture interrupted")
                return

    def _capture_worker(
        self,
        session: ScanSession,
        interface_name: str,
        duration: float,
        local_addresses: Set[str],
        token: CancellationToken,
        state: _CaptureState,
    ) -> None:
        try:
            state.handle = self.capture_opener(
                interface_name,
                snaplen=self.config.snaplen,
                promisc=False,
                listen_only=True,
            )
        except DiscovrError as e:
            state.error = e
            token.cancel("capture open failed")
            return

        deadline = time.monotonic() + duration
        while not token.cancelled:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                packet = state.handle.read(min(self.config.read_timeout, remaining))
            except OSError as e:
                if not token.cancelled:
                    self._log_error(f"Capture on {interface_name} failed: {e}")
                return
            if packet is not None:
                self._process_frame(packet, session, local_addresses)

    def _close_worker(
        self,
        token: CancellationToken,
        reader: threading.Thread,
        state: _CaptureState,
    ) -> None:
        token.wait()
        reader.join()
        if state.handle is not None:
            state.handle.close()
            self._log_debug("Capture handle closed")

    def _process_frame(self, packet, session: ScanSession, local_addresses: Set[str]) -> None:
        """Record the sender of an IPv4 packet addressed to this host, once."""
        if not packet.haslayer(IP):
            return
        ip = packet[IP]
        src_ip = str(ip.src)
        if str(ip.dst) not in local_addresses or src_ip in session.passive_results:
            return

        ether = packet[Ether] if packet.haslayer(Ether) else None
        result = PassiveResult(
            src_ip=src_ip,
            protocol=int(ip.proto),
            src_mac=str(ether.src).lower() if ether is not None else None,
            dst_mac=str(ether.dst).lower() if ether is not None else None,
            ether_type=int(ether.type) if ether is not None else None,
        )
        if session.passive_results.add(result):
            self._log_info(
                f"Discovered new asset: {src_ip} (protocol {result.protocol}, "
                f"MAC {result.src_mac or 'n/a'})"
            )
