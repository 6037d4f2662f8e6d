"""
ICMP Sweep Scanner implementation for discovr.

Classifies the target as a range or a single host, then probes with ICMP
echo requests. Sweeps run with bounded parallelism and stop enumerating when
their cancellation token fires; probes already in flight finish normally.
"""

import ipaddress
import os
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from scapy.layers.inet import ICMP, IP
from scapy.sendrecv import sr

from .base_scanner import BaseScanner
from ..config.config_loader import ICMPConfig
from ..core.data_models import IcmpResult, ProbeStatistics
from ..core.result_store import ScanSession
from ..utils.concurrency import CancellationToken, ConcurrencyGate
from ..utils.logger import Logger, get_logger
from ..utils.network_utils import parse_target, sweep_hosts

ECHO_REQUEST = 8
ECHO_REPLY = 0


@dataclass(frozen=True)
class EchoReply:
    """One echo reply as seen by the prober."""
    host: str
    seq: int
    rtt: float
    ttl: int
    size: int


class IcmpProber:
    """
    Sends ICMP echo requests through scapy. Round trip times come from the
    capture timestamps scapy stamps on the request and its reply.

    Needs raw socket privileges. Each probe opens its own socket, so probers
    can be used from many worker threads at once.
    """

    def __init__(self, logger: Optional[Logger] = None):
        self.logger = logger or get_logger(__name__)
        self.identifier = os.getpid() & 0xFFFF

    def probe(
        self,
        host: str,
        count: int,
        timeout: float,
        interval: float = 0.1,
        on_reply: Optional[Callable[[EchoReply], None]] = None,
        on_error: Optional[Callable[[int, Exception], None]] = None,
    ) -> ProbeStatistics:
        """
        Send ``count`` echo requests to ``host``.

        Args:
            host: Destination address
            count: Number of requests
            timeout: Seconds to wait for each reply
            interval: Pause between requests
            on_reply: Called for every reply as it arrives
            on_error: Called for a failed send; when omitted the error is raised

        Returns:
            ProbeStatistics for the host
        """
        stats = ProbeStatistics(host=host)
        for seq in range(count):
            if seq:
                time.sleep(interval)

            request = IP(dst=host) / ICMP(type=ECHO_REQUEST, id=self.identifier, seq=seq)
            stats.sent += 1
            try:
                answered, _ = sr(request, timeout=timeout, verbose=0)
            except OSError as e:
                if on_error is None:
                    raise
                on_error(seq, e)
                continue
            if not answered:
                continue

            sent, reply = answered[0]
            if not reply.haslayer(ICMP) or reply[ICMP].type != ECHO_REPLY:
                continue

            rtt = float(reply.time) - float(sent.sent_time)
            stats.received += 1
            stats.rtts.append(rtt)
            if on_reply is not None:
                on_reply(EchoReply(host=host, seq=seq, rtt=rtt, ttl=reply[IP].ttl, size=len(reply)))
        return stats


class ICMPScanner(BaseScanner):
    """
    Ping sweep scanner.

    A CIDR target is swept host by host, skipping the range's network and
    broadcast addresses; a single address is pinged ``count`` times with every
    reply reported as it arrives.
    """

    scanner_type = "icmp"

    def __init__(
        self,
        logger: Optional[Logger] = None,
        config: Optional[ICMPConfig] = None,
        prober: Optional[IcmpProber] = None,
    ):
        super().__init__(logger)
        self.config = config or ICMPConfig()
        self.prober = prober or IcmpProber(self.logger)

    def scan(
        self,
        session: ScanSession,
        target_range: str,
        concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
        count: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[IcmpResult]:
        """
        Probe ``target_range`` with ICMP echo requests.

        Args:
            session: Session receiving the results
            target_range: CIDR (sweep) or single IPv4 address
            concurrency: Maximum hosts probed at once
            timeout: Seconds to wait for each reply
            count: Echo requests per host
            cancel_token: Stops the sweep between hosts when cancelled

        Returns:
            Snapshot of the session's ICMP results

        Raises:
            InvalidTarget: If the target is neither a CIDR nor an address
        """
        concurrency = concurrency or self.config.concurrency
        timeout = timeout or self.config.timeout
        count = count or self.config.count
        self._start_scan_timer()

        target = parse_target(target_range)
        if isinstance(target, ipaddress.IPv4Interface):
            self._log_info(f"Target is a CIDR: {target_range} (network {target.network})")
            self._run_sweep(session, target, concurrency, timeout, count, cancel_token)
            self._log_info("Ping sweep complete.")
        else:
            self._log_info(f"Target is a single IP: {target}")
            self._ping_host(session, str(target), timeout, count)

        results = session.icmp_results.snapshot()
        self._log_info(
            f"ICMP scan completed. {len(results)} hosts alive in {self._end_scan_timer():.2f} seconds"
        )
        return results

    def _run_sweep(
        self,
        session: ScanSession,
        network: ipaddress.IPv4Interface,
        concurrency: int,
        timeout: float,
        count: int,
        cancel_token: Optional[CancellationToken],
    ) -> None:
        def probe_host(address: ipaddress.IPv4Address) -> None:
            host = str(address)
            try:
                stats = self.prober.probe(host, count, timeout, self.config.interval)
            except OSError as e:
                self._log_debug(f"Probe to {host} failed: {e}")
                return
            if not stats.alive:
                return
            self._log_info(f"Host alive: {host:<15} (avg RTT: {stats.average_rtt * 1000:.2f}ms)")
            session.icmp_results.add(IcmpResult(ip=host, average_rtt=stats.average_rtt))

        self.logger.progress_start(f"Sweeping {network.network} with {concurrency} workers")
        dispatched = self._dispatch(
            sweep_hosts(network), probe_host, ConcurrencyGate(concurrency), cancel_token
        )
        self.logger.progress_end()
        self._log_debug(f"Dispatched {dispatched} hosts")

    def _ping_host(self, session: ScanSession, host: str, timeout: float, count: int) -> None:
        def report_reply(reply: EchoReply) -> None:
            self._log_info(
                f"{reply.size} bytes from {reply.host}: icmp_seq={reply.seq} "
                f"time={reply.rtt * 1000:.2f}ms ttl={reply.ttl}"
            )

        def report_error(seq: int, error: Exception) -> None:
            self._log_warning(f"Ping failed for {host} (icmp_seq={seq}): {error}")

        stats = self.prober.probe(
            host, count, timeout, self.config.interval,
            on_reply=report_reply, on_error=report_error,
        )
        if stats.alive:
            session.icmp_results.add(IcmpResult(ip=host, average_rtt=stats.average_rtt))
        else:
            self._log_info(f"No reply from {host} ({stats.sent} sent)")
