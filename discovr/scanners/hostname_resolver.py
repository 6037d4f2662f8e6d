"""
Hostname Resolver implementation for discovr.

Reverse DNS enrichment over the addresses found by the active scanners.
"""

import queue
import socket
import threading
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .base_scanner import BaseScanner
from ..config.config_loader import HostnameConfig
from ..core.data_models import HostnameResult
from ..core.result_store import ScanSession
from ..utils.concurrency import ConcurrencyGate
from ..utils.logger import Logger


def system_reverse_lookup(ip: str) -> List[str]:
    """Return the primary name and aliases the system resolver has for ``ip``."""
    hostname, aliases, _ = socket.gethostbyaddr(ip)
    return [hostname, *aliases]


class HostnameResolver(BaseScanner):
    """
    Concurrent reverse DNS lookups, each bounded by a timeout.

    Each lookup runs on its own thread and its timeout starts when that
    lookup starts, so a resolver call that hangs only fails its own address.
    Results are streamed through a queue and collected in completion order.
    """

    scanner_type = "hostname"

    def __init__(
        self,
        logger: Optional[Logger] = None,
        config: Optional[HostnameConfig] = None,
        lookup: Optional[Callable[[str], Sequence[str]]] = None,
    ):
        super().__init__(logger)
        self.config = config or HostnameConfig()
        self.lookup = lookup or system_reverse_lookup

    def scan(self, session: ScanSession, *args, **kwargs) -> List[HostnameResult]:
        return self.resolve(session, *args, **kwargs)

    def resolve(
        self,
        session: ScanSession,
        ips: Iterable[str],
        concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> List[HostnameResult]:
        """
        Resolve every distinct address in ``ips``.

        Args:
            session: Session receiving the results
            ips: Addresses to look up; duplicates and blanks are skipped
            concurrency: Maximum lookups at once
            timeout: Seconds allowed per lookup

        Returns:
            One HostnameResult per distinct address, in no particular order
        """
        concurrency = concurrency or self.config.concurrency
        timeout = timeout or self.config.timeout
        unique_ips = list(dict.fromkeys(ip for ip in ips if ip))
        if not unique_ips:
            return []

        self._start_scan_timer()
        results: "queue.Queue[HostnameResult]" = queue.Queue()

        def resolve_one(ip: str) -> None:
            result = self._resolve_one(ip, timeout)
            self._report(result)
            results.put(result)

        self._dispatch(unique_ips, resolve_one, ConcurrencyGate(concurrency))

        collected = []
        while not results.empty():
            result = results.get_nowait()
            session.hostname_results.add(result)
            collected.append(result)

        resolved = sum(1 for r in collected if r.fqdn)
        self._log_info(
            f"Resolved {resolved} of {len(collected)} hostnames in {self._end_scan_timer():.2f} seconds"
        )
        return collected

    def _resolve_one(self, ip: str, timeout: float) -> HostnameResult:
        """
        Look up ``ip`` on a daemon thread and wait at most ``timeout`` for it.

        A lookup still running after the timeout is abandoned; its thread no
        longer holds the gate slot, so later addresses are not delayed.
        """
        outcome = {}

        def lookup() -> None:
            try:
                outcome["names"] = self.lookup(ip)
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=lookup, name=f"dns-lookup-{ip}", daemon=True)
        worker.start()
        worker.join(timeout)

        if worker.is_alive():
            return HostnameResult(ip=ip, error_text=f"lookup {ip}: timed out after {timeout:g}s")
        if "error" in outcome:
            error = outcome["error"]
            return HostnameResult(ip=ip, error_text=str(error) or type(error).__name__)

        ptr_names = self._clean_names(outcome.get("names"))
        if not ptr_names:
            return HostnameResult(ip=ip)
        return HostnameResult(ip=ip, ptr_names=ptr_names, fqdn=ptr_names[0])

    @staticmethod
    def _clean_names(names: Optional[Sequence[str]]) -> Tuple[str, ...]:
        return tuple(name.rstrip(".") for name in (names or ()) if name)

    def _report(self, result: HostnameResult) -> None:
        if result.fqdn:
            self._log_info(f"[+] {result.ip} -> {result.fqdn}")
        elif result.error_text:
            self._log_debug(f"[-] {result.ip} lookup failed: {result.error_text}")
        else:
            self._log_debug(f"[*] {result.ip} has no PTR record")
