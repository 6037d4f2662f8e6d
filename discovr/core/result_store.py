"""
Deduplicating result collections and the per-scan session that owns them.
"""

import threading
from typing import Callable, Generic, Hashable, List, Optional, TypeVar

from .data_models import ArpResult, HostnameResult, IcmpResult, PassiveResult
from ..utils.logger import Logger, get_logger

T = TypeVar("T")


class ResultStore(Generic[T]):
    """
    Lock-guarded, append-only list that drops items whose key was seen.

    Only the append happens under the lock; callers do their I/O first.
    A duplicate is logged and skipped, the scan carries on.
    """

    def __init__(self, name: str, key: Callable[[T], Hashable], logger: Optional[Logger] = None):
        self.name = name
        self._key = key
        self._lock = threading.Lock()
        self._items: List[T] = []
        self._seen = set()
        self.duplicates = 0
        self.logger = logger or get_logger(__name__)

    def add(self, item: T) -> bool:
        """
        Store ``item`` unless an item with the same key is already stored.

        Returns:
            True if stored, False if it was a duplicate
        """
        key = self._key(item)
        with self._lock:
            if key in self._seen:
                self.duplicates += 1
                duplicate = True
            else:
                self._seen.add(key)
                self._items.append(item)
                duplicate = False

        if duplicate:
            self.logger.debug(f"Duplicate detected in {self.name} results for {key}")
        return not duplicate

    def snapshot(self) -> List[T]:
        """Return a copy of the stored items in insertion order."""
        with self._lock:
            return list(self._items)

    def keys(self) -> set:
        with self._lock:
            return set(self._seen)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class ScanSession:
    """
    Result stores for one scan invocation.

    Each call to the orchestrator creates its own session, so concurrent scans
    and test cases never see each other's results.
    """

    def __init__(self, logger: Optional[Logger] = None):
        self.arp_results: ResultStore[ArpResult] = ResultStore(
            "ARP", key=lambda r: r.key, logger=logger
        )
        self.icmp_results: ResultStore[IcmpResult] = ResultStore(
            "ICMP", key=lambda r: r.ip, logger=logger
        )
        self.passive_results: ResultStore[PassiveResult] = ResultStore(
            "passive", key=lambda r: r.src_ip, logger=logger
        )
        self.hostname_results: ResultStore[HostnameResult] = ResultStore(
            "hostname", key=lambda r: r.ip, logger=logger
        )

    def discovered_addresses(self) -> List[str]:
        """Union of ARP and ICMP addresses, first-seen order, no blanks."""
        addresses = [r.dest_ip for r in self.arp_results.snapshot()]
        addresses.extend(r.ip for r in self.icmp_results.snapshot())
        return list(dict.fromkeys(a for a in addresses if a))
