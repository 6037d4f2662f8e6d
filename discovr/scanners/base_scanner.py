"""
Base scanner interface for discovr.

This module defines the abstract base class every scanner derives from. It
provides logging helpers, scan timing, and the gated dispatch loop the active
scanners and the hostname resolver share.
"""

from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional

from ..utils.concurrency import CancellationToken, ConcurrencyGate
from ..utils.logger import Logger, get_logger


class BaseScanner(ABC):
    """
    Abstract base class for all discovery techniques.

    Subclasses implement :meth:`scan`, which writes into the session's result
    stores and returns a snapshot of the relevant one.
    """

    scanner_type = "base"

    def __init__(self, logger: Optional[Logger] = None):
        """
        Initialize the base scanner.

        Args:
            logger: Logger instance for outputting scan progress and errors
        """
        self.logger = logger or get_logger(self.__class__.__name__)
        self.scan_start_time: Optional[datetime] = None
        self.scan_end_time: Optional[datetime] = None

    @abstractmethod
    def scan(self, session, *args, **kwargs) -> List[Any]:
        """
        Execute the scan, recording results into ``session``.

        Returns:
            Snapshot of the results this scanner produced
        """

    def _start_scan_timer(self) -> None:
        """Start the scan timing measurement."""
        self.scan_start_time = datetime.now()

    def _end_scan_timer(self) -> float:
        """
        End the scan timing measurement and return duration.

        Returns:
            Scan duration in seconds as a float
        """
        self.scan_end_time = datetime.now()
        if self.scan_start_time:
            return (self.scan_end_time - self.scan_start_time).total_seconds()
        return 0.0

    def _log_info(self, message: str) -> None:
        self.logger.info(message)

    def _log_warning(self, message: str) -> None:
        self.logger.warning(message)

    def _log_error(self, message: str) -> None:
        self.logger.error(message)

    def _log_debug(self, message: str) -> None:
        self.logger.debug(message)

    def _dispatch(
        self,
        items: Iterable[Any],
        worker: Callable[[Any], Any],
        gate: ConcurrencyGate,
        cancel_token: Optional[CancellationToken] = None,
    ) -> int:
        """
        Run ``worker`` for each item, at most ``gate.capacity`` at a time.

        The loop takes a gate slot before handing an item to the pool, so a
        full gate blocks enumeration; the slot is released when the worker
        returns or raises. When ``cancel_token`` fires, enumeration stops and
        already dispatched workers are allowed to finish.

        Returns:
            Number of items dispatched
        """
        dispatched = 0
        futures: List[Future] = []

        with ThreadPoolExecutor(
            max_workers=gate.capacity,
            thread_name_prefix=f"{self.scanner_type}-worker",
        ) as executor:
            for item in items:
                if cancel_token is not None and cancel_token.cancelled:
                    self._log_warning("Interrupted, waiting for in-flight probes")
                    break

                gate.acquire()
                if cancel_token is not None and cancel_token.cancelled:
                    gate.release()
                    self._log_warning("Interrupted, waiting for in-flight probes")
                    break

                try:
                    futures.append(executor.submit(self._run_gated, gate, worker, item))
                except RuntimeError:
                    gate.release()
                    raise
                dispatched += 1

        for future in futures:
            error = future.exception()
            if error is not None:
                self._log_debug(f"Worker failed: {type(error).__name__}: {error}")

        return dispatched

    @staticmethod
    def _run_gated(gate: ConcurrencyGate, worker: Callable[[Any], Any], item: Any) -> Any:
        try:
            return worker(item)
        finally:
            gate.release()
