"""
Error taxonomy and centralized error reporting for discovr.

Configuration errors are raised before any packet leaves the host and are
never retried. Resource errors (capture devices, capture handles) are fatal
for the scan that hit them. Per-target probe failures stay inside their
worker; only ARP write failures are aggregated and surfaced once all writers
have finished.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .logger import Logger, get_logger


class ErrorType(Enum):
    """Enumeration for different types of errors."""
    CONFIGURATION_ERROR = "configuration_error"
    RESOURCE_ERROR = "resource_error"
    PERMISSION_ERROR = "permission_error"
    PROBE_ERROR = "probe_error"


@dataclass
class ErrorContext:
    """
    Context information for error handling.

    Attributes:
        error_type: Type of error that occurred
        operation: Operation that was being performed when error occurred
        component: Component/module where error occurred
        additional_info: Interface name, requested range and similar details
    """
    error_type: ErrorType
    operation: str
    component: str
    additional_info: Dict[str, Any] = field(default_factory=dict)


class DiscovrError(Exception):
    """Base exception class for discovr."""

    error_type = ErrorType.CONFIGURATION_ERROR

    def __init__(self, message: str, error_context: Optional[ErrorContext] = None):
        super().__init__(message)
        self.error_context = error_context


class ConfigurationError(DiscovrError):
    """Invalid input detected before any network I/O."""
    error_type = ErrorType.CONFIGURATION_ERROR


class InterfaceNotFound(ConfigurationError):
    pass


class NoIPv4Address(ConfigurationError):
    pass


class LoopbackRejected(ConfigurationError):
    pass


class NetworkTooLarge(ConfigurationError):
    pass


class TargetOutsideInterfaceNetwork(ConfigurationError):
    pass


class InvalidTarget(ConfigurationError):
    pass


class InvalidConfiguration(ConfigurationError):
    pass


class ResourceError(DiscovrError):
    """A capture device or handle could not be obtained."""
    error_type = ErrorType.RESOURCE_ERROR


class DeviceNotFound(ResourceError):
    pass


class CaptureOpenError(ResourceError):
    pass


class NetworkDetectionError(ResourceError):
    pass


class InsufficientPrivileges(ResourceError):
    """Raw sockets or capture handles need elevated privileges."""
    error_type = ErrorType.PERMISSION_ERROR


class ProbeError(DiscovrError):
    """A probe could not be sent."""
    error_type = ErrorType.PROBE_ERROR


class ArpWriteError(ProbeError):
    pass


def build_context(error_type: ErrorType, operation: str, component: str, **info) -> ErrorContext:
    """Shorthand used by scanners when raising errors."""
    return ErrorContext(
        error_type=error_type,
        operation=operation,
        component=component,
        additional_info={k: v for k, v in info.items() if v is not None},
    )


class ErrorHandler:
    """
    Centralized error reporting.

    Logs errors with their context and prints troubleshooting suggestions
    tailored to the error type, keeping per-type statistics for the run.
    """

    def __init__(self, logger: Optional[Logger] = None):
        """
        Initialize the ErrorHandler.

        Args:
            logger: Logger instance for error reporting
        """
        self.logger = logger or get_logger(__name__)
        self.error_statistics: Dict[ErrorType, int] = {
            error_type: 0 for error_type in ErrorType
        }

    def report(self, error: Exception) -> None:
        """
        Report an error raised by a scan entry point.

        Args:
            error: The exception that occurred
        """
        context = getattr(error, "error_context", None)
        error_type = getattr(error, "error_type", None)
        if isinstance(error, PermissionError):
            error_type = ErrorType.PERMISSION_ERROR
        if error_type is None:
            self.logger.error(f"Unexpected error: {error}", exception=error)
            return

        self.error_statistics[error_type] += 1
        details = dict(context.additional_info) if context else {}
        location = f"{context.component}.{context.operation}: " if context else ""
        self.logger.error(f"{location}{error}", **details)

        if error_type == ErrorType.CONFIGURATION_ERROR:
            self._suggest_configuration_fixes(error, details)
        elif error_type == ErrorType.PERMISSION_ERROR:
            self._suggest_permission_solutions()
        elif error_type == ErrorType.RESOURCE_ERROR:
            self._suggest_resource_solutions(error, details)
        elif error_type == ErrorType.PROBE_ERROR:
            self._suggest_probe_solutions()

    def _suggest_configuration_fixes(self, error: Exception, details: Dict[str, Any]) -> None:
        """Provide hints for rejected interface or range input."""
        self.logger.info("Configuration error solutions:")
        if isinstance(error, InterfaceNotFound):
            self.logger.info("  • List capture interfaces: python -m discovr interfaces")
            self.logger.info("  • Check the interface name passed with --interface")
        elif isinstance(error, NoIPv4Address):
            self.logger.info("  • Assign an IPv4 address to the interface or pick another one")
        elif isinstance(error, LoopbackRejected):
            self.logger.info("  • ARP scans need a physical or virtual LAN interface, not loopback")
        elif isinstance(error, NetworkTooLarge):
            self.logger.info("  • Interface networks larger than /16 are not probed")
            self.logger.info("  • Use --cidr to pass a narrower range inside the interface network")
        elif isinstance(error, TargetOutsideInterfaceNetwork):
            interface_net = details.get("interface_network", "the interface network")
            self.logger.info(f"  • Pick a range inside {interface_net}")
            self.logger.info("  • Use ICMP mode (--icmp) for routed ranges")
        elif isinstance(error, InvalidTarget):
            self.logger.info("  • Pass a single IPv4 address (10.0.0.7) or a CIDR (10.0.0.0/24)")
        else:
            self.logger.info("  • Check YAML syntax and value types in discovr.yml")

    def _suggest_permission_solutions(self) -> None:
        self.logger.info("Permission error solutions:")
        self.logger.info("  • Run with sudo: sudo python -m discovr ...")
        self.logger.info("  • Or grant raw socket capability: setcap cap_net_raw,cap_net_admin+eip $(which python3)")

    def _suggest_resource_solutions(self, error: Exception, details: Dict[str, Any]) -> None:
        self.logger.info("Capture error solutions:")
        if isinstance(error, DeviceNotFound):
            self.logger.info("  • Make sure libpcap/Npcap is installed and the interface is up")
        self.logger.info("  • Run with elevated privileges (sudo)")
        self.logger.info("  • Check that no other tool holds the interface exclusively")

    def _suggest_probe_solutions(self) -> None:
        self.logger.info("Probe error solutions:")
        self.logger.info("  • Reduce --concurrency to lower pressure on the capture handle")
        self.logger.info("  • Verify the interface is still up and has carrier")
