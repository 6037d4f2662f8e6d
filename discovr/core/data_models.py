"""
Core data models and enums for discovr.

This module defines the records produced by each scan technique and the
small value types passed between the detector, the scanners and the
orchestrator.
"""

import ipaddress
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Tuple

if TYPE_CHECKING:
    from .result_store import ScanSession


class ScanMode(Enum):
    """Active probing technique."""
    ARP = "arp"
    ICMP = "icmp"


class ScanStatus(Enum):
    """Enumeration of possible scan statuses."""
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class ScanTarget:
    """
    What to scan, as requested by the caller.

    Attributes:
        interface_name: Interface to probe from (required for ARP and passive)
        target_range: Optional CIDR or single address; None means the
            interface's own network
    """
    interface_name: str
    target_range: Optional[str] = None


@dataclass(frozen=True)
class InterfaceNetwork:
    """
    First IPv4 configuration of an OS interface.

    Attributes:
        name: Interface name
        address: Bound IPv4 address
        netmask: Dotted decimal netmask
        hardware_address: MAC address, lower case, colon separated
    """
    name: str
    address: str
    netmask: str
    hardware_address: Optional[str] = None

    @property
    def interface(self) -> ipaddress.IPv4Interface:
        return ipaddress.IPv4Interface(f"{self.address}/{self.netmask}")

    @property
    def prefixlen(self) -> int:
        return self.interface.network.prefixlen

    @property
    def cidr(self) -> str:
        return str(self.interface.network)


@dataclass(frozen=True)
class CaptureDevice:
    """A device that live captures can be opened on."""
    name: str
    description: str = ""
    addresses: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ArpResult:
    """A host that answered an ARP request."""
    interface_name: str
    dest_ip: str
    dest_mac: str

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.interface_name, self.dest_ip, self.dest_mac)


@dataclass(frozen=True)
class IcmpResult:
    """
    A host that answered at least one echo request.

    Attributes:
        ip: Host address
        average_rtt: Average round-trip time in seconds
    """
    ip: str
    average_rtt: float


@dataclass(frozen=True)
class PassiveResult:
    """
    A peer first seen sending IPv4 traffic to one of our addresses.

    Ethernet fields are None when the frame carried no Ethernet header.
    """
    src_ip: str
    protocol: int
    src_mac: Optional[str] = None
    dst_mac: Optional[str] = None
    ether_type: Optional[int] = None


@dataclass(frozen=True)
class HostnameResult:
    """
    Reverse DNS outcome for one address.

    Attributes:
        ip: Address that was looked up
        ptr_names: Names returned, trailing root dot removed
        fqdn: First name, or empty
        error_text: Lookup error, or empty
    """
    ip: str
    ptr_names: Tuple[str, ...] = ()
    fqdn: str = ""
    error_text: str = ""


@dataclass
class ProbeStatistics:
    """Outcome of sending echo requests to one host."""
    host: str
    sent: int = 0
    received: int = 0
    rtts: List[float] = field(default_factory=list)

    @property
    def alive(self) -> bool:
        return self.received > 0

    @property
    def average_rtt(self) -> float:
        if not self.rtts:
            return 0.0
        return sum(self.rtts) / len(self.rtts)


@dataclass
class ScanSummary:
    """
    Result of one orchestrated scan.

    Attributes:
        mode: Technique used ("arp", "icmp" or "passive")
        status: Overall status
        duration: Wall-clock seconds
        session: Session holding the result stores
        errors: Error messages for partial scans
    """
    mode: str
    status: ScanStatus
    duration: float
    session: "ScanSession"
    errors: List[str] = field(default_factory=list)

