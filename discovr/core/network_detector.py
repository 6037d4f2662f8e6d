"""
Interface and capture device detection.

This module provides the NetworkDetector class which resolves an OS interface
to its first IPv4 configuration and hardware address, lists the host's local
addresses, and maps an interface address to the capture device that can be
opened for live capture.
"""

import socket
from typing import Dict, List, Optional, Set

import psutil
from scapy.config import conf

from .data_models import CaptureDevice, InterfaceNetwork
from ..utils.error_handler import (
    DeviceNotFound,
    ErrorType,
    InterfaceNotFound,
    NetworkDetectionError,
    NoIPv4Address,
    build_context,
)
from ..utils.logger import Logger, get_logger
from ..utils.network_utils import is_loopback_ip


def _normalize_mac(mac: Optional[str]) -> Optional[str]:
    if not mac:
        return None
    return mac.replace("-", ":").lower()


class NetworkDetector:
    """
    Detects interface configuration and capture devices.

    Interface data comes from psutil so it is the same on Linux, macOS and
    Windows; capture devices come from scapy's interface table, which is what
    live captures are opened against.
    """

    def __init__(self, logger: Optional[Logger] = None):
        """Initialize the NetworkDetector."""
        self.logger = logger or get_logger(__name__)

    def _interface_addresses(self) -> Dict[str, list]:
        try:
            return psutil.net_if_addrs()
        except OSError as e:
            raise NetworkDetectionError(
                f"Could not enumerate network interfaces: {e}",
                build_context(ErrorType.RESOURCE_ERROR, "net_if_addrs", "NetworkDetector"),
            ) from e

    def get_interface_network(self, interface_name: str) -> InterfaceNetwork:
        """
        Resolve an interface to its first IPv4 address, netmask and MAC.

        Args:
            interface_name: OS interface name (e.g. "eth0")

        Returns:
            InterfaceNetwork for the interface

        Raises:
            InterfaceNotFound: If the host has no such interface
            NoIPv4Address: If the interface carries no IPv4 address
        """
        interfaces = self._interface_addresses()
        if interface_name not in interfaces:
            raise InterfaceNotFound(
                f"Interface {interface_name!r} not found on this host",
                build_context(ErrorType.CONFIGURATION_ERROR, "get_interface_network",
                              "NetworkDetector", interface=interface_name),
            )

        addresses = interfaces[interface_name]
        hardware_address = next(
            (a.address for a in addresses if a.family == psutil.AF_LINK), None
        )
        ipv4 = next(
            (a for a in addresses if a.family == socket.AF_INET and a.address and a.netmask),
            None,
        )
        if ipv4 is None:
            raise NoIPv4Address(
                f"Interface {interface_name!r} has no IPv4 address",
                build_context(ErrorType.CONFIGURATION_ERROR, "get_interface_network",
                              "NetworkDetector", interface=interface_name),
            )

        network = InterfaceNetwork(
            name=interface_name,
            address=ipv4.address,
            netmask=ipv4.netmask,
            hardware_address=_normalize_mac(hardware_address),
        )
        self.logger.debug(
            f"Interface {interface_name}: {network.address}/{network.prefixlen} "
            f"({network.hardware_address or 'no MAC'})"
        )
        return network

    def get_local_addresses(self) -> Set[str]:
        """
        Collect every non-loopback IPv4 address configured on the host.

        Raises:
            NetworkDetectionError: If interfaces cannot be enumerated
        """
        local_ips = set()
        for interface_name, addresses in self._interface_addresses().items():
            for address in addresses:
                if address.family != socket.AF_INET or not address.address:
                    continue
                if is_loopback_ip(address.address):
                    continue
                local_ips.add(address.address)
                self.logger.debug(f"Local address on {interface_name}: {address.address}")
        return local_ips

    def list_capture_devices(self) -> List[CaptureDevice]:
        """
        List capture devices that have at least one address.

        Returns:
            List of CaptureDevice entries
        """
        devices = []
        for iface in conf.ifaces.values():
            ips = getattr(iface, "ips", None) or {}
            addresses = tuple(ips.get(4, [])) + tuple(ips.get(6, []))
            if not addresses and getattr(iface, "ip", None):
                addresses = (iface.ip,)
            if not addresses:
                continue
            devices.append(CaptureDevice(
                name=iface.name,
                description=getattr(iface, "description", "") or "",
                addresses=addresses,
            ))
        return devices

    def find_capture_device(self, address: str, interface_name: Optional[str] = None) -> CaptureDevice:
        """
        Find the capture device bound to ``address``.

        Args:
            address: IPv4 address of the interface being scanned
            interface_name: Used for error context only

        Raises:
            DeviceNotFound: If no capture device carries the address
        """
        match = None
        for device in self.list_capture_devices():
            if address in device.addresses:
                match = device
        if match is None:
            raise DeviceNotFound(
                f"Cannot find the capture device for interface {interface_name or address}",
                build_context(ErrorType.RESOURCE_ERROR, "find_capture_device", "NetworkDetector",
                              interface=interface_name, address=address),
            )
        self.logger.debug(f"Capture device for {address}: {match.name}")
        return match
