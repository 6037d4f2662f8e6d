"""
Network utility functions for subnet arithmetic.

A "net" here is either an ``ipaddress.IPv4Network`` or an
``ipaddress.IPv4Interface``; the latter keeps the host address next to its
mask, which is what an OS interface reports (e.g. ``10.0.0.5/24``).
"""

import ipaddress
from typing import List, Optional, Tuple, Union

from .error_handler import InvalidTarget, build_context, ErrorType

IPv4Net = Union[ipaddress.IPv4Network, ipaddress.IPv4Interface]

_ALL_ONES = 0xFFFFFFFF


def _address_and_mask(net: IPv4Net) -> Tuple[int, int]:
    if isinstance(net, ipaddress.IPv4Interface):
        return int(net.ip), int(net.netmask)
    return int(net.network_address), int(net.netmask)


def _is_ipv4_net(net) -> bool:
    return isinstance(net, (ipaddress.IPv4Network, ipaddress.IPv4Interface))


def network_and_broadcast(net: IPv4Net) -> Tuple[ipaddress.IPv4Address, ipaddress.IPv4Address]:
    """
    Compute the network and broadcast addresses of a net.

    Args:
        net: IPv4 network or interface

    Returns:
        Tuple of (network address, broadcast address)
    """
    address, mask = _address_and_mask(net)
    network = address & mask
    broadcast = network | (~mask & _ALL_ONES)
    return ipaddress.IPv4Address(network), ipaddress.IPv4Address(broadcast)


def is_subnet_within(outer: Optional[IPv4Net], inner: Optional[IPv4Net]) -> bool:
    """
    Check whether inner's address range lies entirely inside outer's.

    IPv6 or missing input yields False rather than raising; callers treat
    False as a rejection.
    """
    if not _is_ipv4_net(outer) or not _is_ipv4_net(inner):
        return False
    outer_start, outer_end = network_and_broadcast(outer)
    inner_start, inner_end = network_and_broadcast(inner)
    return inner_start >= outer_start and inner_end <= outer_end


def align_to_network(net: IPv4Net) -> ipaddress.IPv4Interface:
    """
    Mask a net's address down to its network address, keeping the mask.

    Aligning twice yields the same value.
    """
    network, _ = network_and_broadcast(net)
    return ipaddress.IPv4Interface(f"{network}/{net.netmask}")


def enumerate_hosts(target_net: IPv4Net, interface_net: IPv4Net) -> List[ipaddress.IPv4Address]:
    """
    List every address to probe in target_net, in ascending order.

    Excludes target_net's own network and broadcast addresses as well as the
    interface network's, so a narrower target never hits the interface
    network's broadcast address.

    Args:
        target_net: Range being probed
        interface_net: Network the probing interface is attached to

    Returns:
        List of IPv4 addresses
    """
    start, end = network_and_broadcast(target_net)
    excluded = set(network_and_broadcast(interface_net))
    excluded.update((start, end))

    return [
        ipaddress.IPv4Address(value)
        for value in range(int(start), int(end) + 1)
        if ipaddress.IPv4Address(value) not in excluded
    ]


def sweep_hosts(target_net: IPv4Net):
    """
    Yield the addresses of a ping sweep lazily, skipping the range's own
    network and broadcast addresses.
    """
    start, end = network_and_broadcast(target_net)
    for value in range(int(start), int(end) + 1):
        if value in (int(start), int(end)):
            continue
        yield ipaddress.IPv4Address(value)


def parse_cidr(value: str) -> Optional[ipaddress.IPv4Interface]:
    """Parse an IPv4 CIDR string, returning None when it is not one."""
    if not value or "/" not in value:
        return None
    try:
        return ipaddress.IPv4Interface(value.strip())
    except (ipaddress.AddressValueError, ipaddress.NetmaskValueError, ValueError):
        return None


def parse_address(value: str) -> Optional[ipaddress.IPv4Address]:
    """Parse a single IPv4 address string, returning None when it is not one."""
    try:
        return ipaddress.IPv4Address(value.strip())
    except (ipaddress.AddressValueError, ValueError, AttributeError):
        return None


def parse_target(value: str) -> Union[ipaddress.IPv4Interface, ipaddress.IPv4Address]:
    """
    Classify a target as a range or a single host.

    CIDR parsing is attempted first, then a plain address.

    Raises:
        InvalidTarget: If value is neither
    """
    network = parse_cidr(value)
    if network is not None:
        return network
    address = parse_address(value)
    if address is not None:
        return address
    raise InvalidTarget(
        f"Invalid target {value!r}: not a valid IPv4 address or CIDR",
        build_context(ErrorType.CONFIGURATION_ERROR, "parse_target", "network_utils",
                      requested_range=value),
    )


def prefix_covers_top_octets(netmask: Union[str, ipaddress.IPv4Address]) -> bool:
    """
    Check that a mask covers at least the two top octets (prefix >= 16).

    Larger networks are too big to probe host by host.
    """
    mask = int(ipaddress.IPv4Address(str(netmask)))
    return (mask >> 16) == 0xFFFF


def is_loopback_ip(ip_address: str) -> bool:
    """
    Check if an IP address is a loopback address.

    Args:
        ip_address: IP address to check

    Returns:
        bool: True if IP is loopback, False otherwise
    """
    try:
        return ipaddress.IPv4Address(ip_address).is_loopback
    except ipaddress.AddressValueError:
        return False
