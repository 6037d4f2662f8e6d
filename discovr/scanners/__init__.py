"""
Scanner modules for discovr.

This package contains the base scanner interface and the discovery
techniques (ARP, ICMP, passive capture) plus reverse DNS enrichment.
"""

from .base_scanner import BaseScanner
from .arp_scanner import ARPScanner
from .icmp_scanner import ICMPScanner, IcmpProber
from .passive_capture import PassiveCapture
from .hostname_resolver import HostnameResolver

__all__ = [
    'BaseScanner',
    'ARPScanner',
    'ICMPScanner',
    'IcmpProber',
    'PassiveCapture',
    'HostnameResolver',
]
