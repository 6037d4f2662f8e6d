"""
discovr

Local network host discovery using ARP probing, ICMP echo sweeps and passive
traffic observation, with reverse DNS enrichment of the hosts found.
"""

__version__ = "1.0.0"
__author__ = "discovr Team"
