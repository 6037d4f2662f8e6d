"""
Core components for discovr: data model, result stores, interface detection
and the scan orchestrator.
"""

from .data_models import (
    ScanMode,
    ScanStatus,
    ScanTarget,
    InterfaceNetwork,
    CaptureDevice,
    ArpResult,
    IcmpResult,
    PassiveResult,
    HostnameResult,
    ProbeStatistics,
    ScanSummary,
)
from .result_store import ResultStore, ScanSession

__all__ = [
    'ScanMode',
    'ScanStatus',
    'ScanTarget',
    'InterfaceNetwork',
    'CaptureDevice',
    'ArpResult',
    'IcmpResult',
    'PassiveResult',
    'HostnameResult',
    'ProbeStatistics',
    'ScanSummary',
    'ResultStore',
    'ScanSession',
]
