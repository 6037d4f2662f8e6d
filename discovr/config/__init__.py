"""
Configuration module for discovr.
Provides configuration loading and validation for all scanner types.
"""

from .config_loader import (
    ConfigLoader,
    DiscovrConfig,
    ARPConfig,
    ICMPConfig,
    PassiveConfig,
    HostnameConfig,
)

__all__ = [
    'ConfigLoader',
    'DiscovrConfig',
    'ARPConfig',
    'ICMPConfig',
    'PassiveConfig',
    'HostnameConfig',
]
