"""
Utility functions and helper classes.
"""

from .logger import Logger, LogLevel, logger, set_log_level, get_logger
from .error_handler import (
    ErrorHandler, ErrorContext, ErrorType, build_context,
    DiscovrError, ConfigurationError, ResourceError, ProbeError,
    InterfaceNotFound, NoIPv4Address, LoopbackRejected, NetworkTooLarge,
    TargetOutsideInterfaceNetwork, InvalidTarget, InvalidConfiguration,
    DeviceNotFound, CaptureOpenError, NetworkDetectionError,
    InsufficientPrivileges, ArpWriteError,
)
from .concurrency import ConcurrencyGate, CancellationToken
from . import network_utils

__all__ = [
    'Logger',
    'LogLevel',
    'logger',
    'set_log_level',
    'get_logger',
    'ErrorHandler',
    'ErrorContext',
    'ErrorType',
    'build_context',
    'DiscovrError',
    'ConfigurationError',
    'ResourceError',
    'ProbeError',
    'InterfaceNotFound',
    'NoIPv4Address',
    'LoopbackRejected',
    'NetworkTooLarge',
    'TargetOutsideInterfaceNetwork',
    'InvalidTarget',
    'InvalidConfiguration',
    'DeviceNotFound',
    'CaptureOpenError',
    'NetworkDetectionError',
    'InsufficientPrivileges',
    'ArpWriteError',
    'ConcurrencyGate',
    'CancellationToken',
    'network_utils',
]
