"""
Configuration loader for discovr.
Handles loading and validation of the YAML configuration file with fallback to defaults.
"""

import yaml
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from ..utils.logger import Logger, get_logger

CONFIG_FILE = "discovr.yml"


@dataclass
class ARPConfig:
    """Configuration for ARP scanning."""
    concurrency: int = 50
    grace_period: float = 3.0
    snaplen: int = 65536
    read_timeout: float = 0.5


@dataclass
class ICMPConfig:
    """Configuration for ICMP ping sweeps."""
    concurrency: int = 50
    timeout: float = 2.0
    count: int = 1
    interval: float = 0.1


@dataclass
class PassiveConfig:
    """Configuration for passive capture."""
    interface: str = "eth0"
    duration: float = 30.0
    snaplen: int = 1024
    read_timeout: float = 0.5


@dataclass
class HostnameConfig:
    """Configuration for reverse DNS enrichment."""
    enabled: bool = True
    concurrency: int = 20
    timeout: float = 2.0


@dataclass
class DiscovrConfig:
    """All scanner configurations loaded from one file."""
    arp: ARPConfig = field(default_factory=ARPConfig)
    icmp: ICMPConfig = field(default_factory=ICMPConfig)
    passive: PassiveConfig = field(default_factory=PassiveConfig)
    hostname: HostnameConfig = field(default_factory=HostnameConfig)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigLoader:
    """
    Loads and validates the YAML configuration file for discovr scanners.
    Provides fallback to default configurations when the file or a value is
    missing or invalid.
    """

    def __init__(self, config_dir: Optional[str] = None, logger: Optional[Logger] = None):
        """
        Initialize ConfigLoader.

        Args:
            config_dir: Directory containing discovr.yml.
                       Defaults to the config directory relative to this file.
        """
        if config_dir is None:
            self.config_dir = Path(__file__).parent
        else:
            self.config_dir = Path(config_dir)

        self.logger = logger or get_logger(__name__)

    @property
    def config_path(self) -> Path:
        return self.config_dir / CONFIG_FILE

    def load(self) -> DiscovrConfig:
        """
        Load every section of the configuration file.

        Returns:
            DiscovrConfig with loaded or default values
        """
        data = self._read_file()
        return DiscovrConfig(
            arp=self.load_arp_config(data.get("arp")),
            icmp=self.load_icmp_config(data.get("icmp")),
            passive=self.load_passive_config(data.get("passive")),
            hostname=self.load_hostname_config(data.get("hostname")),
        )

    def _read_file(self) -> Dict[str, Any]:
        config_path = self.config_path

        if not config_path.exists():
            self.logger.debug(f"Config file not found at {config_path}. Using default configuration.")
            return {}

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            self.logger.error(f"Error parsing config file {config_path}: {e}")
            self.logger.warning("Using default configuration.")
            return {}
        except OSError as e:
            self.logger.error(f"Unexpected error loading config file {config_path}: {e}")
            self.logger.warning("Using default configuration.")
            return {}

        if config_data is None:
            return {}
        if not isinstance(config_data, dict):
            self.logger.warning(f"Invalid config structure in {config_path}. Using default configuration.")
            return {}
        return config_data

    def _section(self, data: Any, name: str) -> Dict[str, Any]:
        if data is None:
            return {}
        if not isinstance(data, dict):
            self.logger.warning(f"Invalid {name} section in config. Using defaults.")
            return {}
        return data

    def load_arp_config(self, data: Any = None) -> ARPConfig:
        arp_data = self._section(data, "arp")
        default = ARPConfig()
        return ARPConfig(
            concurrency=self._validate_positive_int(arp_data.get("concurrency", default.concurrency), "arp.concurrency", default.concurrency),
            grace_period=self._validate_non_negative_float(arp_data.get("grace_period", default.grace_period), "arp.grace_period", default.grace_period),
            snaplen=self._validate_positive_int(arp_data.get("snaplen", default.snaplen), "arp.snaplen", default.snaplen),
            read_timeout=self._validate_positive_float(arp_data.get("read_timeout", default.read_timeout), "arp.read_timeout", default.read_timeout),
        )

    def load_icmp_config(self, data: Any = None) -> ICMPConfig:
        icmp_data = self._section(data, "icmp")
        default = ICMPConfig()
        return ICMPConfig(
            concurrency=self._validate_positive_int(icmp_data.get("concurrency", default.concurrency), "icmp.concurrency", default.concurrency),
            timeout=self._validate_positive_float(icmp_data.get("timeout", default.timeout), "icmp.timeout", default.timeout),
            count=self._validate_positive_int(icmp_data.get("count", default.count), "icmp.count", default.count),
            interval=self._validate_non_negative_float(icmp_data.get("interval", default.interval), "icmp.interval", default.interval),
        )

    def load_passive_config(self, data: Any = None) -> PassiveConfig:
        passive_data = self._section(data, "passive")
        default = PassiveConfig()
        interface = passive_data.get("interface", default.interface)
        if not isinstance(interface, str) or not interface.strip():
            self.logger.warning(f"Invalid passive.interface: {interface}. Using default: {default.interface}")
            interface = default.interface
        return PassiveConfig(
            interface=interface,
            duration=self._validate_positive_float(passive_data.get("duration", default.duration), "passive.duration", default.duration),
            snaplen=self._validate_positive_int(passive_data.get("snaplen", default.snaplen), "passive.snaplen", default.snaplen),
            read_timeout=self._validate_positive_float(passive_data.get("read_timeout", default.read_timeout), "passive.read_timeout", default.read_timeout),
        )

    def load_hostname_config(self, data: Any = None) -> HostnameConfig:
        hostname_data = self._section(data, "hostname")
        default = HostnameConfig()
        enabled = hostname_data.get("enabled", default.enabled)
        if not isinstance(enabled, bool):
            self.logger.warning(f"Invalid hostname.enabled: {enabled}. Must be true/false. Using default: {default.enabled}")
            enabled = default.enabled
        return HostnameConfig(
            enabled=enabled,
            concurrency=self._validate_positive_int(hostname_data.get("concurrency", default.concurrency), "hostname.concurrency", default.concurrency),
            timeout=self._validate_positive_float(hostname_data.get("timeout", default.timeout), "hostname.timeout", default.timeout),
        )

    def _validate_positive_int(self, value: Any, field_name: str, default: int) -> int:
        """
        Validate that a value is a positive integer.

        Args:
            value: Value to validate
            field_name: Name of the field for error messages
            default: Default value to use if validation fails

        Returns:
            Validated integer value or default
        """
        if isinstance(value, bool):
            self.logger.warning(f"Invalid {field_name}: {value}. Must be an integer. Using default: {default}")
            return default
        try:
            int_value = int(value)
            if int_value <= 0:
                self.logger.warning(f"Invalid {field_name}: {value}. Must be positive. Using default: {default}")
                return default
            return int_value
        except (ValueError, TypeError):
            self.logger.warning(f"Invalid {field_name}: {value}. Must be an integer. Using default: {default}")
            return default

    def _validate_positive_float(self, value: Any, field_name: str, default: float) -> float:
        float_value = self._validate_non_negative_float(value, field_name, default)
        if float_value == 0:
            self.logger.warning(f"Invalid {field_name}: {value}. Must be positive. Using default: {default}")
            return default
        return float_value

    def _validate_non_negative_float(self, value: Any, field_name: str, default: float) -> float:
        if isinstance(value, bool):
            self.logger.warning(f"Invalid {field_name}: {value}. Must be a number. Using default: {default}")
            return default
        try:
            float_value = float(value)
        except (ValueError, TypeError):
            self.logger.warning(f"Invalid {field_name}: {value}. Must be a number. Using default: {default}")
            return default
        if float_value < 0:
            self.logger.warning(f"Invalid {field_name}: {value}. Must not be negative. Using default: {default}")
            return default
        return float_value

    def create_default_config(self) -> Optional[Path]:
        """
        Create the default configuration file if it doesn't exist.

        Returns:
            Path written, or None if the file already existed or writing failed
        """
        config_path = self.config_path
        if config_path.exists():
            return None

        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(DiscovrConfig().as_dict(), f, default_flow_style=False, indent=2)
            self.logger.info(f"Created default config at {config_path}")
            return config_path
        except OSError as e:
            self.logger.error(f"Failed to create default config: {e}")
            return None
