"""
Main entry point for discovr.

This module provides the command-line interface: argument parsing, config
loading with command-line overrides, translation of Ctrl+C into scan
cancellation, and error reporting with troubleshooting hints.
"""

import argparse
import signal
import sys
from pathlib import Path
from typing import Callable, List, Optional

from . import __version__
from .config.config_loader import ConfigLoader, DiscovrConfig
from .core.data_models import ScanMode, ScanStatus, ScanSummary, ScanTarget
from .core.network_detector import NetworkDetector
from .core.scanner_orchestrator import ScannerOrchestrator
from .utils.concurrency import CancellationToken
from .utils.error_handler import (
    DiscovrError,
    ErrorHandler,
    ErrorType,
    InvalidConfiguration,
    build_context,
)
from .utils.logger import LogLevel, get_logger, set_log_level

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


class DiscovrApp:
    """
    Main application class for discovr.

    Handles the CLI commands and the application lifecycle. The first SIGINT
    cancels the running scan, which then returns what it found so far; a
    second one exits immediately.
    """

    def __init__(
        self,
        orchestrator_factory: Callable[..., ScannerOrchestrator] = ScannerOrchestrator,
        detector: Optional[NetworkDetector] = None,
    ):
        """
        Initialize the application.

        Args:
            orchestrator_factory: Builds the orchestrator from a config and logger
            detector: Interface lookup used by the ``interfaces`` command
        """
        self.logger = get_logger(__name__)
        self.error_handler = ErrorHandler(self.logger)
        self.orchestrator_factory = orchestrator_factory
        self.detector = detector
        self.cancel_token = CancellationToken()

    def _signal_handler(self, signum: int, frame) -> None:
        """
        Cancel the running scan on the first signal, exit on the second.

        Args:
            signum: Signal number
            frame: Current stack frame
        """
        signal_name = signal.Signals(signum).name
        if not self.cancel_token.cancelled:
            self.logger.warning(f"Received {signal_name} - stopping scan, press Ctrl+C again to force exit")
            self.cancel_token.cancel(f"received {signal_name}")
        else:
            self.logger.error("Force shutdown requested - terminating immediately")
            sys.exit(EXIT_INTERRUPTED)

    def _install_signal_handlers(self) -> dict:
        previous = {}
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.signal(signum, self._signal_handler)
        return previous

    @staticmethod
    def _restore_signal_handlers(previous: dict) -> None:
        for signum, handler in previous.items():
            if handler is not None:
                signal.signal(signum, handler)

    def _load_config(self, config_dir: Optional[str]) -> DiscovrConfig:
        """
        Load discovr.yml from ``config_dir`` (or the packaged default).

        Raises:
            InvalidConfiguration: If ``config_dir`` is not an existing directory
        """
        if config_dir:
            config_path = Path(config_dir)
            if not config_path.is_dir():
                raise InvalidConfiguration(
                    f"Configuration directory does not exist: {config_dir}",
                    build_context(ErrorType.CONFIGURATION_ERROR, "load_config", "DiscovrApp",
                                  config_dir=config_dir),
                )
            config_dir = str(config_path.resolve())

        loader = ConfigLoader(config_dir, self.logger)
        self.logger.debug(f"Using configuration file: {loader.config_path}")
        return loader.load()

    def run(self, args: argparse.Namespace) -> int:
        """
        Run the selected command.

        Args:
            args: Parsed command line arguments

        Returns:
            int: Exit code (0 success, 1 error, 130 interrupted)
        """
        previous_handlers = self._install_signal_handlers()
        try:
            if args.command == "interfaces":
                return self._list_interfaces()

            config = self._load_config(args.config_dir)
            if args.command == "active":
                summary = self._run_active(args, config)
            else:
                summary = self._run_passive(args, config)
            return self._exit_code(summary)

        except DiscovrError as e:
            self.error_handler.report(e)
            return EXIT_ERROR
        except PermissionError as e:
            self.error_handler.report(e)
            return EXIT_ERROR
        except KeyboardInterrupt:
            self.logger.warning("Scan interrupted by user")
            return EXIT_INTERRUPTED
        finally:
            self._restore_signal_handlers(previous_handlers)

    def _run_active(self, args: argparse.Namespace, config: DiscovrConfig) -> ScanSummary:
        if args.no_hostnames:
            config.hostname.enabled = False

        mode = ScanMode.ICMP if args.icmp else ScanMode.ARP
        target = ScanTarget(interface_name=args.interface or "", target_range=args.cidr)
        orchestrator = self.orchestrator_factory(config=config, logger=self.logger)

        self.logger.info(
            f"Starting {mode.value.upper()} scan",
            interface=target.interface_name or "-",
            range=target.target_range or "interface network",
        )
        return orchestrator.run_active_scan(
            target,
            mode=mode,
            concurrency=args.concurrency,
            timeout=args.timeout,
            count=args.count,
            cancel_token=self.cancel_token,
        )

    def _run_passive(self, args: argparse.Namespace, config: DiscovrConfig) -> ScanSummary:
        orchestrator = self.orchestrator_factory(config=config, logger=self.logger)
        return orchestrator.run_passive_scan(
            args.interface or config.passive.interface,
            args.duration or config.passive.duration,
            cancel_token=self.cancel_token,
        )

    def _list_interfaces(self) -> int:
        detector = self.detector or NetworkDetector(self.logger)
        devices = detector.list_capture_devices()

        self.logger.section("CAPTURE INTERFACES")
        if not devices:
            self.logger.warning("No capture interfaces with addresses found")
            return EXIT_ERROR

        for device in devices:
            description = f" - {device.description}" if device.description else ""
            self.logger.info(f"{device.name}{description}")
            for address in device.addresses:
                self.logger.info(f"  • {address}")
        return EXIT_OK

    def _exit_code(self, summary: ScanSummary) -> int:
        if self.cancel_token.cancelled:
            self.logger.warning("Scan interrupted by user")
            return EXIT_INTERRUPTED
        if summary.status == ScanStatus.COMPLETED:
            return EXIT_OK
        for error in summary.errors:
            self.logger.error(error)
        return EXIT_ERROR


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not an integer")
    if number < 1:
        raise argparse.ArgumentTypeError(f"{value!r} must be at least 1")
    return number


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not a number")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"{value!r} must be positive")
    return number


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the command line argument parser.

    Returns:
        argparse.ArgumentParser: Configured argument parser
    """
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config-dir",
        type=str,
        help="Directory containing discovr.yml. Defaults to discovr/config/",
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging output",
    )

    parser = argparse.ArgumentParser(
        prog="discovr",
        description="discovr - Local network host discovery using ARP, ICMP and passive capture",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m discovr active -i eth0                      # ARP scan of eth0's network
  python -m discovr active -i eth0 -r 10.0.0.0/28       # ARP scan of a narrower range
  python -m discovr active -m -r 10.0.0.0/24 -p 100     # ICMP sweep, 100 in flight
  python -m discovr active -m -r 10.0.0.7 -c 4          # Ping one host four times
  python -m discovr passive -i eth0 -d 60               # Listen for a minute
  python -m discovr interfaces                          # List capture interfaces
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"discovr {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    active = subparsers.add_parser(
        "active", parents=[common], help="Probe the network with ARP or ICMP"
    )
    active.add_argument("--interface", "-i", type=str, help="Interface to scan from")
    active.add_argument(
        "--cidr", "-r",
        type=str,
        help="Target range (CIDR) or, with --icmp, a single address. "
             "Defaults to the interface network",
    )
    active.add_argument("--icmp", "-m", action="store_true", help="Use ICMP echo instead of ARP")
    active.add_argument("--concurrency", "-p", type=_positive_int, help="Maximum probes in flight")
    active.add_argument("--timeout", "-t", type=_positive_float, help="ICMP reply timeout in seconds")
    active.add_argument("--count", "-c", type=_positive_int, help="ICMP echo requests per host")
    active.add_argument(
        "--no-hostnames",
        action="store_true",
        help="Skip reverse DNS lookups of discovered hosts",
    )

    passive = subparsers.add_parser(
        "passive", parents=[common], help="Listen for hosts talking to this machine"
    )
    passive.add_argument("--interface", "-i", type=str, help="Interface to listen on")
    passive.add_argument("--duration", "-d", type=_positive_float, help="Capture length in seconds")

    subparsers.add_parser(
        "interfaces", parents=[common], help="List capture interfaces with addresses"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for discovr.

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if args.command == "active" and not args.icmp and not args.interface:
        parser.error("ARP scans need --interface")
    if args.command == "active" and args.icmp and not (args.interface or args.cidr):
        parser.error("ICMP scans need --cidr or --interface")

    if args.verbose:
        set_log_level(LogLevel.DEBUG)

    app = DiscovrApp()
    return app.run(args)


if __name__ == "__main__":
    sys.exit(main())
