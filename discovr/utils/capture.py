"""
Live capture handles backed by scapy's layer-2 sockets.

A handle is owned by exactly one scan invocation. Reads poll with a short
timeout so reader threads can notice cancellation; writes send raw frames.
"""

import threading
from typing import Optional

from scapy.config import conf
from scapy.packet import Packet

from .error_handler import CaptureOpenError, ErrorType, InsufficientPrivileges, build_context


class CaptureHandle:
    """
    Thin wrapper around a scapy L2 socket.

    Args:
        device: Capture device name
        promisc: Put the device in promiscuous mode
        bpf_filter: Capture filter applied by the kernel, e.g. "arp"
        snaplen: Maximum bytes captured per frame
        listen_only: Open a receive-only socket (no writes)
    """

    def __init__(
        self,
        device: str,
        promisc: bool = True,
        bpf_filter: Optional[str] = None,
        snaplen: int = 65536,
        listen_only: bool = False,
    ):
        self.device = device
        self.snaplen = snaplen
        self._close_lock = threading.Lock()
        self._closed = False

        socket_factory = conf.L2listen if listen_only else conf.L2socket
        try:
            self._socket = socket_factory(iface=device, promisc=promisc, filter=bpf_filter)
        except PermissionError as e:
            raise InsufficientPrivileges(
                f"Opening a capture on {device} requires elevated privileges: {e}",
                build_context(ErrorType.PERMISSION_ERROR, "open", "CaptureHandle", device=device),
            ) from e
        except OSError as e:
            raise CaptureOpenError(
                f"Could not open capture on {device}: {e}",
                build_context(ErrorType.RESOURCE_ERROR, "open", "CaptureHandle", device=device),
            ) from e

    @property
    def closed(self) -> bool:
        return self._closed

    def read(self, timeout: float = 0.5) -> Optional[Packet]:
        """
        Wait up to ``timeout`` seconds for one frame.

        Returns:
            The decoded packet, or None if nothing arrived
        """
        if self._closed:
            return None
        ready = self._socket.select([self._socket], timeout)
        if not ready:
            return None
        return self._socket.recv(self.snaplen)

    def write(self, frame: bytes) -> None:
        """Send one serialized frame."""
        self._socket.send(frame)

    def close(self) -> None:
        """Close the handle; later calls are no-ops."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._socket.close()


def open_live(
    device: str,
    snaplen: int = 65536,
    promisc: bool = True,
    bpf_filter: Optional[str] = None,
    listen_only: bool = False,
) -> CaptureHandle:
    """Open a live capture handle on ``device``."""
    return CaptureHandle(
        device,
        promisc=promisc,
        bpf_filter=bpf_filter,
        snaplen=snaplen,
        listen_only=listen_only,
    )
