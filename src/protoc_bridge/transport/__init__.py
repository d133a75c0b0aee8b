"""Ephemeral channels between a protoc plugin launcher and this process."""

from __future__ import annotations

import os
import sys

from protoc_bridge.transport.base import (
    RequestHandler,
    Transport,
    TransportError,
    TransportHandle,
    opened_transport,
)
from protoc_bridge.transport.loopback import LoopbackHandle, LoopbackTransport
from protoc_bridge.transport.pipe import PipeHandle, PipeTransport

__all__ = [
    "LoopbackHandle",
    "LoopbackTransport",
    "PipeHandle",
    "PipeTransport",
    "RequestHandler",
    "Transport",
    "TransportError",
    "TransportHandle",
    "opened_transport",
    "select_transport",
]


def select_transport(
    kind: str = "auto",
    *,
    python_executable: str | None = None,
    os_name: str | None = None,
) -> PipeTransport | LoopbackTransport:
    """Pick the channel strategy for this host.

    ``auto`` uses the loopback socket on Windows and the named pipe elsewhere.
    """

    current_os_name = os_name or os.name
    if kind == "auto":
        kind = "socket" if current_os_name == "nt" else "pipe"
    if kind == "socket":
        return LoopbackTransport(python_executable or sys.executable, os_name=current_os_name)
    if kind == "pipe":
        if current_os_name == "nt":
            raise ValueError("The pipe transport requires a POSIX host.")
        return PipeTransport()
    raise ValueError(f"Unsupported transport kind: {kind!r}")
