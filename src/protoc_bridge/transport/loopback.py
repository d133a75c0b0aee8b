"""Loopback TCP transport for hosts without named pipes.

protoc runs a thin wrapper (a ``.bat`` file on Windows, a shell script
elsewhere) which starts a small Python client. The client sends its stdin to
the bridge's listening socket, half-closes the connection, and streams the
reply to its stdout.
"""

from __future__ import annotations

import logging
import os
import shlex
import socket
import threading
from dataclasses import dataclass, field
from pathlib import Path

from protoc_bridge.artifacts import create_artifact, make_owner_executable, remove_artifact
from protoc_bridge.transport.base import RequestHandler, TransportError

logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"
ACCEPT_POLL_SECONDS = 0.2
_RECV_CHUNK = 65536

_CLIENT_SCRIPT = """\
import socket
import sys

content = sys.stdin.buffer.read()
with socket.create_connection(("127.0.0.1", int(sys.argv[1]))) as conn:
    conn.sendall(content)
    conn.shutdown(socket.SHUT_WR)
    while True:
        data = conn.recv(65536)
        if not data:
            break
        sys.stdout.buffer.write(data)
sys.stdout.buffer.flush()
"""


@dataclass(slots=True)
class LoopbackHandle:
    """Listening socket plus the client script and wrapper pointing at it."""

    listener: socket.socket
    port: int
    launcher: Path
    client_script: Path
    aborted: threading.Event = field(default_factory=threading.Event)
    closed: bool = False

    @property
    def artifacts(self) -> tuple[Path, ...]:
        return (self.launcher, self.client_script)


class LoopbackTransport:
    """Relay plugin traffic through a one-shot TCP listener on 127.0.0.1."""

    name = "socket"

    def __init__(self, python_executable: str, *, os_name: str | None = None) -> None:
        self.python_executable = python_executable
        self.os_name = os_name or os.name

    def open(self) -> LoopbackHandle:
        try:
            listener = socket.create_server((LOOPBACK_HOST, 0))
        except OSError as error:
            raise TransportError(f"Failed to bind loopback listener: {error}") from error
        port = listener.getsockname()[1]

        created: list[Path] = []
        try:
            client_script = create_artifact(".py", _CLIENT_SCRIPT)
            created.append(client_script)
            launcher = self._create_wrapper(client_script, port)
            created.append(launcher)
        except OSError as error:
            for path in created:
                remove_artifact(path)
            listener.close()
            raise TransportError(f"Failed to write loopback launcher: {error}") from error

        listener.settimeout(ACCEPT_POLL_SECONDS)
        logger.info("Opened loopback transport on port %d (launcher %s)", port, launcher)
        return LoopbackHandle(
            listener=listener,
            port=port,
            launcher=launcher,
            client_script=client_script,
        )

    def relay(self, handle: LoopbackHandle, process: RequestHandler) -> None:
        connection = self._accept(handle)
        if connection is None:
            logger.debug("Loopback relay on port %d aborted before connect", handle.port)
            return
        with connection:
            connection.settimeout(None)
            chunks: list[bytes] = []
            while True:
                data = connection.recv(_RECV_CHUNK)
                if not data:
                    break
                chunks.append(data)
            request = b"".join(chunks)
            if handle.aborted.is_set():
                return
            response = process(request)
            connection.sendall(response)
        handle.listener.close()
        logger.info(
            "Loopback relay on port %d done: request=%d bytes response=%d bytes",
            handle.port,
            len(request),
            len(response),
        )

    def abort(self, handle: LoopbackHandle) -> None:
        handle.aborted.set()

    def teardown(self, handle: LoopbackHandle) -> None:
        if handle.closed:
            return
        handle.closed = True
        handle.aborted.set()
        handle.listener.close()
        for path in handle.artifacts:
            remove_artifact(path)
        logger.info("Tore down loopback transport on port %d", handle.port)

    def _accept(self, handle: LoopbackHandle) -> socket.socket | None:
        while not handle.aborted.is_set():
            try:
                connection, _ = handle.listener.accept()
            except TimeoutError:
                continue
            except OSError:
                if handle.aborted.is_set():
                    return None
                raise
            return connection
        return None

    def _create_wrapper(self, client_script: Path, port: int) -> Path:
        if self.os_name == "nt":
            return create_artifact(
                ".bat",
                f'@echo off\r\n"{self.python_executable}" -u "{client_script}" {port}\r\n',
            )
        command = shlex.join([self.python_executable, "-u", str(client_script), str(port)])
        wrapper = create_artifact(".sh", f"#!/usr/bin/env sh\nexec {command}\n")
        make_owner_executable(wrapper)
        return wrapper
