"""Named-pipe transport for POSIX hosts.

The launcher is a two-line shell script: it copies its stdin into the FIFO and
then copies the FIFO to its stdout. The relay mirrors that order, so the FIFO
carries the request first and the response second. Blocking ``open`` on a
FIFO waits for the opposite end, which orders the two sides without locks.
"""

from __future__ import annotations

import logging
import os
import shlex
import stat
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from uuid import uuid4

from protoc_bridge.artifacts import create_artifact, make_owner_executable, remove_artifact
from protoc_bridge.transport.base import RequestHandler, TransportError

logger = logging.getLogger(__name__)

PIPE_MODE = stat.S_IRUSR | stat.S_IWUSR
_MKFIFO_ATTEMPTS = 5

_LAUNCHER_TEMPLATE = """\
#!/usr/bin/env sh
set -e
cat > {pipe}
cat {pipe}
"""


@dataclass(slots=True)
class PipeHandle:
    """One FIFO plus the shell launcher wired to it."""

    pipe_path: Path
    launcher: Path
    aborted: threading.Event = field(default_factory=threading.Event)
    closed: bool = False

    @property
    def artifacts(self) -> tuple[Path, ...]:
        return (self.pipe_path, self.launcher)


class PipeTransport:
    """Relay plugin traffic through a FIFO in the system temp directory."""

    name = "pipe"

    def open(self) -> PipeHandle:
        pipe_path = _create_pipe()
        try:
            script = _LAUNCHER_TEMPLATE.format(pipe=shlex.quote(str(pipe_path)))
            launcher = create_artifact("", script)
        except OSError as error:
            remove_artifact(pipe_path)
            raise TransportError(f"Failed to write pipe launcher script: {error}") from error
        try:
            make_owner_executable(launcher)
        except OSError as error:
            remove_artifact(launcher)
            remove_artifact(pipe_path)
            raise TransportError(
                f"Failed to set permissions on launcher {launcher}: {error}",
            ) from error
        logger.info("Opened pipe transport %s (launcher %s)", pipe_path, launcher)
        return PipeHandle(pipe_path=pipe_path, launcher=launcher)

    def relay(self, handle: PipeHandle, process: RequestHandler) -> None:
        # Blocks until the launcher opens the FIFO for writing.
        with open(handle.pipe_path, "rb") as reader:
            request = reader.read()
        if handle.aborted.is_set():
            logger.debug("Pipe relay %s aborted before processing", handle.pipe_path)
            return
        response = process(request)
        if handle.aborted.is_set():
            return
        # The reader is closed first so this open waits for the launcher's reader.
        with open(handle.pipe_path, "wb") as writer:
            if handle.aborted.is_set():
                return
            writer.write(response)
        logger.info(
            "Pipe relay %s done: request=%d bytes response=%d bytes",
            handle.pipe_path,
            len(request),
            len(response),
        )

    def abort(self, handle: PipeHandle) -> None:
        handle.aborted.set()
        for flags in (os.O_WRONLY | os.O_NONBLOCK, os.O_RDONLY | os.O_NONBLOCK):
            try:
                fd = os.open(handle.pipe_path, flags)
            except OSError:
                # ENXIO: no reader is waiting; ENOENT: already torn down.
                continue
            os.close(fd)

    def teardown(self, handle: PipeHandle) -> None:
        if handle.closed:
            return
        handle.closed = True
        for path in handle.artifacts:
            remove_artifact(path)
        logger.info("Tore down pipe transport %s", handle.pipe_path)


def _create_pipe() -> Path:
    temp_dir = Path(tempfile.gettempdir())
    last_error: OSError | None = None
    for _ in range(_MKFIFO_ATTEMPTS):
        pipe_path = temp_dir / f"protopipe-{uuid4().hex}.pipe"
        try:
            os.mkfifo(pipe_path, PIPE_MODE)
        except FileExistsError as error:
            last_error = error
            continue
        except (AttributeError, OSError) as error:
            raise TransportError(f"Failed to create named pipe {pipe_path}: {error}") from error
        try:
            # mkfifo honours the umask; the mode must be exact.
            pipe_path.chmod(PIPE_MODE)
        except OSError as error:
            remove_artifact(pipe_path)
            raise TransportError(
                f"Failed to set permissions on named pipe {pipe_path}: {error}",
            ) from error
        return pipe_path
    raise TransportError(f"Failed to allocate a unique named pipe path: {last_error}")
