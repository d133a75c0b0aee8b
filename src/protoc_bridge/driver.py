"""Run protoc with a disposable launcher registered as the plugin.

Each invocation follows the same exchange regardless of transport:

1. protoc writes a ``CodeGeneratorRequest`` to the launcher's stdin.
2. The launcher forwards it through the transport.
3. The relay thread decodes it and runs the generator.
4. The relay writes the ``CodeGeneratorResponse`` back and closes its end.
5. The launcher copies the response to its stdout and exits.
6. protoc writes the generated files (or reports the error).
"""

from __future__ import annotations

import logging
import subprocess
import threading
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from protoc_bridge.config import Settings
from protoc_bridge.processor import CodeGenerator, RequestProcessor, load_generator
from protoc_bridge.transport import (
    RequestHandler,
    Transport,
    TransportHandle,
    opened_transport,
    select_transport,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
ProtocRunner = Callable[[list[str]], T]


class ProtocInvocationError(RuntimeError):
    """protoc could not be started or exited with a failure."""

    def __init__(self, message: str, *, exit_code: int | None, stderr: str = "") -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class RelayTask:
    """Background thread serving one plugin request over a transport."""

    def __init__(
        self,
        transport: Transport[Any],
        handle: TransportHandle,
        process: RequestHandler,
    ) -> None:
        self._transport = transport
        self._handle = handle
        self._process = process
        self.error: BaseException | None = None
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=f"protoc-bridge-relay-{transport.name}",
        )

    def start(self) -> None:
        self._thread.start()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the relay; return True once it has finished."""

        self._thread.join(timeout)
        return not self._thread.is_alive()

    def finish(self, grace: float) -> bool:
        """Join the relay, aborting the transport if it is still blocked.

        Called once protoc has exited: a relay still waiting for the launcher
        at that point was never invoked and can only be released by abort.
        """

        if self.join(grace):
            return True
        logger.debug("Plugin launcher %s was not invoked; aborting relay", self._handle.launcher)
        self._transport.abort(self._handle)
        if self.join(grace):
            return True
        logger.warning("Relay thread for %s is still blocked after abort", self._handle.launcher)
        return False

    def _run(self) -> None:
        try:
            self._transport.relay(self._handle, self._process)
        except Exception as error:  # noqa: BLE001
            self.error = error
            logger.exception("Relay for %s failed", self._handle.launcher)


class ProtocDriver:
    """Launch protoc with a transport-backed plugin and serve its request."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        transport: Transport[Any],
        process: RequestHandler,
        protoc_command: str = "protoc",
        plugin_name: str = "protoc-gen-bridge",
        relay_abort_grace_seconds: float = 2.0,
    ) -> None:
        self.transport = transport
        self.process = process
        self.protoc_command = protoc_command
        self.plugin_name = plugin_name
        self.relay_abort_grace_seconds = relay_abort_grace_seconds

    def run_protoc_using(
        self,
        runner: ProtocRunner[T],
        *,
        schemas: Sequence[str] = (),
        include_paths: Sequence[str] = (),
        protoc_options: Sequence[str] = (),
    ) -> T:
        """Open a transport, run ``runner`` on the protoc argv, and clean up.

        The relay is started before protoc so the launcher always finds a
        peer. ``runner`` must return only after protoc has exited; the relay
        then gets a short grace period to finish before it is aborted, and
        the transport is torn down whether ``runner`` returns or raises.
        """

        with opened_transport(self.transport) as handle:
            relay = RelayTask(self.transport, handle, self.process)
            relay.start()
            args = build_protoc_args(
                protoc_command=self.protoc_command,
                plugin_name=self.plugin_name,
                launcher=str(handle.launcher),
                schemas=schemas,
                include_paths=include_paths,
                protoc_options=protoc_options,
            )
            logger.debug("Running protoc: %s", args)
            try:
                return runner(args)
            finally:
                relay.finish(self.relay_abort_grace_seconds)


def build_protoc_args(  # noqa: PLR0913
    *,
    protoc_command: str,
    plugin_name: str,
    launcher: str,
    schemas: Sequence[str] = (),
    include_paths: Sequence[str] = (),
    protoc_options: Sequence[str] = (),
) -> list[str]:
    return [
        protoc_command,
        f"--plugin={plugin_name}={launcher}",
        *(f"-I{path}" for path in include_paths),
        *protoc_options,
        *schemas,
    ]


def run_subprocess(args: list[str]) -> subprocess.CompletedProcess[bytes]:
    """Run protoc to completion, raising on launch failure or non-zero exit."""

    try:
        completed = subprocess.run(args, capture_output=True, check=False)  # noqa: S603
    except FileNotFoundError as error:
        raise ProtocInvocationError(
            f"protoc command not found: {args[0]}",
            exit_code=None,
        ) from error
    except OSError as error:
        raise ProtocInvocationError(
            f"protoc failed to start: {error}",
            exit_code=None,
        ) from error
    if completed.returncode != 0:
        stderr = completed.stderr.decode("utf-8", errors="replace")
        raise ProtocInvocationError(
            f"protoc exited with code {completed.returncode}: {stderr.strip()}",
            exit_code=completed.returncode,
            stderr=stderr,
        )
    return completed


def capture_stdout(args: list[str]) -> str:
    """Run protoc and return its decoded stdout."""

    return run_subprocess(args).stdout.decode("utf-8", errors="replace")


def driver_from_settings(
    settings: Settings,
    generator: CodeGenerator | None = None,
) -> ProtocDriver:
    """Build a driver whose transport and processor follow ``settings``."""

    settings.validate()
    transport = select_transport(
        settings.transport.kind,
        python_executable=settings.transport.python_executable,
    )
    processor = RequestProcessor(
        generator or load_generator(settings.processor.generator),
        extension_modules=settings.processor.extension_modules,
    )
    return ProtocDriver(
        transport=transport,
        process=processor,
        protoc_command=settings.protoc.command,
        plugin_name=settings.protoc.plugin_name,
        relay_abort_grace_seconds=settings.transport.relay_abort_grace_seconds,
    )


def run_protoc(
    *protoc_options: str,
    generator: CodeGenerator | None = None,
    settings: Settings | None = None,
) -> str:
    """Run protoc with only option arguments and return its stdout."""

    driver = driver_from_settings(settings or Settings.from_env(), generator)
    return driver.run_protoc_using(capture_stdout, protoc_options=protoc_options)
