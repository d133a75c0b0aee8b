"""Controllers for protoc-bridge CLI commands."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass, replace

from protoc_bridge.config import Settings
from protoc_bridge.driver import ProtocInvocationError, capture_stdout, driver_from_settings
from protoc_bridge.transport import TransportError, select_transport

PROBE_TIMEOUT_SECONDS = 20


@dataclass(slots=True)
class RunCommand:
    """CLI input for one bridged protoc invocation."""

    schemas: tuple[str, ...]
    include_paths: tuple[str, ...] = ()
    protoc_options: tuple[str, ...] = ()
    protoc: str | None = None
    plugin_name: str | None = None
    transport: str | None = None
    generator: str | None = None
    extension_modules: tuple[str, ...] = ()


@dataclass(slots=True)
class CheckCommand:
    """CLI input for environment check."""

    protoc: str | None = None


@dataclass(slots=True)
class CommandResult:
    """Printable outcome of a CLI command."""

    lines: list[str]
    success: bool


class BridgeCliController:
    """Translate CLI commands into driver calls and printable lines."""

    def run(self, command: RunCommand) -> CommandResult:
        try:
            settings = _apply_overrides(Settings.from_env(), command)
            driver = driver_from_settings(settings)
            stdout = driver.run_protoc_using(
                capture_stdout,
                schemas=command.schemas,
                include_paths=command.include_paths,
                protoc_options=command.protoc_options,
            )
        except ProtocInvocationError as error:
            lines = ["protoc failed:", str(error)]
            if error.exit_code is not None:
                lines.append(f"exit_code={error.exit_code}")
            return CommandResult(lines=lines, success=False)
        except TransportError as error:
            return CommandResult(lines=["Transport setup failed:", str(error)], success=False)
        except (ImportError, AttributeError, TypeError, ValueError) as error:
            return CommandResult(lines=["Invalid configuration:", str(error)], success=False)

        lines = [line for line in stdout.splitlines() if line.strip()]
        lines.append(
            f"protoc finished: transport={driver.transport.name} "
            f"plugin={driver.plugin_name} schemas={len(command.schemas)}",
        )
        return CommandResult(lines=lines, success=True)

    def check(self, command: CheckCommand) -> CommandResult:
        lines = ["protoc-bridge check:"]
        try:
            settings = Settings.from_env()
        except ValueError as error:
            return CommandResult(lines=[*lines, f"Invalid configuration: {error}"], success=False)
        executable = command.protoc or settings.protoc.command
        success = True

        try:
            transport = select_transport(
                settings.transport.kind,
                python_executable=settings.transport.python_executable,
            )
            lines.append(f"transport={transport.name}")
        except ValueError as error:
            lines.append(f"transport error: {error}")
            success = False

        resolved = shutil.which(executable)
        if resolved is None:
            lines.append(f"protoc not found in PATH: {executable}")
            return CommandResult(lines=lines, success=False)
        lines.append(f"protoc={resolved}")

        version, error = _query_version(resolved)
        if error is not None:
            lines.append(f"protoc version check failed: {error}")
            return CommandResult(lines=lines, success=False)
        lines.append(f"version={version}")
        return CommandResult(lines=lines, success=success)


def _apply_overrides(settings: Settings, command: RunCommand) -> Settings:
    protoc = replace(
        settings.protoc,
        command=command.protoc or settings.protoc.command,
        plugin_name=command.plugin_name or settings.protoc.plugin_name,
    )
    transport = replace(
        settings.transport,
        kind=(command.transport or settings.transport.kind).strip().lower(),
    )
    processor = replace(
        settings.processor,
        generator=command.generator or settings.processor.generator,
        extension_modules=command.extension_modules or settings.processor.extension_modules,
    )
    return replace(settings, protoc=protoc, transport=transport, processor=processor)


def _query_version(executable: str) -> tuple[str, str | None]:
    try:
        completed = subprocess.run(  # noqa: S603
            [executable, "--version"],
            capture_output=True,
            text=True,
            timeout=PROBE_TIMEOUT_SECONDS,
            check=False,
        )
    except subprocess.TimeoutExpired:
        return "", f"timed out after {PROBE_TIMEOUT_SECONDS}s"
    except OSError as error:
        return "", str(error)
    if completed.returncode != 0:
        return "", f"exit code {completed.returncode}: {completed.stderr.strip()}"
    return completed.stdout.strip(), None
