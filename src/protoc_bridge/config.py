"""Runtime configuration for the protoc bridge."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

TRANSPORT_KINDS = ("auto", "pipe", "socket")
DEFAULT_GENERATOR = "protoc_bridge.echo_generator:generate"


@dataclass(slots=True)
class ProtocSettings:
    """How the external compiler is invoked."""

    command: str = "protoc"
    plugin_name: str = "protoc-gen-bridge"


@dataclass(slots=True)
class TransportSettings:
    """Channel strategy and relay lifetime settings."""

    kind: str = "auto"
    python_executable: str = field(default_factory=lambda: sys.executable)
    relay_abort_grace_seconds: float = 2.0


@dataclass(slots=True)
class ProcessorSettings:
    """Request decoding and generation engine settings."""

    generator: str = DEFAULT_GENERATOR
    extension_modules: tuple[str, ...] = ()


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    protoc: ProtocSettings = field(default_factory=ProtocSettings)
    transport: TransportSettings = field(default_factory=TransportSettings)
    processor: ProcessorSettings = field(default_factory=ProcessorSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults suitable for local use."""

        return cls(
            protoc=ProtocSettings(
                command=os.getenv("PROTOC_BRIDGE_PROTOC", "protoc"),
                plugin_name=os.getenv("PROTOC_BRIDGE_PLUGIN_NAME", "protoc-gen-bridge"),
            ),
            transport=TransportSettings(
                kind=os.getenv("PROTOC_BRIDGE_TRANSPORT", "auto").strip().lower(),
                python_executable=os.getenv("PROTOC_BRIDGE_PYTHON", sys.executable),
                relay_abort_grace_seconds=_env_float(
                    "PROTOC_BRIDGE_RELAY_ABORT_GRACE_SECONDS",
                    default=2.0,
                ),
            ),
            processor=ProcessorSettings(
                generator=os.getenv("PROTOC_BRIDGE_GENERATOR", DEFAULT_GENERATOR).strip(),
                extension_modules=_env_csv("PROTOC_BRIDGE_EXTENSION_MODULES"),
            ),
        )

    def validate(self, os_name: str | None = None) -> None:
        """Raise configuration error if any setting cannot be honored on this host."""

        current_os_name = os_name or os.name
        if not self.protoc.command.strip():
            raise ValueError("PROTOC_BRIDGE_PROTOC must be a non-empty command.")
        plugin_name = self.protoc.plugin_name.strip()
        if not plugin_name:
            raise ValueError("PROTOC_BRIDGE_PLUGIN_NAME must be a non-empty string.")
        if "=" in plugin_name:
            raise ValueError(
                f"PROTOC_BRIDGE_PLUGIN_NAME must not contain '=': {plugin_name!r}",
            )
        if self.transport.kind not in TRANSPORT_KINDS:
            raise ValueError(
                f"Unsupported PROTOC_BRIDGE_TRANSPORT value: {self.transport.kind!r}. "
                f"Expected one of: {', '.join(TRANSPORT_KINDS)}.",
            )
        if self.transport.kind == "pipe" and current_os_name == "nt":
            raise ValueError("PROTOC_BRIDGE_TRANSPORT=pipe requires a POSIX host.")
        if self.transport.relay_abort_grace_seconds <= 0:
            raise ValueError("PROTOC_BRIDGE_RELAY_ABORT_GRACE_SECONDS must be > 0.")
        module_name, _, attribute = self.processor.generator.partition(":")
        if not module_name or not attribute:
            raise ValueError(
                "PROTOC_BRIDGE_GENERATOR must look like 'package.module:callable', "
                f"got {self.processor.generator!r}",
            )


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as error:
        raise ValueError(f"Invalid number for {name}: {value!r}") from error


def _env_csv(name: str) -> tuple[str, ...]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return ()
    values: list[str] = []
    for part in raw.split(","):
        token = part.strip()
        if token and token not in values:
            values.append(token)
    return tuple(values)
