"""Transport interface shared by the pipe and loopback strategies."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol, TypeVar

RequestHandler = Callable[[bytes], bytes]


class TransportError(RuntimeError):
    """Channel or launcher artifact could not be created."""


class TransportHandle(Protocol):
    """State owned by one open transport."""

    @property
    def launcher(self) -> Path:
        """Executable registered with protoc as the plugin."""

    @property
    def artifacts(self) -> tuple[Path, ...]:
        """Every file created for this transport, removed on teardown."""


HandleT = TypeVar("HandleT", bound=TransportHandle)


class Transport(Protocol[HandleT]):
    """Protocol implemented by channel strategies.

    ``open`` either returns a fully usable handle or raises
    :class:`TransportError` with nothing left behind. ``teardown`` and
    ``abort`` are idempotent and never raise.
    """

    name: str

    def open(self) -> HandleT:
        """Create the channel and its launcher artifacts."""

    def relay(self, handle: HandleT, process: RequestHandler) -> None:
        """Read one request from the launcher, process it, write the response back."""

    def abort(self, handle: HandleT) -> None:
        """Release a relay still blocked waiting for the launcher."""

    def teardown(self, handle: HandleT) -> None:
        """Close the channel and delete every artifact."""


@contextmanager
def opened_transport(transport: Transport[HandleT]) -> Iterator[HandleT]:
    """Open ``transport`` and tear it down on every exit path."""

    handle = transport.open()
    try:
        yield handle
    finally:
        transport.teardown(handle)
