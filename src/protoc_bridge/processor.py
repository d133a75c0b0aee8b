"""Decode plugin requests, run the generator, and encode its response."""

from __future__ import annotations

import importlib
import logging
import traceback
from collections.abc import Callable, Iterable

from google.protobuf.compiler.plugin_pb2 import CodeGeneratorRequest, CodeGeneratorResponse

logger = logging.getLogger(__name__)

CodeGenerator = Callable[[CodeGeneratorRequest], CodeGeneratorResponse]
RequestDecoder = Callable[[bytes], CodeGeneratorRequest]


def build_decoder(extension_modules: Iterable[str] = ()) -> RequestDecoder:
    """Return a request parser that sees the given modules' custom options.

    Importing a generated ``*_pb2`` module registers its extensions in the
    default descriptor pool; options parsed afterwards expose them as
    extensions instead of unknown fields.
    """

    for module_name in extension_modules:
        importlib.import_module(module_name)

    def decode(payload: bytes) -> CodeGeneratorRequest:
        request = CodeGeneratorRequest()
        request.ParseFromString(payload)
        return request

    return decode


def load_generator(reference: str) -> CodeGenerator:
    """Resolve ``package.module:attribute`` to a generator callable."""

    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Generator reference must look like 'module:callable': {reference!r}")
    module = importlib.import_module(module_name)
    target: object = module
    for part in attribute.split("."):
        target = getattr(target, part)
    if not callable(target):
        raise TypeError(f"Generator {reference!r} is not callable")
    return target  # type: ignore[return-value]


def error_response(error: BaseException) -> CodeGeneratorResponse:
    """Build an error response carrying the failure and its traceback."""

    trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return CodeGeneratorResponse(error=f"{type(error).__name__}: {error}\n{trace}")


class RequestProcessor:
    """Turn raw plugin request bytes into raw response bytes.

    :meth:`handle` never raises: decode and generator failures are reported
    to protoc through the response's ``error`` field. A generator response
    carrying both an error and files is ambiguous and is reported as an error.
    """

    def __init__(
        self,
        generator: CodeGenerator,
        *,
        extension_modules: Iterable[str] = (),
    ) -> None:
        self.generator = generator
        self.extension_modules = tuple(extension_modules)

    def __call__(self, request_bytes: bytes) -> bytes:
        return self.handle(request_bytes)

    def handle(self, request_bytes: bytes) -> bytes:
        try:
            decode = build_decoder(self.extension_modules)
            request = decode(request_bytes)
            response = self.generator(request)
            if not isinstance(response, CodeGeneratorResponse):
                raise TypeError(
                    "Generator must return CodeGeneratorResponse, "
                    f"got {type(response).__name__}",
                )
            if response.error and len(response.file):
                raise ValueError(
                    "Generator response must not set both error and files, "
                    f"got error {response.error!r} with {len(response.file)} file(s)",
                )
            return response.SerializeToString()
        except Exception as error:  # noqa: BLE001
            logger.exception("Code generation failed")
            return error_response(error).SerializeToString()
