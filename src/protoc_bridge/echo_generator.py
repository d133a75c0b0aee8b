"""Deterministic demo generator for CLI runs and integration tests."""

from __future__ import annotations

from google.protobuf.compiler.plugin_pb2 import CodeGeneratorRequest, CodeGeneratorResponse
from google.protobuf.descriptor_pb2 import DescriptorProto, FileDescriptorProto

OUTPUT_SUFFIX = ".echo.txt"


def generate(request: CodeGeneratorRequest) -> CodeGeneratorResponse:
    """Describe every requested schema file in a plain-text summary."""

    files_by_name = {proto.name: proto for proto in request.proto_file}
    response = CodeGeneratorResponse()
    for file_name in request.file_to_generate:
        proto = files_by_name.get(file_name)
        if proto is None:
            raise KeyError(f"File not found in request: {file_name}")
        generated = response.file.add()
        generated.name = output_name(file_name)
        generated.content = render_file(proto, parameter=request.parameter)
    return response


def output_name(file_name: str) -> str:
    stem = file_name[: -len(".proto")] if file_name.endswith(".proto") else file_name
    return stem + OUTPUT_SUFFIX


def render_file(proto: FileDescriptorProto, *, parameter: str = "") -> str:
    lines = [f"file: {proto.name}", f"package: {proto.package or '<none>'}"]
    if parameter:
        lines.append(f"parameter: {parameter}")
    for message in proto.message_type:
        lines.extend(_render_message(message, indent=""))
    return "\n".join(lines) + "\n"


def _render_message(message: DescriptorProto, *, indent: str) -> list[str]:
    lines = [f"{indent}message {message.name}"]
    for field in message.field:
        lines.append(f"{indent}  {field.number}: {field.name}")
    for nested in message.nested_type:
        lines.extend(_render_message(nested, indent=indent + "  "))
    return lines
