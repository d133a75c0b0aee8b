"""Shared test fixtures."""

from __future__ import annotations

import os
import stat
import sys
import tempfile
from pathlib import Path

import pytest

_FAKE_PROTOC = r'''
import re
import subprocess
import sys
from pathlib import Path

from google.protobuf import descriptor_pb2
from google.protobuf.compiler import plugin_pb2

args = sys.argv[1:]
if args == ["--version"]:
    print("libprotoc 99.0 (fake)")
    raise SystemExit(0)

plugins = {}
includes = []
outputs = []
schemas = []
for arg in args:
    if arg.startswith("--plugin="):
        name, _, path = arg[len("--plugin="):].partition("=")
        plugins[name] = path
    elif arg.startswith("-I"):
        includes.append(arg[2:])
    elif arg.startswith("--") and "_out=" in arg:
        lang, _, target = arg[2:].partition("_out=")
        parameter, _, out_dir = target.rpartition(":")
        outputs.append((lang, parameter, out_dir))
    elif arg.startswith("-"):
        print(f"Unknown flag: {arg}", file=sys.stderr)
        raise SystemExit(1)
    else:
        schemas.append(arg)

if not schemas:
    print("Missing input file.", file=sys.stderr)
    raise SystemExit(1)


def resolve(schema):
    for root in includes:
        candidate = Path(root) / schema
        if candidate.is_file():
            return candidate
    return Path(schema)


def describe(schema):
    proto = descriptor_pb2.FileDescriptorProto(name=Path(schema).name, syntax="proto3")
    message = None
    for raw in resolve(schema).read_text("utf-8").splitlines():
        line = raw.strip()
        package = re.match(r"package\s+([\w.]+)\s*;", line)
        if package:
            proto.package = package.group(1)
            continue
        opening = re.match(r"message\s+(\w+)\s*\{", line)
        if opening:
            message = proto.message_type.add(name=opening.group(1))
            continue
        if line.startswith("}"):
            message = None
            continue
        field = re.match(r"\w+\s+(\w+)\s*=\s*(\d+)", line)
        if field and message is not None:
            message.field.add(name=field.group(1), number=int(field.group(2)))
    return proto


for lang, parameter, out_dir in outputs:
    plugin = plugins.get(f"protoc-gen-{lang}")
    if plugin is None:
        print(f"protoc-gen-{lang}: program not found or is not executable", file=sys.stderr)
        raise SystemExit(1)
    request = plugin_pb2.CodeGeneratorRequest(parameter=parameter)
    for schema in schemas:
        proto = describe(schema)
        request.proto_file.append(proto)
        request.file_to_generate.append(proto.name)
    completed = subprocess.run(
        [plugin],
        input=request.SerializeToString(),
        capture_output=True,
        timeout=60,
    )
    if completed.returncode != 0:
        sys.stderr.write(completed.stderr.decode("utf-8", "replace"))
        print(f"--{lang}_out: protoc-gen-{lang}: Plugin failed.", file=sys.stderr)
        raise SystemExit(1)
    response = plugin_pb2.CodeGeneratorResponse()
    response.ParseFromString(completed.stdout)
    if response.error:
        print(f"--{lang}_out: {response.error}", file=sys.stderr)
        raise SystemExit(1)
    for generated in response.file:
        target = Path(out_dir) / generated.name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(generated.content, "utf-8")
        print(f"wrote {generated.name}")
'''

CAR_PROTO = """\
syntax = "proto3";

package demo.cars;

message Tyre {
    int32 size = 1;
}

message Car {
    Tyre front = 1;
    Tyre rear = 2;
    string model = 3;
}
"""


_OTHER_PLUGIN = """
import sys

from google.protobuf.compiler import plugin_pb2

request = plugin_pb2.CodeGeneratorRequest()
request.ParseFromString(sys.stdin.buffer.read())
response = plugin_pb2.CodeGeneratorResponse()
response.file.add(name="other.txt", content=",".join(request.file_to_generate))
sys.stdout.buffer.write(response.SerializeToString())
"""


def write_python_executable(bin_dir: Path, name: str, source: str) -> Path:
    """Write ``source`` behind a wrapper that can be run directly as ``name``."""

    bin_dir.mkdir(parents=True, exist_ok=True)
    implementation = bin_dir / f"{name}_impl.py"
    implementation.write_text(source.strip() + "\n", "utf-8")

    if os.name == "nt":
        launcher = bin_dir / f"{name}.cmd"
        launcher.write_text(
            f'@echo off\r\n"{sys.executable}" "{implementation}" %*\r\n',
            "utf-8",
        )
        return launcher
    launcher = bin_dir / name
    launcher.write_text(
        f'#!/usr/bin/env sh\nexec "{sys.executable}" "{implementation}" "$@"\n',
        "utf-8",
    )
    launcher.chmod(launcher.stat().st_mode | stat.S_IXUSR)
    return launcher


@pytest.fixture()
def fake_protoc(tmp_path: Path) -> Path:
    """protoc stand-in that drives real plugins over stdin/stdout."""

    return write_python_executable(tmp_path / "bin", "protoc", _FAKE_PROTOC)


@pytest.fixture()
def other_plugin(tmp_path: Path) -> Path:
    """Standalone plugin unrelated to the bridge."""

    return write_python_executable(tmp_path / "plugins", "protoc-gen-other", _OTHER_PLUGIN)


@pytest.fixture()
def schema_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "protos"
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "car.proto").write_text(CAR_PROTO, "utf-8")
    return directory


@pytest.fixture()
def artifact_dir(tmp_path: Path, monkeypatch) -> Path:
    """Redirect transport artifacts into a private, inspectable temp dir."""

    directory = tmp_path / "artifacts"
    directory.mkdir(parents=True, exist_ok=True)
    monkeypatch.setattr(tempfile, "tempdir", str(directory))
    return directory


@pytest.fixture()
def shell_hostile_artifact_dir(tmp_path: Path, monkeypatch) -> Path:
    """Temp dir whose name breaks naive double-quoted shell interpolation."""

    directory = tmp_path / 'we"ird $HOME `id` dir'
    directory.mkdir(parents=True, exist_ok=True)
    monkeypatch.setattr(tempfile, "tempdir", str(directory))
    return directory
