"""Load file descriptors outside of protoc plugin mode."""

from __future__ import annotations

import os
import subprocess
import tempfile
from typing import List, Optional, Sequence

from google.protobuf import descriptor_pb2 as d2
from google.protobuf.message import DecodeError


def load_descriptor_set(path: str) -> List[d2.FileDescriptorProto]:
    """Read a serialized FileDescriptorSet, keeping protoc's file order."""
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise RuntimeError(f"Could not read descriptor set '{path}': {e}") from e

    fds = d2.FileDescriptorSet()
    try:
        fds.ParseFromString(data)
    except DecodeError as e:
        raise RuntimeError(f"'{path}' is not a valid FileDescriptorSet: {e}") from e
    return list(fds.file)


def compile_protos(
    proto_paths: Sequence[str],
    includes: Optional[Sequence[str]] = None,
) -> List[d2.FileDescriptorProto]:
    """Run protoc over ``proto_paths`` and return the descriptors it produces.

    Dependencies are included (``--include_imports``) and come before the
    files that import them. Each proto's own directory is added as an include
    path after the explicit ``includes``.
    """
    dirs: List[str] = list(includes or [])
    dirs.extend(os.path.dirname(os.path.abspath(p)) for p in proto_paths)

    # de-dup while preserving order
    seen = set()
    inc_args: List[str] = []
    for inc in dirs:
        if inc and inc not in seen:
            seen.add(inc)
            inc_args.extend(["-I", inc])

    with tempfile.TemporaryDirectory() as td:
        desc_path = os.path.join(td, "descriptor_set.pb")
        cmd = ["protoc", "--include_imports", f"--descriptor_set_out={desc_path}"] + inc_args + list(proto_paths)
        try:
            subprocess.run(cmd, check=True, capture_output=True)
        except FileNotFoundError as e:
            raise RuntimeError("'protoc' not found. Please install Protocol Buffers compiler and ensure it is in PATH.") from e
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"protoc failed: {e.stderr.decode('utf-8', errors='ignore')}") from e

        return load_descriptor_set(desc_path)
