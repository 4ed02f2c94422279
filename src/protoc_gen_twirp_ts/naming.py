"""Identifier and path conventions for the generated TypeScript modules."""

from __future__ import annotations

import posixpath
from typing import List

from google.protobuf import descriptor_pb2 as d2


def camel_case(name: str) -> str:
    """Convert a proto field name to its accessor name.

    Underscores separate words; the first segment is left untouched and every
    following segment gets its first letter upper-cased:
    ``order_id`` -> ``orderId``, ``HTTP_code`` -> ``HTTPCode``.
    """
    parts = name.split("_")
    return parts[0] + "".join(p[:1].upper() + p[1:] for p in parts[1:])


def upper_case_first(name: str) -> str:
    return name[:1].upper() + name[1:]


def method_name(name: str) -> str:
    """RPC method name as a client method: ``GetItem`` -> ``getItem``."""
    return name[:1].lower() + name[1:]


def interface_name(type_name: str) -> str:
    return "I" + type_name


def json_interface_name(type_name: str) -> str:
    return "I" + type_name + "JSON"


def nested_enum_name(message_name: str, enum_name: str) -> str:
    return f"{message_name}_{enum_name}"


def full_type_name(file: d2.FileDescriptorProto, local_name: str) -> str:
    """Fully-qualified schema name, with protoc's leading dot."""
    if file.package:
        return f".{file.package}.{local_name}"
    return f".{local_name}"


def local_output_name(local_name: str) -> str:
    """Output identifier for a package-relative name: ``Order.Status`` -> ``Order_Status``."""
    return "_".join(local_name.split("."))


def strip_package(full_name: str) -> str:
    """Best-effort output name for a reference that could not be resolved.

    Package segments are lower-case by convention, so everything before the
    first capitalised segment is dropped. Without any capitalised segment
    only the last segment is kept.
    """
    parts: List[str] = [p for p in full_name.split(".") if p]
    if not parts:
        return full_name
    for idx, seg in enumerate(parts):
        if seg[0].isupper():
            return local_output_name(".".join(parts[idx:]))
    return parts[-1]


def ts_import_path(file: d2.FileDescriptorProto) -> str:
    """Output directory of a file: ``shop.v1`` -> ``shop/v1``."""
    if not file.package:
        return ""
    return posixpath.join(*file.package.split("."))


def relative_import_base(file: d2.FileDescriptorProto) -> str:
    """Prefix leading from a file's output directory back to the output root."""
    import_path = ts_import_path(file)
    if not import_path:
        return "./"
    return "../" * len(import_path.split("/"))


def ts_file_name(file: d2.FileDescriptorProto) -> str:
    """Output path of a file: ``shop/v1/item.proto`` in ``shop.v1`` -> ``shop/v1/item.ts``."""
    stem = posixpath.splitext(posixpath.basename(file.name))[0]
    return posixpath.join(ts_import_path(file), stem + ".ts")


def ts_module_path(file: d2.FileDescriptorProto) -> str:
    """Output path without the ``.ts`` extension, as used in import statements."""
    return posixpath.splitext(ts_file_name(file))[0]
