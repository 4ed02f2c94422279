from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Optional

from google.protobuf import descriptor_pb2 as d2

from protoc_gen_twirp_ts.models import FieldType, TypeKind
from protoc_gen_twirp_ts.naming import json_interface_name, strip_package

if TYPE_CHECKING:
    from protoc_gen_twirp_ts.registry import TypeRegistry

logger = logging.getLogger(__name__)

_FD = d2.FieldDescriptorProto

NUMBER = FieldType(TypeKind.SCALAR, "number", "number")
STRING = FieldType(TypeKind.SCALAR, "string", "string")
BOOLEAN = FieldType(TypeKind.SCALAR, "boolean", "boolean")

# Proto scalar type -> TypeScript type
SCALAR_TYPE_MAP: Dict[int, FieldType] = {
    _FD.TYPE_DOUBLE: NUMBER,
    _FD.TYPE_FLOAT: NUMBER,
    _FD.TYPE_INT32: NUMBER,
    _FD.TYPE_INT64: NUMBER,
    _FD.TYPE_UINT32: NUMBER,
    _FD.TYPE_UINT64: NUMBER,
    _FD.TYPE_SINT32: NUMBER,
    _FD.TYPE_SINT64: NUMBER,
    _FD.TYPE_FIXED32: NUMBER,
    _FD.TYPE_FIXED64: NUMBER,
    _FD.TYPE_SFIXED32: NUMBER,
    _FD.TYPE_SFIXED64: NUMBER,
    _FD.TYPE_STRING: STRING,
    _FD.TYPE_BOOL: BOOLEAN,
}

# Well-known message types with a native TypeScript representation.
# Timestamps travel as RFC 3339 strings in jsonpb; JSON.stringify already
# serializes a Date to that format.
WELL_KNOWN_TYPES: Dict[str, FieldType] = {
    ".google.protobuf.Timestamp": FieldType(TypeKind.WELL_KNOWN, "Date", "string"),
}


def well_known_type(type_name: str) -> Optional[FieldType]:
    return WELL_KNOWN_TYPES.get(type_name)


def is_repeated(field: d2.FieldDescriptorProto) -> bool:
    return field.label == _FD.LABEL_REPEATED


def singular_field_type(
    field: d2.FieldDescriptorProto,
    registry: Optional[TypeRegistry] = None,
) -> FieldType:
    """Map a field descriptor to its singular output type.

    Enum and message references are named through ``registry`` when given,
    otherwise by stripping the package from the referenced type name.
    Unrecognised wire types fall back to ``string`` with a warning.
    """
    scalar = SCALAR_TYPE_MAP.get(field.type)
    if scalar is not None:
        return scalar

    if field.type in (_FD.TYPE_ENUM, _FD.TYPE_MESSAGE):
        if field.type == _FD.TYPE_MESSAGE:
            wkt = well_known_type(field.type_name)
            if wkt is not None:
                return wkt

        if registry is not None:
            name = registry.type_name(field.type_name)
        else:
            name = strip_package(field.type_name)

        if field.type == _FD.TYPE_ENUM:
            return FieldType(TypeKind.ENUM, name, name)
        return FieldType(TypeKind.MESSAGE, name, json_interface_name(name))

    logger.warning(
        "unsupported type %s in field %r, falling back to string",
        _type_label(field.type),
        field.name,
    )
    return STRING


def _type_label(field_type: int) -> str:
    try:
        return _FD.Type.Name(field_type)
    except ValueError:
        return str(field_type)
