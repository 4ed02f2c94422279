"""Registry of every declared schema type and its TypeScript location.

Entries are keyed by fully-qualified schema name (``.shop.v1.Item``). Each
entry records the file that declared it, the identifier it is emitted under
and the output module that holds it, so any field or method reference can be
turned into a type name plus, when it crosses files, an import.

Invariants:
    - Fully-qualified names are declared at most once.
    - Output identifiers are unique within their output module.
    - Entries are never modified or removed once declared.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

from google.protobuf import descriptor_pb2 as d2

from protoc_gen_twirp_ts.field_types import well_known_type
from protoc_gen_twirp_ts.naming import (
    full_type_name,
    local_output_name,
    strip_package,
    ts_module_path,
)

logger = logging.getLogger(__name__)


class DuplicateDeclarationError(Exception):
    """Raised when a schema name or output identifier is declared twice."""


@dataclass(frozen=True)
class RegistryEntry:
    full_name: str
    file_name: str
    package: str
    output_name: str
    module_path: str


class TypeRegistry:
    """Flat lookup table from fully-qualified schema names to output names."""

    def __init__(self) -> None:
        self._entries: Dict[str, RegistryEntry] = {}
        self._output_names: Dict[Tuple[str, str], str] = {}

    def __contains__(self, full_name: str) -> bool:
        return full_name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RegistryEntry]:
        return iter(self._entries.values())

    def declare(self, file: d2.FileDescriptorProto, local_name: str) -> RegistryEntry:
        """Register ``local_name`` (package-relative, dot-separated) as declared in ``file``.

        Raises:
            DuplicateDeclarationError: If the fully-qualified name is already
                declared, or another name in the same output module maps to
                the same output identifier.
        """
        full_name = full_type_name(file, local_name)
        existing = self._entries.get(full_name)
        if existing is not None:
            raise DuplicateDeclarationError(
                f"'{full_name}' declared in '{file.name}' is already declared in '{existing.file_name}'"
            )

        module_path = ts_module_path(file)
        output_name = local_output_name(local_name)
        clash = self._output_names.get((module_path, output_name))
        if clash is not None:
            raise DuplicateDeclarationError(
                f"'{full_name}' and '{clash}' both map to '{output_name}' in module '{module_path}'"
            )

        entry = RegistryEntry(
            full_name=full_name,
            file_name=file.name,
            package=file.package,
            output_name=output_name,
            module_path=module_path,
        )
        self._entries[full_name] = entry
        self._output_names[(module_path, output_name)] = full_name
        logger.debug("declared %s as %s in %s", full_name, output_name, module_path)
        return entry

    def resolve(self, full_name: str) -> Optional[RegistryEntry]:
        """Look up the declaration of a fully-qualified name, or None."""
        return self._entries.get(full_name)

    def type_name(self, full_name: str) -> str:
        """Output type name for a fully-qualified reference.

        Well-known overrides win, then declared names. Unresolved references
        degrade to their local name with the package stripped.
        """
        wkt = well_known_type(full_name)
        if wkt is not None:
            return wkt.name

        entry = self._entries.get(full_name)
        if entry is not None:
            return entry.output_name

        name = strip_package(full_name)
        logger.warning("unresolved type reference %s, using %s", full_name, name)
        return name
