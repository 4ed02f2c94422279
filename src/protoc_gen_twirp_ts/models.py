from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, List

if TYPE_CHECKING:
    from protoc_gen_twirp_ts.registry import RegistryEntry


class TypeKind(Enum):
    SCALAR = "scalar"
    ENUM = "enum"
    MESSAGE = "message"
    WELL_KNOWN = "well_known"


@dataclass(frozen=True)
class FieldType:
    """Singular output type of a field or method parameter.

    ``name`` is the type used in public interfaces and classes, ``json_name``
    the type carried on the wire.
    """

    kind: TypeKind
    name: str
    json_name: str

    @property
    def is_scalar(self) -> bool:
        return self.kind is TypeKind.SCALAR


@dataclass
class FieldModel:
    name: str
    field: str
    type: FieldType
    is_repeated: bool = False

    @property
    def ts_type(self) -> str:
        if self.is_repeated:
            return self.type.name + "[]"
        return self.type.name

    @property
    def json_type(self) -> str:
        if self.is_repeated:
            return self.type.json_name + "[]"
        return self.type.json_name


@dataclass
class EnumValue:
    name: str
    number: int


@dataclass
class EnumModel:
    name: str
    values: List[EnumValue] = field(default_factory=list)


@dataclass
class MessageModel:
    name: str
    interface: str
    json_interface: str
    fields: List[FieldModel] = field(default_factory=list)
    nested_enums: List[EnumModel] = field(default_factory=list)


@dataclass
class MethodModel:
    name: str
    input_type: str
    output_type: str
    # output decodes to a native Date instead of a generated class
    output_is_date: bool = False


@dataclass
class ServiceModel:
    package: str
    name: str
    interface: str
    methods: List[MethodModel] = field(default_factory=list)

    @property
    def qualified_name(self) -> str:
        if self.package:
            return f"{self.package}.{self.name}"
        return self.name


@dataclass
class ImportModel:
    """Names one output module needs from another output module."""

    path: str
    names: List[str] = field(default_factory=list)

    def add(self, name: str) -> None:
        if name not in self.names:
            self.names.append(name)
            self.names.sort()


@dataclass
class FileModel:
    source: str
    package: str
    output: str
    import_path: str
    relative_import_base: str
    enums: List[EnumModel] = field(default_factory=list)
    messages: List[MessageModel] = field(default_factory=list)
    services: List[ServiceModel] = field(default_factory=list)
    imports: Dict[str, ImportModel] = field(default_factory=dict)

    def add_import(self, entry: RegistryEntry, name: str) -> None:
        """Record that ``name`` is needed from the module owning ``entry``.

        References to this file's own declarations are ignored.
        """
        if entry.file_name == self.source:
            return
        imp = self.imports.get(entry.module_path)
        if imp is None:
            imp = ImportModel(path=self.relative_import_base + entry.module_path)
            self.imports[entry.module_path] = imp
        imp.add(name)

    @property
    def sorted_imports(self) -> List[ImportModel]:
        return [self.imports[key] for key in sorted(self.imports)]
