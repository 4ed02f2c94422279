from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Set

from google.protobuf import descriptor_pb2 as d2

from protoc_gen_twirp_ts.field_types import is_repeated, singular_field_type, well_known_type
from protoc_gen_twirp_ts.models import (
    EnumModel,
    EnumValue,
    FieldModel,
    FieldType,
    FileModel,
    MessageModel,
    MethodModel,
    ServiceModel,
    TypeKind,
)
from protoc_gen_twirp_ts.naming import (
    camel_case,
    full_type_name,
    interface_name,
    json_interface_name,
    nested_enum_name,
    relative_import_base,
    ts_file_name,
    ts_import_path,
)
from protoc_gen_twirp_ts.registry import DuplicateDeclarationError, TypeRegistry

logger = logging.getLogger(__name__)


class ModelBuilder:
    """Builds one FileModel per file descriptor in a single ordered pass.

    Every declaration of a file goes into the registry before that file's
    fields and methods are resolved, so references within a file never
    depend on declaration order. References to other files resolve against
    files already built; protoc sends dependencies first.
    """

    def __init__(self, registry: TypeRegistry):
        self.registry = registry
        # output path -> source file that claimed it
        self._outputs: Dict[str, str] = {}
        # nested messages that are never emitted
        self._skipped_messages: Set[str] = set()

    def build(self, files: Iterable[d2.FileDescriptorProto]) -> List[FileModel]:
        return [self.build_file(f) for f in files]

    def build_file(self, file: d2.FileDescriptorProto) -> FileModel:
        """Build the model for one file.

        Raises:
            DuplicateDeclarationError: If a declaration collides, or another
                file already maps to the same output module.
        """
        output = ts_file_name(file)
        claimed = self._outputs.get(output)
        if claimed is not None and claimed != file.name:
            raise DuplicateDeclarationError(
                f"'{file.name}' and '{claimed}' both generate '{output}'"
            )
        self._outputs[output] = file.name

        self._declare(file)

        model = FileModel(
            source=file.name,
            package=file.package,
            output=output,
            import_path=ts_import_path(file),
            relative_import_base=relative_import_base(file),
        )
        model.enums = [_build_enum(enum.name, enum) for enum in file.enum_type]
        model.messages = [self._build_message(file, model, m) for m in file.message_type]
        model.services = [self._build_service(file, model, s) for s in file.service]

        logger.info(
            "built %s: %d enum(s), %d message(s), %d service(s), %d import(s)",
            file.name,
            len(model.enums),
            len(model.messages),
            len(model.services),
            len(model.imports),
        )
        return model

    # -- declarations --

    def _declare(self, file: d2.FileDescriptorProto) -> None:
        for enum in file.enum_type:
            self.registry.declare(file, enum.name)

        for message in file.message_type:
            self.registry.declare(file, message.name)
            self.registry.declare(file, interface_name(message.name))
            self.registry.declare(file, json_interface_name(message.name))
            for enum in message.enum_type:
                self.registry.declare(file, f"{message.name}.{enum.name}")
            self._collect_skipped(file, message.name, message)

        for service in file.service:
            self.registry.declare(file, service.name)
            self.registry.declare(file, interface_name(service.name))

    def _collect_skipped(self, file: d2.FileDescriptorProto, scope: str, message: d2.DescriptorProto) -> None:
        for nested in message.nested_type:
            if nested.options.map_entry:
                continue
            local_name = f"{scope}.{nested.name}"
            self._skipped_messages.add(full_type_name(file, local_name))
            self._collect_skipped(file, local_name, nested)

    # -- messages --

    def _build_message(
        self,
        file: d2.FileDescriptorProto,
        model: FileModel,
        message: d2.DescriptorProto,
    ) -> MessageModel:
        v = MessageModel(
            name=message.name,
            interface=interface_name(message.name),
            json_interface=json_interface_name(message.name),
        )

        map_entries: Set[str] = set()
        for nested in message.nested_type:
            if nested.options.map_entry:
                map_entries.add(full_type_name(file, f"{message.name}.{nested.name}"))
                continue
            # TODO: model nested messages as a message tree instead of skipping them
            logger.warning(
                "nested message %s.%s in %s is not supported yet, skipping",
                message.name,
                nested.name,
                file.name,
            )

        for enum in message.enum_type:
            v.nested_enums.append(_build_enum(nested_enum_name(message.name, enum.name), enum))

        for field in message.field:
            if field.type_name in map_entries:
                logger.warning(
                    "map field %s.%s in %s is not supported, skipping",
                    message.name,
                    field.name,
                    file.name,
                )
                continue
            if field.type_name in self._skipped_messages:
                logger.warning(
                    "field %s.%s in %s refers to skipped nested message %s, skipping",
                    message.name,
                    field.name,
                    file.name,
                    field.type_name,
                )
                continue

            field_type = singular_field_type(field, self.registry)
            self._record_import(model, field.type_name, field_type)
            v.fields.append(
                FieldModel(
                    name=field.name,
                    field=camel_case(field.name),
                    type=field_type,
                    is_repeated=is_repeated(field),
                )
            )

        return v

    # -- services --

    def _build_service(
        self,
        file: d2.FileDescriptorProto,
        model: FileModel,
        service: d2.ServiceDescriptorProto,
    ) -> ServiceModel:
        v = ServiceModel(
            package=file.package,
            name=service.name,
            interface=interface_name(service.name),
        )

        for method in service.method:
            if method.client_streaming or method.server_streaming:
                logger.warning(
                    "streaming method %s.%s in %s is not supported by Twirp, skipping",
                    service.name,
                    method.name,
                    file.name,
                )
                continue

            input_type = self._method_type(model, method.input_type)
            output_type = self._method_type(model, method.output_type)
            v.methods.append(
                MethodModel(
                    name=method.name,
                    input_type=input_type,
                    output_type=output_type,
                    output_is_date=well_known_type(method.output_type) is not None,
                )
            )

        return v

    def _method_type(self, model: FileModel, type_name: str) -> str:
        name = self.registry.type_name(type_name)
        if well_known_type(type_name) is not None:
            return name
        entry = self.registry.resolve(type_name)
        if entry is not None:
            model.add_import(entry, name)
        return name

    # -- imports --

    def _record_import(self, model: FileModel, type_name: str, field_type: FieldType) -> None:
        if field_type.kind not in (TypeKind.ENUM, TypeKind.MESSAGE):
            return
        entry = self.registry.resolve(type_name)
        if entry is None:
            return
        model.add_import(entry, field_type.name)
        if field_type.kind is TypeKind.MESSAGE:
            model.add_import(entry, field_type.json_name)


def _build_enum(name: str, enum: d2.EnumDescriptorProto) -> EnumModel:
    return EnumModel(
        name=name,
        values=[EnumValue(name=value.name, number=value.number) for value in enum.value],
    )
