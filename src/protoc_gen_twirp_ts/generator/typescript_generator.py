from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from google.protobuf import descriptor_pb2 as d2
from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from protoc_gen_twirp_ts.builder import ModelBuilder
from protoc_gen_twirp_ts.config import GeneratorOptions
from protoc_gen_twirp_ts.models import FieldModel, FileModel, TypeKind
from protoc_gen_twirp_ts.naming import method_name, upper_case_first
from protoc_gen_twirp_ts.registry import TypeRegistry

logger = logging.getLogger(__name__)

RUNTIME_FILE = "twirp.ts"
INDEX_FILE = "index.ts"


class RenderError(Exception):
    """Raised when a template cannot be rendered from a built model."""


@dataclass
class OutputFile:
    name: str
    content: str


def from_json_expr(fv: FieldModel) -> str:
    """Expression rebuilding a field from its wire JSON object ``m``."""
    key = f"m['{fv.name}']"
    t = fv.type

    if fv.is_repeated:
        if t.kind is TypeKind.SCALAR:
            convert = f"{upper_case_first(t.name)}(v)"
        elif t.kind is TypeKind.ENUM:
            convert = "v"
        elif t.kind is TypeKind.WELL_KNOWN:
            convert = "new Date(v)"
        else:
            convert = f"{t.name}.fromJSON(v)"
        return f"({key} || []).map((v) => {{ return {convert} }})"

    if t.kind in (TypeKind.SCALAR, TypeKind.ENUM):
        return key
    if t.kind is TypeKind.WELL_KNOWN:
        return f"{key} !== undefined ? new Date({key}!) : undefined"
    return f"{key} !== undefined ? {t.name}.fromJSON({key}!) : undefined"


def to_json_expr(fv: FieldModel) -> str:
    """Expression producing a field's wire JSON value from the class data."""
    value = f"this._data.{fv.field}"
    t = fv.type

    if t.kind is TypeKind.WELL_KNOWN:
        convert = "{}.toISOString()"
    elif t.kind is TypeKind.MESSAGE:
        convert = "{}.toJSON()"
    else:
        return value

    if fv.is_repeated:
        element = convert.format("v")
        return f"{value} !== undefined ? {value}.map((v) => {{ return {element} }}) : undefined"
    return f"{value} !== undefined ? {convert.format(value)} : undefined"


def _get_template_env() -> Environment:
    template_dir = Path(__file__).parent.parent / "templates"
    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
        undefined=StrictUndefined,
    )
    env.filters["from_json"] = from_json_expr
    env.filters["to_json"] = to_json_expr
    env.filters["method_name"] = method_name
    return env


def render_file(
    model: FileModel,
    options: GeneratorOptions,
    env: Optional[Environment] = None,
) -> str:
    """Render the TypeScript module for one built file model.

    Raises:
        RenderError: If the template fails on the model.
    """
    env = env or _get_template_env()
    try:
        template = env.get_template("file.ts.j2")
        return template.render(
            model=model,
            source=model.source,
            prefix=options.route_prefix,
        )
    except TemplateError as e:
        raise RenderError(f"could not render {model.output}: {e}") from e


def render_index(
    import_path: str,
    exports: List[str],
    env: Optional[Environment] = None,
) -> str:
    """Render the index module re-exporting every module of one output directory."""
    env = env or _get_template_env()
    try:
        template = env.get_template("index.ts.j2")
        return template.render(source=import_path or "(root)", exports=exports)
    except TemplateError as e:
        raise RenderError(f"could not render index for '{import_path}': {e}") from e


def runtime_source() -> str:
    return (Path(__file__).parent.parent / "templates" / RUNTIME_FILE).read_text(encoding="utf-8")


def render_files(models: List[FileModel], options: GeneratorOptions) -> List[OutputFile]:
    """Render all models, grouped per output directory with one index each.

    Directories keep the order in which they first appear in ``models``.
    """
    env = _get_template_env()
    output: List[OutputFile] = []
    if options.emit_runtime:
        output.append(OutputFile(name=RUNTIME_FILE, content=runtime_source()))

    by_dir: Dict[str, List[FileModel]] = {}
    for model in models:
        by_dir.setdefault(model.import_path, []).append(model)

    for import_path, dir_models in by_dir.items():
        exports: List[str] = []
        for model in dir_models:
            exports.append(posixpath.splitext(posixpath.basename(model.output))[0])
            output.append(OutputFile(name=model.output, content=render_file(model, options, env)))

        output.append(
            OutputFile(
                name=posixpath.join(import_path, INDEX_FILE),
                content=render_index(import_path, exports, env),
            )
        )

    return output


def generate(
    files: Iterable[d2.FileDescriptorProto],
    options: Optional[GeneratorOptions] = None,
    registry: Optional[TypeRegistry] = None,
) -> List[OutputFile]:
    """Build models for ``files`` in order and render them.

    Raises:
        DuplicateDeclarationError: If two declarations collide.
        RenderError: If a template fails.
    """
    options = options or GeneratorOptions()
    registry = registry if registry is not None else TypeRegistry()
    models = ModelBuilder(registry).build(files)
    output = render_files(models, options)
    for f in output:
        logger.info("wrote: %s", f.name)
    return output
