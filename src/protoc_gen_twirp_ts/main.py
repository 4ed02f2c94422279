from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence

from google.protobuf import descriptor_pb2 as d2
from google.protobuf.compiler import plugin_pb2 as plugin

from protoc_gen_twirp_ts.config import DEFAULT_PREFIX, GeneratorOptions, parse_parameter
from protoc_gen_twirp_ts.generator.typescript_generator import RenderError, generate
from protoc_gen_twirp_ts.loader import compile_protos, load_descriptor_set
from protoc_gen_twirp_ts.registry import DuplicateDeclarationError

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    """Send log records to stderr; stdout carries the protoc response."""
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if verbose else logging.WARNING,
        format="protoc-gen-twirp_ts: %(levelname)s: %(message)s",
    )


def process_request(request: plugin.CodeGeneratorRequest) -> plugin.CodeGeneratorResponse:
    """Turn a protoc request into a response.

    Fatal errors are reported through ``response.error`` as the plugin
    protocol expects, with no files attached.
    """
    response = plugin.CodeGeneratorResponse()
    response.supported_features = plugin.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL

    try:
        options = parse_parameter(request.parameter)
        output = generate(request.proto_file, options)
    except (ValueError, DuplicateDeclarationError, RenderError) as e:
        response.error = str(e)
        return response

    for f in output:
        response.file.add(name=f.name, content=f.content)
    return response


def run_plugin(stdin: BinaryIO, stdout: BinaryIO) -> int:
    request = plugin.CodeGeneratorRequest.FromString(stdin.read())
    response = process_request(request)
    stdout.write(response.SerializeToString())
    if response.error:
        logger.error(response.error)
        return 1
    return 0


def run(
    files: Sequence[d2.FileDescriptorProto],
    out_dir: str,
    options: GeneratorOptions,
) -> List[str]:
    """Generate TypeScript for ``files`` and write it under ``out_dir``.

    Returns list of written file paths.
    """
    written: List[str] = []
    for f in generate(files, options):
        file_path = os.path.join(out_dir, *f.name.split("/"))
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        Path(file_path).write_text(f.content, encoding="utf-8")
        written.append(file_path)
    return written


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Generate TypeScript types and Twirp clients from protobuf descriptors. "
            "Without --descriptor-set or --proto, runs as a protoc plugin on stdin/stdout."
        ),
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--descriptor-set",
        help="Path to a serialized FileDescriptorSet (protoc --descriptor_set_out --include_imports)",
    )
    source.add_argument(
        "--proto",
        action="append",
        help="Path to a .proto file to compile with protoc (repeatable)",
    )
    parser.add_argument(
        "-I", "--include",
        action="append",
        default=[],
        help="Additional protoc include directory (repeatable, with --proto)",
    )
    parser.add_argument("--out", help="Output directory for generated .ts files")
    parser.add_argument(
        "--prefix",
        default=DEFAULT_PREFIX,
        help=f"Twirp route prefix used by generated clients (default: {DEFAULT_PREFIX})",
    )
    parser.add_argument(
        "--no-runtime",
        action="store_true",
        help="Do not emit the shared twirp.ts helper",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if not args.descriptor_set and not args.proto:
        if sys.stdin.isatty():
            parser.print_usage(sys.stderr)
            print("protoc-gen-twirp_ts is a protoc plugin; pass --descriptor-set or --proto to run it directly.", file=sys.stderr)
            return 1
        return run_plugin(sys.stdin.buffer, sys.stdout.buffer)

    if not args.out:
        parser.error("--out is required with --descriptor-set or --proto")

    options = GeneratorOptions(prefix=args.prefix, emit_runtime=not args.no_runtime)
    try:
        if args.descriptor_set:
            files = load_descriptor_set(args.descriptor_set)
        else:
            files = compile_protos(args.proto, args.include)
        written = run(files, args.out, options)
    except (RuntimeError, DuplicateDeclarationError, RenderError) as e:
        print(f"FATAL: {e}", file=sys.stderr)
        return 1

    print(f"Generated {len(written)} file(s) under {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
