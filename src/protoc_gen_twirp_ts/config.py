from __future__ import annotations

from dataclasses import dataclass

DEFAULT_PREFIX = "/twirp"

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


@dataclass(frozen=True)
class GeneratorOptions:
    """Options shared by plugin and CLI mode.

    Attributes:
        prefix: Twirp route prefix the generated clients call under.
        emit_runtime: Whether the shared ``twirp.ts`` helper is emitted.
    """

    prefix: str = DEFAULT_PREFIX
    emit_runtime: bool = True

    @property
    def route_prefix(self) -> str:
        """Prefix normalised to a leading slash and no trailing slash."""
        stripped = self.prefix.strip("/")
        return "/" + stripped if stripped else ""


def parse_parameter(parameter: str) -> GeneratorOptions:
    """Parse a protoc plugin parameter string, e.g. ``prefix=/rpc,runtime=false``.

    Raises:
        ValueError: On unknown keys or malformed values.
    """
    prefix = DEFAULT_PREFIX
    emit_runtime = True

    for item in parameter.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, value = item.partition("=")
        key = key.strip()
        value = value.strip()
        if key == "prefix":
            prefix = value
        elif key == "runtime":
            emit_runtime = _parse_bool(key, value if sep else "true")
        else:
            raise ValueError(f"unknown plugin parameter '{key}'")

    return GeneratorOptions(prefix=prefix, emit_runtime=emit_runtime)


def _parse_bool(key: str, value: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"plugin parameter '{key}' expects a boolean, got '{value}'")
