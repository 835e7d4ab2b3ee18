"""
Generate ``generated.py`` from ``event_package.json``.

Usage:
    python -m hostpulse.events.codegen           # rewrite generated.py
    python -m hostpulse.events.codegen --check   # exit 1 if generated.py is stale
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .naming import IDENTIFIER_OVERRIDES, class_name_for, discriminant_for, member_name_for

SCHEMA_PATH = Path(__file__).with_name("event_package.json")
OUTPUT_PATH = Path(__file__).with_name("generated.py")

ROOT_POINTER = ("definitions", "AnyTelemetryEvent", "properties")
REF_PREFIX = "#/definitions/"
DISCRIMINANT = "event_type"
FREQUENCY_KEY = "x-sampling-frequency"

_SCALARS = {
    "string": "str",
    "integer": "int",
    "number": "float",
    "boolean": "bool",
    "object": "Dict[str, Any]",
}


class SchemaError(ValueError):
    """Schema cannot be turned into an event taxonomy."""


@dataclass(frozen=True)
class FieldSpec:
    name: str
    annotation: str
    required: bool


@dataclass(frozen=True)
class VariantSpec:
    prop: str
    member: str
    class_name: str
    discriminant: str
    frequency: str
    description: Optional[str]
    fields: List[FieldSpec]


def load_schema(path: Path = SCHEMA_PATH) -> Dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))


def _annotation(prop_schema: Dict[str, Any], where: str) -> str:
    kind = prop_schema.get("type")
    if kind == "array":
        items = prop_schema.get("items") or {}
        return f"List[{_annotation(items, where + '[]')}]"
    if kind in _SCALARS:
        return _SCALARS[kind]
    raise SchemaError(f"{where}: unsupported type {kind!r}")


def _definition(schema: Dict[str, Any], ref: str, prop: str) -> Dict[str, Any]:
    if not ref.startswith(REF_PREFIX):
        raise SchemaError(f"{prop}: $ref {ref!r} is not a local definition")
    name = ref[len(REF_PREFIX):]
    definition = schema.get("definitions", {}).get(name)
    if not isinstance(definition, dict):
        raise SchemaError(f"{prop}: definition {name!r} not found")
    return definition


def parse_variants(schema: Dict[str, Any]) -> List[VariantSpec]:
    node: Any = schema
    for key in ROOT_POINTER:
        if not isinstance(node, dict) or key not in node:
            raise SchemaError("schema has no /" + "/".join(ROOT_POINTER))
        node = node[key]

    variants: List[VariantSpec] = []
    seen: Dict[str, str] = {}
    for prop, entry in node.items():
        ref = entry.get("$ref")
        if not isinstance(ref, str):
            raise SchemaError(f"{prop}: missing $ref")
        definition = _definition(schema, ref, prop)
        required = set(definition.get("required", []))

        fields: List[FieldSpec] = []
        for field_name, field_schema in definition.get("properties", {}).items():
            if field_name == DISCRIMINANT:
                raise SchemaError(f"{prop}: field {DISCRIMINANT!r} collides with the discriminant")
            fields.append(
                FieldSpec(
                    name=field_name,
                    annotation=_annotation(field_schema, f"{prop}.{field_name}"),
                    required=field_name in required,
                )
            )

        frequency = entry.get(FREQUENCY_KEY, "daily")
        if frequency not in ("daily", "weekly"):
            raise SchemaError(f"{prop}: unknown sampling frequency {frequency!r}")

        variant = VariantSpec(
            prop=prop,
            member=member_name_for(prop),
            class_name=class_name_for(prop),
            discriminant=discriminant_for(prop),
            frequency=frequency,
            description=definition.get("description"),
            fields=fields,
        )
        for identifier in (variant.member, variant.class_name, variant.discriminant):
            if identifier in seen:
                raise SchemaError(f"{prop}: {identifier!r} already used by {seen[identifier]}")
            seen[identifier] = prop
        variants.append(variant)

    if not variants:
        raise SchemaError("schema declares no events")

    stale = sorted(set(IDENTIFIER_OVERRIDES) - {v.prop for v in variants})
    if stale:
        raise SchemaError(f"identifier overrides for unknown properties: {', '.join(stale)}")
    return variants


def render(variants: List[VariantSpec], schema_version: str) -> str:
    lines: List[str] = [
        "# Generated by hostpulse.events.codegen from event_package.json. Do not edit.",
        "from enum import Enum",
        "from typing import Any, Dict, List, Optional",
        "",
        "from pydantic import BaseModel, ConfigDict",
        "",
        "from hostpulse.models import SamplingFrequency",
        "",
        f"SCHEMA_VERSION = {json.dumps(schema_version)}",
        f"DISCRIMINANT = {json.dumps(DISCRIMINANT)}",
        "",
        "",
        "class EventKind(str, Enum):",
    ]
    lines += [f"    {v.member} = {json.dumps(v.discriminant)}" for v in variants]

    for v in variants:
        lines += ["", "", f"class {v.class_name}(BaseModel):"]
        if v.description:
            lines += [f'    """{v.description}"""', ""]
        lines.append('    model_config = ConfigDict(frozen=True, extra="forbid", protected_namespaces=())')
        lines.append("")
        for f in v.fields:
            if f.required:
                lines.append(f"    {f.name}: {f.annotation}")
            else:
                lines.append(f"    {f.name}: Optional[{f.annotation}] = None")

    lines += ["", "", "PAYLOAD_TYPES = {"]
    lines += [f"    EventKind.{v.member}: {v.class_name}," for v in variants]
    lines += ["}", "", "DEFAULT_FREQUENCIES = {"]
    lines += [
        f"    EventKind.{v.member}: SamplingFrequency.{v.frequency.upper()},"
        for v in variants
    ]
    lines += ["}", ""]
    return "\n".join(lines)


def generate(schema_path: Path = SCHEMA_PATH) -> str:
    schema = load_schema(schema_path)
    return render(parse_variants(schema), str(schema.get("version", "0")))


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Generate the telemetry event taxonomy")
    parser.add_argument("--schema", type=Path, default=SCHEMA_PATH)
    parser.add_argument("--output", type=Path, default=OUTPUT_PATH)
    parser.add_argument("--check", action="store_true", help="Fail if the output is out of date")
    args = parser.parse_args(argv)

    try:
        source = generate(args.schema)
    except SchemaError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.check:
        current = args.output.read_text(encoding="utf-8") if args.output.exists() else ""
        if current != source:
            print(f"{args.output} is out of date; rerun hostpulse.events.codegen", file=sys.stderr)
            return 1
        return 0

    args.output.write_text(source, encoding="utf-8")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
