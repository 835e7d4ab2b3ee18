"""
Identifier rules for generated event code.

Property names in the schema are converted mechanically. Names whose
conversion reads wrong (acronyms, mostly) are listed in IDENTIFIER_OVERRIDES,
keyed by property name. The generator fails on an override whose property no
longer exists, so the table cannot silently go stale.
"""

from __future__ import annotations

import keyword
import re
from typing import Dict

IDENTIFIER_OVERRIDES: Dict[str, str] = {
    "hw_nvme_smart": "HwNVMeSmart",
    "hw_nvme_storage": "HwNVMeStorage",
    "os_sys_info": "OSSysInfo",
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_SEPARATORS = re.compile(r"[\s\-_]+")


def snake_case(name: str) -> str:
    """Lowercase, underscore separated form of a property name."""
    spaced = _CAMEL_BOUNDARY.sub("_", name.strip())
    return "_".join(part for part in _SEPARATORS.split(spaced) if part).lower()


def upper_camel(name: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in snake_case(name).split("_"))


def discriminant_for(prop: str) -> str:
    return snake_case(prop)


def member_name_for(prop: str) -> str:
    return _checked(snake_case(prop).upper(), prop)


def class_name_for(prop: str) -> str:
    return _checked(IDENTIFIER_OVERRIDES.get(prop) or upper_camel(prop), prop)


def _checked(identifier: str, prop: str) -> str:
    if not identifier.isidentifier() or keyword.iskeyword(identifier):
        raise ValueError(f"property {prop!r} maps to invalid identifier {identifier!r}")
    return identifier
