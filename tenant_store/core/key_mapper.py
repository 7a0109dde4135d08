"""Key Mapper — bidirectional field-name transformation between wire and app naming.

Invariants:
    - to_external / to_internal are pure and total: same shape out as in, never raise
    - Only dicts recurse; datetimes, class instances and other objects pass through
    - list/tuple transform element-wise, preserving order, length and container type
    - Explicit dictionary entries are mutual inverses (checked at construction)
    - For letter-only names the algorithmic rule round-trips in both directions

Design Decisions:
    - One tag check (SCALAR / SEQUENCE / MAPPING) drives the recursion
    - Names with digits at a case boundary are not canonicalized; they belong in
      the explicit dictionary (e.g. addressLine2 <-> address_line_2)
"""

import re
from collections.abc import Mapping
from enum import Enum
from typing import Any

# internal (camelCase) -> external (snake_case)
DEFAULT_FIELD_MAP: dict[str, str] = {
    "addressLine1": "address_line_1",
    "addressLine2": "address_line_2",
    "nfpa1851Compliant": "nfpa_1851_compliant",
}

_UPPER = re.compile(r"[A-Z]")
_UNDERSCORE_LOWER = re.compile(r"_([a-z])")


class _Shape(Enum):
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


def _shape_of(value: Any) -> _Shape:
    if isinstance(value, dict):
        return _Shape.MAPPING
    if isinstance(value, (list, tuple)):
        return _Shape.SEQUENCE
    return _Shape.SCALAR


def camel_to_snake(name: str) -> str:
    """`serialNumber` -> `serial_number`."""
    return _UPPER.sub(lambda m: "_" + m.group(0).lower(), name)


def snake_to_camel(name: str) -> str:
    """`serial_number` -> `serialNumber`."""
    return _UNDERSCORE_LOWER.sub(lambda m: m.group(1).upper(), name)


def _invert(field_map: Mapping[str, str]) -> dict[str, str]:
    reverse: dict[str, str] = {}
    for internal, external in field_map.items():
        if external in reverse:
            raise ValueError(
                f"External field '{external}' mapped from both "
                f"'{reverse[external]}' and '{internal}'"
            )
        reverse[external] = internal
    return reverse


class KeyMapper:
    """Translates record field names between internal and external conventions."""

    def __init__(self, extra_fields: Mapping[str, str] | None = None):
        field_map = dict(DEFAULT_FIELD_MAP)
        for internal, external in (extra_fields or {}).items():
            if internal in field_map and field_map[internal] != external:
                raise ValueError(
                    f"Internal field '{internal}' mapped to both "
                    f"'{field_map[internal]}' and '{external}'"
                )
            field_map[internal] = external
        self._to_external = field_map
        self._to_internal = _invert(field_map)

    @property
    def field_map(self) -> dict[str, str]:
        return dict(self._to_external)

    def key_to_external(self, name: str) -> str:
        explicit = self._to_external.get(name)
        return explicit if explicit is not None else camel_to_snake(name)

    def key_to_internal(self, name: str) -> str:
        explicit = self._to_internal.get(name)
        return explicit if explicit is not None else snake_to_camel(name)

    def to_external(self, value: Any) -> Any:
        """Rename every dict key (recursively) to the external convention."""
        return self._transform(value, self.key_to_external)

    def to_internal(self, value: Any) -> Any:
        """Rename every dict key (recursively) to the internal convention."""
        return self._transform(value, self.key_to_internal)

    def _transform(self, value: Any, rename) -> Any:
        shape = _shape_of(value)
        if shape is _Shape.MAPPING:
            return {
                (rename(k) if isinstance(k, str) else k): self._transform(v, rename)
                for k, v in value.items()
            }
        if shape is _Shape.SEQUENCE:
            items = [self._transform(v, rename) for v in value]
            return items if isinstance(value, list) else tuple(items)
        return value
