"""Schema definitions and payload encoding.

A schema definition is an ordered, comma-joined list of ``type name``
pairs, e.g. ``"string name,uint256 age"``. Attestation payloads are the
ABI encoding of the field values as a single parameter list, which is
what the ledger's schema registry expects.

The service itself only handles already-encoded payloads; callers encode
with SchemaEncoder before issuing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Union

from eth_abi import decode, encode, is_encodable_type
from eth_abi.exceptions import DecodingError, EncodingError
from web3 import Web3

from rsk_attest.errors import ValidationFailure

_FIELD_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

FieldValues = Union[Mapping[str, Any], Sequence[Mapping[str, Any]]]


@dataclass(frozen=True)
class SchemaField:
    type: str
    name: str

    def __str__(self) -> str:
        return f"{self.type} {self.name}"


def parse_schema_definition(definition: str) -> list[SchemaField]:
    """Split a definition into fields, validating shape and ABI types."""
    if not isinstance(definition, str) or not definition.strip():
        raise ValidationFailure("Schema definition must be a non-empty string")

    fields: list[SchemaField] = []
    seen: set[str] = set()
    for position, item in enumerate(definition.split(","), 1):
        parts = item.split()
        if len(parts) != 2:
            raise ValidationFailure(
                f"Schema field {position} must be 'type name', got {item.strip()!r}"
            )
        field_type, name = parts
        if not _FIELD_NAME.fullmatch(name):
            raise ValidationFailure(f"Invalid schema field name: {name!r}")
        if not is_encodable_type(field_type):
            raise ValidationFailure(f"Unsupported schema field type: {field_type!r}")
        if name in seen:
            raise ValidationFailure(f"Duplicate schema field name: {name!r}")
        seen.add(name)
        fields.append(SchemaField(type=field_type, name=name))
    return fields


class SchemaEncoder:
    """Encode and decode payloads for one schema definition.

    Usage:
        encoder = SchemaEncoder("string name,uint256 age")
        payload = encoder.encode_data({"name": "Ada", "age": 36})
        encoder.decode_data(payload)  # {"name": "Ada", "age": 36}
    """

    def __init__(self, definition: str) -> None:
        self.fields = parse_schema_definition(definition)

    @property
    def definition(self) -> str:
        return ",".join(str(f) for f in self.fields)

    @property
    def types(self) -> list[str]:
        return [f.type for f in self.fields]

    def encode_data(self, values: FieldValues) -> str:
        """ABI-encode field values into a 0x-prefixed payload.

        ``values`` is either a mapping of field name to value, or a list
        of ``{"name", "type", "value"}`` items whose types must match the
        definition.
        """
        by_name = self._values_by_name(values)
        unknown = sorted(set(by_name) - {f.name for f in self.fields})
        if unknown:
            raise ValidationFailure(f"Unknown schema fields: {', '.join(unknown)}")

        ordered = []
        for field in self.fields:
            if field.name not in by_name:
                raise ValidationFailure(f"Missing value for schema field {field.name!r}")
            ordered.append(_coerce(field.type, by_name[field.name]))

        try:
            return Web3.to_hex(encode(self.types, ordered))
        except (EncodingError, TypeError, ValueError) as exc:
            raise ValidationFailure(f"Cannot encode schema data: {exc}") from exc

    def decode_data(self, data: str) -> dict[str, Any]:
        """Decode a payload back into a name -> value mapping."""
        if not isinstance(data, str) or not data.startswith("0x"):
            raise ValidationFailure("Payload must be 0x-prefixed hex")
        try:
            decoded = decode(self.types, bytes.fromhex(data[2:]))
        except (DecodingError, ValueError) as exc:
            raise ValidationFailure(f"Cannot decode schema data: {exc}") from exc
        return {
            field.name: _present(value)
            for field, value in zip(self.fields, decoded)
        }

    def _values_by_name(self, values: FieldValues) -> dict[str, Any]:
        if isinstance(values, Mapping):
            return dict(values)
        declared = {f.name: f.type for f in self.fields}
        by_name: dict[str, Any] = {}
        for item in values:
            name = item.get("name")
            item_type = item.get("type")
            if item_type is not None and declared.get(name) not in (None, item_type):
                raise ValidationFailure(
                    f"Type mismatch for {name!r}: schema declares "
                    f"{declared[name]!r}, got {item_type!r}"
                )
            by_name[name] = item.get("value")
        return by_name


def _coerce(field_type: str, value: Any) -> Any:
    """Accept hex strings for byte types; everything else passes through."""
    if field_type.startswith("bytes") and not field_type.endswith("]"):
        if isinstance(value, str) and value.startswith("0x"):
            try:
                return bytes.fromhex(value[2:])
            except ValueError as exc:
                raise ValidationFailure(f"Invalid hex for {field_type}: {value!r}") from exc
    return value


def _present(value: Any) -> Any:
    if isinstance(value, bytes):
        return Web3.to_hex(value)
    if isinstance(value, tuple):
        return [_present(v) for v in value]
    return value
