"""
EIP-712 Type Registry and Encoder

Resolves struct schemas into canonical type strings and encodes values into
32-byte words following the EIP-712 ``encodeType`` / ``encodeData`` /
``hashStruct`` rules.

A ``TypeRegistry`` is built once per schema. Construction normalises the
field lists, resolves every referenced type and rejects cyclic struct
definitions; afterwards the registry is read-only and may be shared freely
between threads and tasks.

Main Functions:
    - canonical_type_string: ``encodeType`` of a primary type
    - type_hash: keccak of the canonical type string
    - encode_value: 32-byte encoding of a single value
    - hash_struct: ``hashStruct`` of a struct value
    - get_primary_type: the unique root struct of a schema
    - domain_separator: ``hashStruct(EIP712Domain, domain)``
"""

import re
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Sequence, Tuple, Union

from eth_abi import encode
from eth_abi.exceptions import EncodingError as AbiEncodingError
from eth_utils import is_address, keccak, to_checksum_address
from pydantic import ValidationError

from ..engine.exceptions import CyclicTypeError, EncodingError, UnknownTypeError
from ..utils import as_bytes, as_int
from .schemas import Domain
from .standards import DOMAIN_FIELD_TYPES, DOMAIN_TYPE_NAME, TypedDataField

FieldLike = Union[TypedDataField, Mapping[str, str], Tuple[str, str]]
TypeSchema = Mapping[str, Sequence[FieldLike]]

_ARRAY_RE = re.compile(r"^(.+)\[(\d*)\]$")
_INT_RE = re.compile(r"^u?int(\d+)$")
_BYTES_RE = re.compile(r"^bytes(\d+)$")

_ATOMIC_TYPES = frozenset({"address", "bool", "string", "bytes"})
_INT_ALIASES = {"uint": "uint256", "int": "int256"}

_VISITING = 1
_DONE = 2


def _split_array(type_name: str) -> Optional[Tuple[str, Optional[int]]]:
    """Split the outermost array dimension: ``"T[2][]" -> ("T[2]", None)``."""
    match = _ARRAY_RE.match(type_name)
    if match is None:
        return None
    length = match.group(2)
    return match.group(1), int(length) if length else None


def _base_type(type_name: str) -> str:
    return type_name.split("[", 1)[0]


def _is_primitive(type_name: str) -> bool:
    if type_name in _ATOMIC_TYPES:
        return True
    match = _INT_RE.match(type_name)
    if match:
        bits = int(match.group(1))
        return 8 <= bits <= 256 and bits % 8 == 0
    match = _BYTES_RE.match(type_name)
    if match:
        return 1 <= int(match.group(1)) <= 32
    return False


def _normalize_type(type_name: str, struct_names: Iterable[str]) -> str:
    base = _base_type(type_name)
    suffix = type_name[len(base):]
    if base in _INT_ALIASES and base not in struct_names:
        base = _INT_ALIASES[base]
    return base + suffix


def _normalize_field(field: FieldLike) -> TypedDataField:
    if isinstance(field, TypedDataField):
        return field
    if isinstance(field, Mapping):
        name, type_name = field.get("name"), field.get("type")
    elif isinstance(field, (tuple, list)) and len(field) == 2:
        name, type_name = field
    else:
        raise EncodingError(f"Malformed field definition: {field!r}")
    if not isinstance(name, str) or not isinstance(type_name, str) or not name or not type_name:
        raise EncodingError(f"Malformed field definition: {field!r}")
    return TypedDataField(name, type_name)


class TypeRegistry:
    """
    Immutable, validated view of an EIP-712 struct schema.

    Args:
        schema: Mapping of struct name to its ordered field list. Fields may
            be ``TypedDataField`` instances, ``{"name", "type"}`` dicts or
            ``(name, type)`` pairs.

    Raises:
        EncodingError: Malformed schema or duplicate field names in a struct.
        UnknownTypeError: A field refers to an undefined type.
        CyclicTypeError: Structs reference each other through non-array fields.

    Example:
        registry = TypeRegistry({"Person": [("name", "string"), ("age", "uint8")]})
        registry.canonical_type_string("Person")  # 'Person(string name,uint8 age)'
    """

    def __init__(self, schema: TypeSchema):
        if isinstance(schema, TypeRegistry):
            schema = schema.types
        if not isinstance(schema, Mapping):
            raise EncodingError(f"Type schema must be a mapping, got {type(schema).__name__}")

        struct_names = frozenset(schema)
        types: Dict[str, Tuple[TypedDataField, ...]] = {}
        for struct_name, fields in schema.items():
            if isinstance(fields, (str, bytes)) or not isinstance(fields, Sequence):
                raise EncodingError(f"Fields of {struct_name!r} must be a sequence")
            normalized = []
            seen = set()
            for raw in fields:
                field = _normalize_field(raw)
                if field.name in seen:
                    raise EncodingError(f"Duplicate field {field.name!r} in struct {struct_name!r}")
                seen.add(field.name)
                normalized.append(TypedDataField(field.name, _normalize_type(field.type, struct_names)))
            types[struct_name] = tuple(normalized)

        self._types: Mapping[str, Tuple[TypedDataField, ...]] = MappingProxyType(types)
        self._direct_refs = MappingProxyType(self._resolve_references())
        self._check_cycles()

    @property
    def types(self) -> Mapping[str, Tuple[TypedDataField, ...]]:
        return self._types

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._types

    def fields(self, type_name: str) -> Tuple[TypedDataField, ...]:
        try:
            return self._types[type_name]
        except KeyError:
            raise UnknownTypeError(type_name) from None

    def _resolve_references(self) -> Dict[str, Tuple[str, ...]]:
        # Only non-array edges take part in cycle detection.
        refs: Dict[str, Tuple[str, ...]] = {}
        for struct_name, fields in self._types.items():
            direct = set()
            for field in fields:
                element = field.type
                dimension = _split_array(element)
                while dimension is not None:
                    element = dimension[0]
                    dimension = _split_array(element)
                if element in self._types:
                    if element == field.type:
                        direct.add(element)
                elif not _is_primitive(element):
                    raise UnknownTypeError(field.type)
            refs[struct_name] = tuple(sorted(direct))
        return refs

    def _check_cycles(self) -> None:
        state: Dict[str, int] = {}
        for root in sorted(self._types):
            if root in state:
                continue
            state[root] = _VISITING
            stack = [(root, iter(self._direct_refs[root]))]
            while stack:
                node, children = stack[-1]
                child = next(children, None)
                if child is None:
                    state[node] = _DONE
                    stack.pop()
                    continue
                mark = state.get(child)
                if mark == _VISITING:
                    raise CyclicTypeError(child)
                if mark is None:
                    state[child] = _VISITING
                    stack.append((child, iter(self._direct_refs[child])))

    def dependencies(self, primary_type: str) -> FrozenSet[str]:
        """All struct types reachable from ``primary_type``, itself included."""
        self.fields(primary_type)
        found = {primary_type}
        pending = [primary_type]
        while pending:
            for field in self._types[pending.pop()]:
                base = _base_type(field.type)
                if base in self._types and base not in found:
                    found.add(base)
                    pending.append(base)
        return frozenset(found)

    def _encode_type_head(self, type_name: str) -> str:
        members = ",".join(f"{f.type} {f.name}" for f in self._types[type_name])
        return f"{type_name}({members})"

    def canonical_type_string(self, primary_type: str) -> str:
        others = sorted(self.dependencies(primary_type) - {primary_type})
        return "".join(self._encode_type_head(name) for name in [primary_type, *others])

    def type_hash(self, primary_type: str) -> bytes:
        return keccak(text=self.canonical_type_string(primary_type))

    def get_primary_type(self) -> str:
        """
        Return the only struct that no other struct references.

        Raises:
            EncodingError: Zero or several candidate root types.
        """
        referenced = set()
        for struct_name, fields in self._types.items():
            for field in fields:
                base = _base_type(field.type)
                if base != struct_name:
                    referenced.add(base)
        candidates = sorted(name for name in self._types if name not in referenced)
        if len(candidates) != 1:
            raise EncodingError(
                f"Cannot determine primary type, candidates: {candidates or 'none'}"
            )
        return candidates[0]

    def hash_struct(self, type_name: str, value: Mapping[str, Any]) -> bytes:
        """
        ``keccak(typeHash || encodeData(value))``.

        Fields are taken in declared order; keys of ``value`` that the struct
        does not declare are ignored.
        """
        fields = self.fields(type_name)
        if not isinstance(value, Mapping):
            raise EncodingError(
                f"Expected mapping for struct {type_name!r}, got {type(value).__name__}"
            )
        encoded = [self.type_hash(type_name)]
        for field in fields:
            if field.name not in value:
                raise EncodingError(f"Missing value for field {type_name}.{field.name}")
            encoded.append(self.encode_value(field.type, value[field.name]))
        return keccak(b"".join(encoded))

    def encode_value(self, type_name: str, value: Any) -> bytes:
        """Encode ``value`` as the 32-byte word EIP-712 prescribes for ``type_name``."""
        array = _split_array(type_name)
        if array is not None:
            return self._encode_array(array[0], array[1], value)
        if type_name in self._types:
            return self.hash_struct(type_name, value)
        if type_name == "string":
            if not isinstance(value, str):
                raise EncodingError(f"Expected str for string, got {type(value).__name__}")
            return keccak(text=value)
        if type_name == "bytes":
            return keccak(self._to_bytes(type_name, value))
        if type_name == "bool":
            if not isinstance(value, bool):
                raise EncodingError(f"Expected bool, got {type(value).__name__}")
            return encode(["bool"], [value])
        if type_name == "address":
            return encode(["address"], [self._to_address(value)])

        match = _BYTES_RE.match(type_name)
        if match and _is_primitive(type_name):
            size = int(match.group(1))
            raw = self._to_bytes(type_name, value)
            if len(raw) != size:
                raise EncodingError(f"{type_name} expects {size} bytes, got {len(raw)}")
            return raw.ljust(32, b"\x00")

        if _INT_RE.match(type_name) and _is_primitive(type_name):
            try:
                number = as_int(value)
                return encode([type_name], [number])
            except (ValueError, TypeError, AbiEncodingError) as exc:
                raise EncodingError(f"Cannot encode {value!r} as {type_name}: {exc}") from exc

        raise UnknownTypeError(type_name)

    def _encode_array(self, item_type: str, length: Optional[int], value: Any) -> bytes:
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            raise EncodingError(f"Expected sequence for {item_type} array, got {type(value).__name__}")
        if length is not None and len(value) != length:
            raise EncodingError(f"{item_type}[{length}] expects {length} items, got {len(value)}")
        return keccak(b"".join(self.encode_value(item_type, item) for item in value))

    @staticmethod
    def _to_bytes(type_name: str, value: Any) -> bytes:
        try:
            return as_bytes(value)
        except ValueError as exc:
            raise EncodingError(f"Cannot encode {value!r} as {type_name}: {exc}") from exc

    @staticmethod
    def _to_address(value: Any) -> str:
        if isinstance(value, (bytes, bytearray)) and len(value) == 20:
            return to_checksum_address(bytes(value))
        if isinstance(value, str) and is_address(value):
            return to_checksum_address(value)
        raise EncodingError(f"Invalid address: {value!r}")


def _registry(schema: Union[TypeSchema, TypeRegistry]) -> TypeRegistry:
    return schema if isinstance(schema, TypeRegistry) else TypeRegistry(schema)


def canonical_type_string(schema: Union[TypeSchema, TypeRegistry], primary_type: str) -> str:
    return _registry(schema).canonical_type_string(primary_type)


def type_hash(schema: Union[TypeSchema, TypeRegistry], primary_type: str) -> bytes:
    return _registry(schema).type_hash(primary_type)


def encode_value(schema: Union[TypeSchema, TypeRegistry], type_name: str, value: Any) -> bytes:
    return _registry(schema).encode_value(type_name, value)


def hash_struct(schema: Union[TypeSchema, TypeRegistry], type_name: str, value: Mapping[str, Any]) -> bytes:
    return _registry(schema).hash_struct(type_name, value)


def get_primary_type(schema: Union[TypeSchema, TypeRegistry]) -> str:
    return _registry(schema).get_primary_type()


# -----------------------------
# Domain
# -----------------------------

def as_domain(domain: Union[Domain, Mapping[str, Any]]) -> Domain:
    """Validate a domain dict (camelCase or snake_case keys) into a ``Domain``."""
    if isinstance(domain, Domain):
        return domain
    if not isinstance(domain, Mapping):
        raise EncodingError(f"Domain must be a mapping, got {type(domain).__name__}")
    try:
        return Domain.model_validate(dict(domain))
    except ValidationError as exc:
        raise EncodingError(f"Invalid EIP-712 domain: {exc}") from exc


def domain_type(domain: Union[Domain, Mapping[str, Any]]) -> Tuple[TypedDataField, ...]:
    """The ``EIP712Domain`` fields for the members present in ``domain``."""
    present = as_domain(domain).present_values()
    return tuple(f for f in DOMAIN_FIELD_TYPES if f.name in present)


def domain_separator(domain: Union[Domain, Mapping[str, Any]]) -> bytes:
    """``hashStruct(EIP712Domain, domain)`` over the present members only."""
    domain = as_domain(domain)
    registry = TypeRegistry({DOMAIN_TYPE_NAME: domain_type(domain)})
    return registry.hash_struct(DOMAIN_TYPE_NAME, domain.present_values())

