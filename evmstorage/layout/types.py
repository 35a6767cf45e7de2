"""
Storage Layout Model

Typed description of a contract's state as produced by the compiler's
``storageLayout`` output:

    {
        "storage": [{"label", "slot", "offset", "type", ...}, ...],
        "types": {"t_uint256": {"encoding", "label", "numberOfBytes", ...}, ...}
    }

Type labels are parsed once, when the layout is loaded, into a ``TypeKind``
plus width information. Type references (``key``, ``value``, ``base`` and
struct member types) are resolved lazily, so an unknown type-id only fails
when it is actually dereferenced.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..constants import MAX_PACKED_ELEMENT_SIZE
from ..exceptions import (
    InvalidLayoutError,
    UnknownTypeError,
    UnsupportedEncodingError,
    VariableNotFoundError,
)


class Encoding(str, Enum):
    """Storage encodings emitted by the compiler."""
    INPLACE = "inplace"
    BYTES = "bytes"
    MAPPING = "mapping"
    DYNAMIC_ARRAY = "dynamic_array"


class TypeKind(Enum):
    """Structured kind of a storage type."""
    ADDRESS = "address"
    BOOL = "bool"
    FIXED_BYTES = "fixed_bytes"
    UINT = "uint"
    INT = "int"
    ENUM = "enum"
    STRUCT = "struct"
    STATIC_ARRAY = "static_array"
    STRING = "string"
    BYTES = "bytes"
    MAPPING = "mapping"
    DYNAMIC_ARRAY = "dynamic_array"
    UNSUPPORTED = "unsupported"


SCALAR_KINDS = frozenset({
    TypeKind.ADDRESS,
    TypeKind.BOOL,
    TypeKind.FIXED_BYTES,
    TypeKind.UINT,
    TypeKind.INT,
    TypeKind.ENUM,
})

_UINT_RE = re.compile(r'^uint(\d*)$')
_INT_RE = re.compile(r'^int(\d*)$')
_FIXED_BYTES_RE = re.compile(r'^bytes(\d+)$')
_STATIC_ARRAY_RE = re.compile(r'\[(\d+)\]$')


@dataclass(frozen=True)
class StorageMember:
    """A struct member: position relative to the struct's base slot."""
    label: str
    slot: int
    offset: int
    type_id: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StorageMember":
        return cls(
            label=data["label"],
            slot=int(data.get("slot", 0)),
            offset=int(data.get("offset", 0)),
            type_id=data["type"],
        )


@dataclass(frozen=True)
class StorageEntry:
    """A top-level state variable declaration."""
    label: str
    slot: int
    offset: int
    type_id: str
    contract: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StorageEntry":
        offset = int(data.get("offset", 0))
        if not 0 <= offset < 32:
            raise InvalidLayoutError(
                f"Offset {offset} out of range for variable {data.get('label')}"
            )
        return cls(
            label=data["label"],
            slot=int(data["slot"]),
            offset=offset,
            type_id=data["type"],
            contract=data.get("contract", ""),
        )


@dataclass(eq=False)
class StorageType:
    """
    A parsed type descriptor.

    Attributes:
        type_id: Key of this type in the layout's ``types`` registry
        encoding: Raw compiler encoding string
        label: Source-level type label (``uint256``, ``struct Foo.Bar``, ...)
        number_of_bytes: Storage footprint in bytes
        kind: Parsed structured kind
        bits: Integer width for ``uint``/``int`` kinds
        array_length: Element count for fixed-size arrays
    """
    type_id: str
    encoding: str
    label: str
    number_of_bytes: int
    kind: TypeKind
    bits: int = 0
    array_length: Optional[int] = None
    key_id: Optional[str] = None
    value_id: Optional[str] = None
    base_id: Optional[str] = None
    members: Tuple[StorageMember, ...] = ()
    _registry: Mapping[str, "StorageType"] = field(
        default_factory=dict, repr=False
    )

    @classmethod
    def parse(
        cls,
        type_id: str,
        data: Dict[str, Any],
        registry: Mapping[str, "StorageType"],
    ) -> "StorageType":
        """Parse one ``types`` entry into a descriptor."""
        encoding = data.get("encoding", "")
        label = data.get("label", "")
        members = tuple(StorageMember.from_dict(m) for m in data.get("members") or ())
        base_id = data.get("base")

        kind, bits, array_length = _parse_kind(encoding, label, members, base_id)

        return cls(
            type_id=type_id,
            encoding=encoding,
            label=label,
            number_of_bytes=int(data.get("numberOfBytes", 32)),
            kind=kind,
            bits=bits,
            array_length=array_length,
            key_id=data.get("key"),
            value_id=data.get("value"),
            base_id=base_id,
            members=members,
            _registry=registry,
        )

    # --- lazy references --------------------------------------------------

    def resolve(self, type_id: Optional[str]) -> "StorageType":
        """Look up a referenced type-id in the owning registry."""
        if type_id is None or type_id not in self._registry:
            raise UnknownTypeError(str(type_id))
        return self._registry[type_id]

    @property
    def key_type(self) -> "StorageType":
        return self.resolve(self.key_id)

    @property
    def value_type(self) -> "StorageType":
        return self.resolve(self.value_id)

    @property
    def base_type(self) -> "StorageType":
        return self.resolve(self.base_id)

    def member_type(self, member: StorageMember) -> "StorageType":
        return self.resolve(member.type_id)

    # --- classification ---------------------------------------------------

    @property
    def is_scalar(self) -> bool:
        return self.kind in SCALAR_KINDS

    @property
    def is_packable_element(self) -> bool:
        """Whether array elements of this type share slots."""
        return self.is_scalar and self.number_of_bytes <= MAX_PACKED_ELEMENT_SIZE

    @property
    def slot_count(self) -> int:
        """Number of whole slots an unpacked value of this type occupies."""
        return max(1, -(-self.number_of_bytes // 32))

    def require_supported(self) -> None:
        if self.kind is TypeKind.UNSUPPORTED:
            raise UnsupportedEncodingError(
                f"Encoding type not supported: {self.encoding} ({self.label})"
            )


def _parse_kind(
    encoding: str,
    label: str,
    members: Tuple[StorageMember, ...],
    base_id: Optional[str],
) -> Tuple[TypeKind, int, Optional[int]]:
    """Map a compiler (encoding, label) pair onto (kind, bits, array_length)."""
    if encoding == Encoding.MAPPING:
        return TypeKind.MAPPING, 0, None
    if encoding == Encoding.DYNAMIC_ARRAY:
        return TypeKind.DYNAMIC_ARRAY, 0, None
    if encoding == Encoding.BYTES:
        return (TypeKind.STRING if label == "string" else TypeKind.BYTES), 0, None
    if encoding != Encoding.INPLACE:
        return TypeKind.UNSUPPORTED, 0, None

    if base_id is not None:
        match = _STATIC_ARRAY_RE.search(label)
        return TypeKind.STATIC_ARRAY, 0, int(match.group(1)) if match else None
    if members or label.startswith("struct "):
        return TypeKind.STRUCT, 0, None
    if label == "bool":
        return TypeKind.BOOL, 8, None
    if label in ("address", "address payable") or label.startswith("contract "):
        return TypeKind.ADDRESS, 160, None
    if label.startswith("enum "):
        return TypeKind.ENUM, 8, None

    match = _UINT_RE.match(label)
    if match:
        return TypeKind.UINT, int(match.group(1) or 256), None
    match = _INT_RE.match(label)
    if match:
        return TypeKind.INT, int(match.group(1) or 256), None
    match = _FIXED_BYTES_RE.match(label)
    if match:
        return TypeKind.FIXED_BYTES, int(match.group(1)) * 8, None

    return TypeKind.UNSUPPORTED, 0, None


class StorageLayout:
    """
    Immutable storage layout of one contract.

    Attributes:
        storage: Ordered top-level variable declarations
        types: Parsed type registry keyed by type-id
    """

    def __init__(self, storage: List[StorageEntry], types: Dict[str, StorageType]):
        self._storage = tuple(storage)
        self._types = types
        self._by_label = {entry.label: entry for entry in self._storage}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StorageLayout":
        """
        Build a layout from the compiler's ``storageLayout`` object.

        ``types`` may be ``null`` for contracts without state variables.
        """
        if not isinstance(data, Mapping) or "storage" not in data:
            raise InvalidLayoutError("Storage layout must contain a 'storage' list")

        registry: Dict[str, StorageType] = {}
        for type_id, raw in (data.get("types") or {}).items():
            registry[type_id] = StorageType.parse(type_id, raw, registry)

        storage = [StorageEntry.from_dict(entry) for entry in data["storage"] or ()]
        return cls(storage, registry)

    @property
    def storage(self) -> Tuple[StorageEntry, ...]:
        return self._storage

    @property
    def types(self) -> Mapping[str, StorageType]:
        return self._types

    def find_variable(self, name: str) -> StorageEntry:
        """Return the declaration for *name* or raise ``VariableNotFoundError``."""
        entry = self._by_label.get(name)
        if entry is None:
            raise VariableNotFoundError(name)
        return entry

    def resolve(self, type_id: str) -> StorageType:
        if type_id not in self._types:
            raise UnknownTypeError(type_id)
        return self._types[type_id]

    def variable_type(self, name: str) -> StorageType:
        return self.resolve(self.find_variable(name).type_id)

    def __contains__(self, name: str) -> bool:
        return name in self._by_label

    def __len__(self) -> int:
        return len(self._storage)

    def __repr__(self) -> str:
        return f"StorageLayout(variables={len(self._storage)}, types={len(self._types)})"
