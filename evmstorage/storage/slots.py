"""
Slot addressing shared by the writer and the reader.

Key derivation follows the virtual machine's storage rules:

- mapping value:        keccak256(h(key) ++ pad32(base_slot))
- dynamic array data:   keccak256(pad32(base_slot)) + index
- long bytes/string:    keccak256(pad32(base_slot)) + chunk_index

where ``h(key)`` is the 32-byte padded key for value types and the raw bytes
for ``string``/``bytes`` keys. Slot arithmetic wraps modulo 2**256.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Tuple, Union

from eth_utils import is_address, to_canonical_address

from ..constants import SLOT_MODULUS, SLOT_SIZE
from ..crypto.hashing import keccak_int
from ..exceptions import InvalidValueError, ValueTooLargeError
from ..layout.types import StorageType, TypeKind
from .hexutils import (
    hex_to_bytes,
    is_hex_of_size,
    pad_right,
    signed_bounds,
    to_hex32,
    to_twos_complement,
)

PathElement = Union[str, int]


@dataclass(frozen=True)
class StorageSlotPair:
    """
    A slot key/value pair produced by the writer.

    Attributes:
        key: 32-byte slot key
        val: 32-byte slot value
        type: Label of the type that produced the value
        mask: 32-byte mask of the bytes this pair owns within the slot
    """
    key: str
    val: str
    type: str
    mask: str = '0x' + 'ff' * SLOT_SIZE


@dataclass(frozen=True)
class StorageSlotKeyTypePair:
    """
    A slot key plus the metadata needed to decode the value stored there.

    Attributes:
        key: 32-byte slot key
        type: Type descriptor for interpreting the slot
        offset: Byte offset of the value within the slot
        length: Byte length of a bytes/string chunk
        label: Variable or struct member label
        path: Member labels / element indices relative to the variable
    """
    key: str
    type: StorageType
    offset: int = 0
    length: Optional[int] = None
    label: Optional[str] = None
    path: Tuple[PathElement, ...] = field(default=())

    def with_value(self, value: str) -> "StorageSlotKeyValuePair":
        return StorageSlotKeyValuePair(
            value=value,
            type=self.type,
            offset=self.offset,
            length=self.length,
            label=self.label,
            path=self.path,
        )


@dataclass(frozen=True)
class StorageSlotKeyValuePair:
    """A ``StorageSlotKeyTypePair`` whose slot has been read."""
    value: str
    type: StorageType
    offset: int = 0
    length: Optional[int] = None
    label: Optional[str] = None
    path: Tuple[PathElement, ...] = field(default=())


def slot_key(index: int) -> str:
    """Format a slot index as a 32-byte key."""
    return to_hex32(index % SLOT_MODULUS)


def data_slot(base_slot: int) -> int:
    """First slot of a dynamic array's elements or a long byte string's chunks."""
    return keccak_int((base_slot % SLOT_MODULUS).to_bytes(SLOT_SIZE, 'big'))


def mapping_slot(key_type: StorageType, key: Any, base_slot: int) -> int:
    """
    Slot of the value stored under *key* in a mapping declared at *base_slot*.

    Nested mappings pass the derived slot of the enclosing mapping as
    *base_slot*.
    """
    preimage = encode_mapping_key(key_type, key) + (base_slot % SLOT_MODULUS).to_bytes(SLOT_SIZE, 'big')
    return keccak_int(preimage)


def parse_int(value: Any, type_label: str = None) -> int:
    """Accept ints and decimal or ``0x`` hex strings."""
    if isinstance(value, bool):
        raise InvalidValueError(f"Expected an integer, got {value!r}", type_label=type_label)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if text.lower().startswith(('0x', '-0x')):
                return int(text, 16)
            return int(text, 10)
        except ValueError:
            pass
    raise InvalidValueError(f"Expected an integer, got {value!r}", type_label=type_label)


def parse_bytes(value: Any, type_label: str = None) -> bytes:
    """Accept bytes or ``0x`` hex strings."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if is_hex_of_size(value):
        return hex_to_bytes(value)
    raise InvalidValueError(f"Expected 0x-prefixed hex bytes, got {value!r}", type_label=type_label)


def encode_mapping_key(key_type: StorageType, key: Any) -> bytes:
    """
    Encode a mapping key the way the compiler hashes it.

    - ``uint*``/``enum``: 32-byte big-endian number
    - ``int*``: 32-byte two's complement
    - ``bytesN``: right-padded to 32 bytes
    - ``address``/``bool``: left-padded to 32 bytes
    - ``string``/``bytes``: raw bytes, unpadded
    """
    kind = key_type.kind
    label = key_type.label

    if kind in (TypeKind.UINT, TypeKind.ENUM):
        number = parse_int(key, label)
        if number < 0 or number >= SLOT_MODULUS:
            raise ValueTooLargeError(f"Mapping key out of range: {key!r}", type_label=label)
        return number.to_bytes(SLOT_SIZE, 'big')
    if kind is TypeKind.INT:
        number = parse_int(key, label)
        low, high = signed_bounds(SLOT_SIZE)
        if not low <= number <= high:
            raise ValueTooLargeError(f"Mapping key out of range: {key!r}", type_label=label)
        return to_twos_complement(number, SLOT_SIZE).to_bytes(SLOT_SIZE, 'big')
    if kind is TypeKind.FIXED_BYTES:
        raw = parse_bytes(key, label)
        if len(raw) > key_type.number_of_bytes:
            raise ValueTooLargeError(f"Mapping key too long: {key!r}", type_label=label)
        return hex_to_bytes(pad_right(raw.hex()))
    if kind is TypeKind.ADDRESS:
        if not isinstance(key, str) or not is_address(key):
            raise InvalidValueError(f"Invalid address mapping key: {key!r}", type_label=label)
        return to_canonical_address(key).rjust(SLOT_SIZE, b'\x00')
    if kind is TypeKind.BOOL:
        return (1 if _parse_bool_key(key, label) else 0).to_bytes(SLOT_SIZE, 'big')
    if kind is TypeKind.STRING:
        return key.encode('utf-8') if isinstance(key, str) else parse_bytes(key, label)
    if kind is TypeKind.BYTES:
        return parse_bytes(key, label)

    # pass-through: treat anything else as a 32-byte hex word
    return hex_to_bytes(to_hex32(parse_int(key, label)))


def _parse_bool_key(key: Any, label: str) -> bool:
    if isinstance(key, bool):
        return key
    if key in ('true', 'false'):
        return key == 'true'
    raise InvalidValueError(f"Invalid bool mapping key: {key!r}", type_label=label)


def array_element_positions(
    element_type: StorageType,
    count: int,
    start_slot: int,
) -> Iterator[Tuple[int, int]]:
    """
    Yield (slot_index, byte_offset) for each of *count* array elements laid
    out from *start_slot*.

    Elements of at most 16 bytes share slots; an element never straddles a
    slot boundary. Wider elements take ``ceil(numberOfBytes / 32)`` slots each.
    """
    if element_type.is_packable_element:
        size = element_type.number_of_bytes
        slot, offset = start_slot, 0
        for _ in range(count):
            if offset + size > SLOT_SIZE:
                slot, offset = slot + 1, 0
            yield slot % SLOT_MODULUS, offset
            offset += size
    else:
        stride = element_type.slot_count
        for index in range(count):
            yield (start_slot + index * stride) % SLOT_MODULUS, 0
