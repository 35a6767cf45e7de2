"""
Slot Writer

Translates named, typed values into the storage slot key/value pairs that
realize them, then packs pairs that share a slot key into a single value.

    >>> slots = compute_storage_slots(layout, {"_uint256Map": {1234: 5678}})
    >>> [(s.key, s.val) for s in slots]

Values mirror the variable's shape: ``dict`` for structs and mappings,
``list``/``tuple`` for arrays, ``int`` (or decimal/hex string) for integers,
``bool`` (or ``"true"``/``"false"``) for booleans, ``0x`` hex strings for
addresses and fixed bytes, text for ``string`` and hex/bytes for ``bytes``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

from eth_utils import is_address, to_canonical_address

from ..constants import SLOT_SIZE
from ..exceptions import (
    InvalidLayoutError,
    InvalidValueError,
    SlotCorruptionError,
    ValueTooLargeError,
)
from ..layout.types import StorageLayout, StorageType, TypeKind
from ..logger import get_logger
from .hexutils import (
    byte_mask,
    hex_to_int,
    place_in_word,
    to_hex32,
    to_twos_complement,
)
from .slots import (
    StorageSlotPair,
    array_element_positions,
    data_slot,
    mapping_slot,
    parse_bytes,
    parse_int,
    slot_key,
)

logger = get_logger(__name__)

FULL_MASK = to_hex32((1 << (SLOT_SIZE * 8)) - 1)


def compute_storage_slots(
    layout: StorageLayout,
    variables: Mapping[str, Any],
) -> List[StorageSlotPair]:
    """
    Compute the packed slot pairs that must be written to store *variables*.

    Args:
        layout: Contract storage layout
        variables: Mapping of variable name to value

    Returns:
        Ordered list of slot pairs, one per distinct slot key

    Raises:
        VariableNotFoundError: Unknown variable name
        UnknownTypeError / UnsupportedEncodingError: Schema problems
        ValueValidationError: Value does not match its declared type
        SlotCorruptionError: Two encodings overlap within a slot
    """
    slots: List[StorageSlotPair] = []
    for name, value in variables.items():
        entry = layout.find_variable(name)
        storage_type = layout.resolve(entry.type_id)
        encoded = _encode(value, storage_type, entry.slot, entry.offset, name)
        logger.debug("Encoded %s (%s) into %d slot(s)", name, storage_type.label, len(encoded))
        slots.extend(encoded)
    return pack_slots(slots)


def pack_slots(slots: Sequence[StorageSlotPair]) -> List[StorageSlotPair]:
    """
    Merge pairs that land on the same slot key.

    Each output byte must come from exactly one non-zero input byte or be
    zero in both; anything else is corruption.

    Raises:
        SlotCorruptionError: If two pairs have non-zero bytes at the same position
    """
    packed: Dict[str, StorageSlotPair] = {}
    for slot in slots:
        existing = packed.get(slot.key)
        packed[slot.key] = slot if existing is None else _merge(existing, slot)
    return list(packed.values())


def _merge(first: StorageSlotPair, second: StorageSlotPair) -> StorageSlotPair:
    a = first.val[2:]
    b = second.val[2:]
    merged = []
    for index in range(SLOT_SIZE):
        byte_a = a[index * 2:index * 2 + 2]
        byte_b = b[index * 2:index * 2 + 2]
        if byte_a != '00' and byte_b != '00':
            logger.error(
                "Overlapping bytes in slot %s at byte %d (%s vs %s)",
                first.key, index, first.type, second.type,
            )
            raise SlotCorruptionError(first.key, index)
        merged.append(byte_b if byte_a == '00' else byte_a)

    return StorageSlotPair(
        key=first.key,
        val='0x' + ''.join(merged),
        type=first.type,
        mask=to_hex32(hex_to_int(first.mask) | hex_to_int(second.mask)),
    )


# ---------------------------------------------------------------------------
# Recursive encoding
# ---------------------------------------------------------------------------

def _encode(
    value: Any,
    storage_type: StorageType,
    slot: int,
    offset: int,
    name: str,
) -> List[StorageSlotPair]:
    """Encode *value* of *storage_type* located at (*slot*, *offset*)."""
    storage_type.require_supported()
    kind = storage_type.kind

    if storage_type.is_scalar:
        return [_encode_scalar(value, storage_type, slot, offset, name)]
    if kind is TypeKind.STRUCT:
        return _encode_struct(value, storage_type, slot, name)
    if kind is TypeKind.STATIC_ARRAY:
        return _encode_static_array(value, storage_type, slot, name)
    if kind in (TypeKind.STRING, TypeKind.BYTES):
        if offset != 0:
            raise InvalidLayoutError(f"Got offset {offset} for string/bytes variable {name}")
        return _encode_bytes(value, storage_type, slot, name)
    if kind is TypeKind.MAPPING:
        return _encode_mapping(value, storage_type, slot, name)
    if kind is TypeKind.DYNAMIC_ARRAY:
        return _encode_dynamic_array(value, storage_type, slot, name)

    # every TypeKind is handled above
    raise AssertionError(f"Unhandled type kind: {kind}")


def _encode_scalar(
    value: Any,
    storage_type: StorageType,
    slot: int,
    offset: int,
    name: str,
) -> StorageSlotPair:
    size = storage_type.number_of_bytes
    if offset + size > SLOT_SIZE:
        raise InvalidLayoutError(
            f"{storage_type.label} at offset {offset} does not fit in a slot ({name})"
        )

    number = encode_scalar_value(value, storage_type, name)
    return StorageSlotPair(
        key=slot_key(slot),
        val=to_hex32(place_in_word(number, offset)),
        type=storage_type.label,
        mask=to_hex32(byte_mask(offset, size)),
    )


def encode_scalar_value(value: Any, storage_type: StorageType, name: str = None) -> int:
    """
    Validate a scalar and return it as an unsigned integer of
    ``numberOfBytes`` bytes (before positioning within the slot).
    """
    kind = storage_type.kind
    label = storage_type.label
    size = storage_type.number_of_bytes

    if kind is TypeKind.ADDRESS:
        if not isinstance(value, str) or not is_address(value):
            raise InvalidValueError(f"Invalid address: {value!r}", name, label)
        return int.from_bytes(to_canonical_address(value), 'big')

    if kind is TypeKind.BOOL:
        if isinstance(value, bool):
            return int(value)
        if value in ('true', 'false'):
            return int(value == 'true')
        raise InvalidValueError(f"Invalid bool: {value!r}", name, label)

    if kind is TypeKind.FIXED_BYTES:
        raw = parse_bytes(value, label)
        if len(raw) != size:
            raise InvalidValueError(
                f"Expected exactly {size} bytes, got {len(raw)}", name, label
            )
        return int.from_bytes(raw, 'big')

    if kind in (TypeKind.UINT, TypeKind.ENUM):
        number = parse_int(value, label)
        if number < 0:
            raise InvalidValueError(f"Negative value for unsigned type: {number}", name, label)
        bits = storage_type.bits if kind is TypeKind.UINT else size * 8
        if number.bit_length() > bits:
            raise ValueTooLargeError(f"Value {number} does not fit in {bits} bits", name, label)
        return number

    if kind is TypeKind.INT:
        number = parse_int(value, label)
        bits = storage_type.bits
        if not -(1 << (bits - 1)) <= number < (1 << (bits - 1)):
            raise ValueTooLargeError(f"Value {number} does not fit in {bits} bits", name, label)
        return to_twos_complement(number, size)

    raise InvalidValueError(f"Not a scalar type: {label}", name, label)


def _encode_struct(
    value: Any,
    storage_type: StorageType,
    slot: int,
    name: str,
) -> List[StorageSlotPair]:
    if not isinstance(value, Mapping):
        raise InvalidValueError(f"Expected a dict for struct, got {type(value).__name__}", name, storage_type.label)

    members = {member.label: member for member in storage_type.members}
    unknown = [key for key in value if key not in members]
    if unknown:
        raise InvalidValueError(f"Unknown struct member(s): {', '.join(map(str, unknown))}", name, storage_type.label)

    slots: List[StorageSlotPair] = []
    for member in storage_type.members:
        if member.label not in value:
            continue
        slots.extend(_encode(
            value[member.label],
            storage_type.member_type(member),
            slot + member.slot,
            member.offset,
            f"{name}.{member.label}",
        ))
    return slots


def _encode_elements(
    values: Sequence[Any],
    storage_type: StorageType,
    start_slot: int,
    name: str,
) -> List[StorageSlotPair]:
    element_type = storage_type.base_type
    slots: List[StorageSlotPair] = []
    positions = array_element_positions(element_type, len(values), start_slot)
    for index, (value, (slot, offset)) in enumerate(zip(values, positions)):
        slots.extend(_encode(value, element_type, slot, offset, f"{name}[{index}]"))
    return slots


def _require_sequence(value: Any, storage_type: StorageType, name: str) -> Sequence[Any]:
    if isinstance(value, (str, bytes, bytearray, Mapping)) or not isinstance(value, Sequence):
        raise InvalidValueError(f"Expected a list for array, got {type(value).__name__}", name, storage_type.label)
    return value


def _encode_static_array(
    value: Any,
    storage_type: StorageType,
    slot: int,
    name: str,
) -> List[StorageSlotPair]:
    values = _require_sequence(value, storage_type, name)
    if storage_type.array_length is not None and len(values) > storage_type.array_length:
        raise ValueTooLargeError(
            f"{len(values)} elements for array of length {storage_type.array_length}",
            name, storage_type.label,
        )
    return _encode_elements(values, storage_type, slot, name)


def _encode_dynamic_array(
    value: Any,
    storage_type: StorageType,
    slot: int,
    name: str,
) -> List[StorageSlotPair]:
    values = _require_sequence(value, storage_type, name)
    length_pair = StorageSlotPair(
        key=slot_key(slot),
        val=to_hex32(len(values)),
        type=storage_type.label,
        mask=FULL_MASK,
    )
    return [length_pair] + _encode_elements(values, storage_type, data_slot(slot), name)


def _encode_bytes(
    value: Any,
    storage_type: StorageType,
    slot: int,
    name: str,
) -> List[StorageSlotPair]:
    if storage_type.kind is TypeKind.STRING and isinstance(value, str):
        data = value.encode('utf-8')
    else:
        data = parse_bytes(value, storage_type.label)

    length = len(data)
    label = storage_type.label

    if length < SLOT_SIZE:
        # data left-aligned, length * 2 in the lowest byte
        word = data.ljust(SLOT_SIZE - 1, b'\x00') + bytes([length * 2])
        return [StorageSlotPair(key=slot_key(slot), val='0x' + word.hex(), type=label, mask=FULL_MASK)]

    slots = [StorageSlotPair(key=slot_key(slot), val=to_hex32(length * 2 + 1), type=label, mask=FULL_MASK)]
    first_chunk = data_slot(slot)
    for index in range(0, length, SLOT_SIZE):
        chunk = data[index:index + SLOT_SIZE].ljust(SLOT_SIZE, b'\x00')
        slots.append(StorageSlotPair(
            key=slot_key(first_chunk + index // SLOT_SIZE),
            val='0x' + chunk.hex(),
            type=label,
            mask=FULL_MASK,
        ))
    return slots


def _encode_mapping(
    value: Any,
    storage_type: StorageType,
    slot: int,
    name: str,
) -> List[StorageSlotPair]:
    if not isinstance(value, Mapping):
        raise InvalidValueError(f"Expected a dict for mapping, got {type(value).__name__}", name, storage_type.label)

    key_type = storage_type.key_type
    value_type = storage_type.value_type
    slots: List[StorageSlotPair] = []
    for key, mapped in value.items():
        derived = mapping_slot(key_type, key, slot)
        logger.debug("Mapping %s[%r] -> %s", name, key, slot_key(derived))
        slots.extend(_encode(mapped, value_type, derived, 0, f"{name}[{key!r}]"))
    return slots
