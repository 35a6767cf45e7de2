"""
Value Decoder

Rebuilds a typed value from the reader's slot pairs once each pair has been
paired with the 32-byte value actually stored at its key.

- scalars are sliced out of the word at ``offset`` (low-order relative)
- structs and arrays drop their header pair and regroup the remaining pairs
  by the next element of ``path``
- ``bytes``/``string`` concatenate the first ``length`` bytes of each chunk
- ``string`` decoded as text falls back to hex when it is not valid UTF-8
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence, Union

from eth_utils import to_checksum_address

from ..constants import ADDRESS_SIZE
from ..exceptions import DecodingError
from ..layout.types import StorageType, TypeKind
from ..logger import get_logger
from .hexutils import from_twos_complement, hex_to_bytes, hex_to_int, is_hex_of_size, slice_word
from .slots import StorageSlotKeyValuePair

logger = get_logger(__name__)

Pairs = Union[StorageSlotKeyValuePair, Sequence[StorageSlotKeyValuePair]]


def decode_variable(pairs: Pairs, decode_strings: bool = False) -> Any:
    """
    Decode one variable from its slot value pairs.

    Args:
        pairs: Pairs in reader order (a single pair is accepted as-is)
        decode_strings: Return ``string`` values as text rather than hex

    Returns:
        ``int``/``bool``/``str`` for scalars, ``dict`` for structs,
        ``list`` for arrays, ``0x`` hex (or text) for bytes and strings

    Raises:
        DecodingError: Empty input, a mapping, or a malformed value
    """
    if isinstance(pairs, StorageSlotKeyValuePair):
        pairs = [pairs]
    pairs = list(pairs)
    if not pairs:
        raise DecodingError("No slot values to decode")
    return _decode(pairs, decode_strings)


def decode_inplace(value: str, storage_type: StorageType, offset: int = 0) -> Any:
    """Decode a scalar stored *offset* bytes from the low-order end of *value*."""
    if not is_hex_of_size(value, 32):
        raise DecodingError(f"Expected a 32-byte hex word, got {value!r}")

    size = storage_type.number_of_bytes
    if offset + size > 32:
        raise DecodingError(f"{storage_type.label} at offset {offset} exceeds the slot")
    raw = slice_word(hex_to_int(value), offset, size)
    kind = storage_type.kind

    if kind is TypeKind.ADDRESS:
        return to_checksum_address(raw.to_bytes(ADDRESS_SIZE, 'big'))
    if kind is TypeKind.BOOL:
        return raw != 0
    if kind is TypeKind.FIXED_BYTES:
        return '0x' + raw.to_bytes(size, 'big').hex()
    if kind in (TypeKind.UINT, TypeKind.ENUM):
        return raw
    if kind is TypeKind.INT:
        return from_twos_complement(raw, size)

    raise DecodingError(f"Not an inplace scalar: {storage_type.label}")


def _decode(pairs: List[StorageSlotKeyValuePair], decode_strings: bool) -> Any:
    head = pairs[0]
    storage_type = head.type
    kind = storage_type.kind

    if storage_type.is_scalar:
        return decode_inplace(head.value, storage_type, head.offset)

    if kind in (TypeKind.STRING, TypeKind.BYTES):
        data = _concat_chunks(pairs)
        if decode_strings and kind is TypeKind.STRING:
            try:
                return data.decode('utf-8')
            except UnicodeDecodeError:
                logger.warning("%s is not valid UTF-8, returning hex", head.label or storage_type.label)
        return '0x' + data.hex()

    if kind is TypeKind.STRUCT:
        groups = _group_children(pairs)
        return {label: _decode(group, decode_strings) for label, group in groups.items()}

    if kind in (TypeKind.STATIC_ARRAY, TypeKind.DYNAMIC_ARRAY):
        groups = _group_children(pairs)
        return [_decode(group, decode_strings) for group in groups.values()]

    if kind is TypeKind.MAPPING:
        raise DecodingError("Mappings cannot be decoded as a whole; read them with a key path")

    raise DecodingError(f"Encoding type not supported: {storage_type.encoding} ({storage_type.label})")


def _group_children(pairs: List[StorageSlotKeyValuePair]) -> Dict[Any, List[StorageSlotKeyValuePair]]:
    """Group everything after the header by the path element one level down."""
    depth = len(pairs[0].path)
    groups: Dict[Any, List[StorageSlotKeyValuePair]] = {}
    for pair in pairs[1:]:
        if len(pair.path) <= depth:
            raise DecodingError(f"Slot pair outside of {pairs[0].type.label}: path {pair.path}")
        groups.setdefault(pair.path[depth], []).append(pair)
    return groups


def _concat_chunks(pairs: List[StorageSlotKeyValuePair]) -> bytes:
    data = b''
    for pair in pairs:
        if not is_hex_of_size(pair.value, 32):
            raise DecodingError(f"Expected a 32-byte hex word, got {pair.value!r}")
        length = 32 if pair.length is None else pair.length
        data += hex_to_bytes(pair.value)[:length]
    return data
