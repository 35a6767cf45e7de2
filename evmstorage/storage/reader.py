"""
Slot Reader

Computes the slot keys, and the metadata needed to decode them, for one
variable. Storage is consulted only where a length has to be discovered:
the length field of ``bytes``/``string`` and the length slot of dynamic
arrays.

Every composite value (struct, fixed or dynamic array) starts with a header
pair at its own base slot, followed by the pairs of its children. Each pair
carries a ``path`` of member labels / element indices relative to the
variable, which is what the decoder uses to regroup nested values.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple

from ..constants import SLOT_SIZE
from ..exceptions import (
    InvalidLayoutError,
    InvalidValueError,
    MissingMappingKeyError,
)
from ..layout.types import StorageLayout, StorageType, TypeKind
from ..logger import get_logger
from .hexutils import hex_to_int
from .slots import (
    PathElement,
    StorageSlotKeyTypePair,
    array_element_positions,
    data_slot,
    mapping_slot,
    slot_key,
)

logger = get_logger(__name__)


async def get_variable_storage_slots(
    layout: StorageLayout,
    name: str,
    storage_io: Any,
    address: str,
    key_path: Any = None,
) -> List[StorageSlotKeyTypePair]:
    """
    Compute the slot key/type pairs needed to reconstruct variable *name*.

    Args:
        layout: Contract storage layout
        name: Variable name
        storage_io: Object with ``async get_slot(address, key)``
        address: Contract address
        key_path: Mapping keys, outermost first. A single key may be given
            without wrapping it in a list.

    Returns:
        Ordered list of slot key/type pairs

    Raises:
        VariableNotFoundError: Unknown variable name
        MissingMappingKeyError: Mapping reached without a key to follow
        InvalidValueError: More keys given than there are mapping levels
    """
    entry = layout.find_variable(name)
    storage_type = layout.resolve(entry.type_id)

    keys = _normalize_key_path(key_path)
    offset = entry.offset if storage_type.kind is not TypeKind.MAPPING else 0
    slot, storage_type = _follow_mapping_keys(storage_type, entry.slot, keys, name)

    reader = _Reader(storage_io, address)
    pairs = await reader.collect(storage_type, slot, offset, name, ())
    logger.debug("Resolved %s to %d slot pair(s)", name, len(pairs))
    return pairs


def _normalize_key_path(key_path: Any) -> List[Any]:
    if key_path is None:
        return []
    if isinstance(key_path, (list, tuple)):
        return list(key_path)
    return [key_path]


def _follow_mapping_keys(
    storage_type: StorageType,
    slot: int,
    keys: Sequence[Any],
    name: str,
) -> Tuple[int, StorageType]:
    """Walk down nested mappings one key at a time."""
    remaining = list(keys)
    while storage_type.kind is TypeKind.MAPPING:
        if not remaining:
            raise MissingMappingKeyError(
                f"Mapping key path required to read {name} ({storage_type.label})"
            )
        key = remaining.pop(0)
        slot = mapping_slot(storage_type.key_type, key, slot)
        logger.debug("Mapping %s[%r] -> %s", name, key, slot_key(slot))
        storage_type = storage_type.value_type

    if remaining:
        raise InvalidValueError(
            f"{len(remaining)} extra mapping key(s) for non-mapping type",
            name, storage_type.label,
        )
    return slot, storage_type


class _Reader:
    """One read pass over a single contract's storage."""

    def __init__(self, storage_io: Any, address: str):
        self.storage_io = storage_io
        self.address = address

    async def read_word(self, slot: int) -> int:
        return hex_to_int(await self.storage_io.get_slot(self.address, slot_key(slot)))

    async def collect(
        self,
        storage_type: StorageType,
        slot: int,
        offset: int,
        label: Optional[str],
        path: Tuple[PathElement, ...],
    ) -> List[StorageSlotKeyTypePair]:
        storage_type.require_supported()
        kind = storage_type.kind

        if storage_type.is_scalar:
            return [StorageSlotKeyTypePair(slot_key(slot), storage_type, offset, None, label, path)]

        if kind is TypeKind.STRUCT:
            pairs = [StorageSlotKeyTypePair(slot_key(slot), storage_type, 0, None, label, path)]
            for member in storage_type.members:
                member_type = storage_type.member_type(member)
                if member_type.kind is TypeKind.MAPPING:
                    continue
                pairs.extend(await self.collect(
                    member_type,
                    slot + member.slot,
                    member.offset,
                    member.label,
                    path + (member.label,),
                ))
            return pairs

        if kind is TypeKind.STATIC_ARRAY:
            if storage_type.array_length is None:
                raise InvalidLayoutError(f"Cannot determine length of {storage_type.label}")
            header = StorageSlotKeyTypePair(slot_key(slot), storage_type, 0, None, label, path)
            return [header] + await self.collect_elements(
                storage_type, storage_type.array_length, slot, path
            )

        if kind is TypeKind.DYNAMIC_ARRAY:
            length = await self.read_word(slot)
            header = StorageSlotKeyTypePair(slot_key(slot), storage_type, 0, None, label, path)
            return [header] + await self.collect_elements(
                storage_type, length, data_slot(slot), path
            )

        if kind in (TypeKind.STRING, TypeKind.BYTES):
            if offset != 0:
                raise InvalidLayoutError(f"Got offset {offset} for string/bytes variable {label}")
            return await self.collect_bytes(storage_type, slot, label, path)

        # mappings nested inside structs and arrays cannot be enumerated
        return []

    async def collect_elements(
        self,
        storage_type: StorageType,
        count: int,
        start_slot: int,
        path: Tuple[PathElement, ...],
    ) -> List[StorageSlotKeyTypePair]:
        element_type = storage_type.base_type
        pairs: List[StorageSlotKeyTypePair] = []
        positions = array_element_positions(element_type, count, start_slot)
        for index, (slot, offset) in enumerate(positions):
            pairs.extend(await self.collect(element_type, slot, offset, None, path + (index,)))
        return pairs

    async def collect_bytes(
        self,
        storage_type: StorageType,
        slot: int,
        label: Optional[str],
        path: Tuple[PathElement, ...],
    ) -> List[StorageSlotKeyTypePair]:
        field = await self.read_word(slot)

        if not field & 1:
            # short: length * 2 in the lowest byte
            length = (field & 0xff) // 2
            return [StorageSlotKeyTypePair(slot_key(slot), storage_type, 0, length, label, path)]

        length = (field - 1) // 2
        if length == 0:
            return [StorageSlotKeyTypePair(slot_key(slot), storage_type, 0, 0, label, path)]

        first_chunk = data_slot(slot)
        pairs = []
        for index, start in enumerate(range(0, length, SLOT_SIZE)):
            pairs.append(StorageSlotKeyTypePair(
                slot_key(first_chunk + index),
                storage_type,
                0,
                min(SLOT_SIZE, length - start),
                label,
                path,
            ))
        return pairs
