"""
Editable storage

Writes typed values into a contract's storage. All slot pairs are computed
before the first write, so a value that fails validation leaves storage
untouched. Each slot is written read-modify-write through the pair's byte
mask: bytes owned by packed neighbours survive.
"""

from typing import Any, Dict, List, Mapping, Optional

from ..layout.types import StorageLayout
from ..logger import get_logger
from ..storage.hexutils import hex_to_int, to_hex32
from ..storage.slots import StorageSlotPair
from ..storage.writer import FULL_MASK, compute_storage_slots

logger = get_logger(__name__)


class EditableStorage:
    """
    Sets state variables of one contract.

    Args:
        layout: Contract storage layout
        storage_io: Object with async ``get_slot``/``put_slot``
        address: Contract address
    """

    def __init__(self, layout: StorageLayout, storage_io: Any, address: str):
        self.layout = layout
        self.storage_io = storage_io
        self.address = address

    async def set_variable(self, name: str, value: Any) -> List[StorageSlotPair]:
        """Set one variable. ``None`` is ignored."""
        if value is None:
            return []
        return await self.set_variables({name: value})

    async def set_variables(self, variables: Optional[Mapping[str, Any]]) -> List[StorageSlotPair]:
        """
        Set several variables at once.

        Returns:
            The packed slot pairs that were written
        """
        if not variables:
            return []

        present: Dict[str, Any] = {name: value for name, value in variables.items() if value is not None}
        slots = compute_storage_slots(self.layout, present)

        for slot in slots:
            await self._write_slot(slot)

        logger.info("Wrote %d slot(s) for %s at %s", len(slots), ", ".join(present), self.address)
        return slots

    async def _write_slot(self, slot: StorageSlotPair) -> None:
        if slot.mask == FULL_MASK:
            await self.storage_io.put_slot(self.address, slot.key, slot.val)
            return

        previous = hex_to_int(await self.storage_io.get_slot(self.address, slot.key))
        mask = hex_to_int(slot.mask)
        merged = (previous & ~mask) | (hex_to_int(slot.val) & mask)
        await self.storage_io.put_slot(self.address, slot.key, to_hex32(merged))
