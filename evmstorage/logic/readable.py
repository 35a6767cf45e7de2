"""
Readable storage

Reads typed values out of a contract's storage: the reader computes the
slots, each slot is fetched once, and the decoder rebuilds the value.
"""

from typing import Any

from ..layout.types import StorageLayout
from ..logger import get_logger
from ..storage.decoder import decode_variable
from ..storage.reader import get_variable_storage_slots

logger = get_logger(__name__)


class ReadableStorage:
    """
    Reads state variables of one contract.

    Args:
        layout: Contract storage layout
        storage_io: Object with async ``get_slot``
        address: Contract address
    """

    def __init__(self, layout: StorageLayout, storage_io: Any, address: str):
        self.layout = layout
        self.storage_io = storage_io
        self.address = address

    async def get_variable(self, name: str, key_path: Any = None) -> Any:
        """
        Read variable *name*.

        Args:
            name: Variable name
            key_path: Mapping key, or list of keys for nested mappings

        Returns:
            Decoded value; ``string`` values come back as text
        """
        slots = await get_variable_storage_slots(
            self.layout, name, self.storage_io, self.address, key_path
        )

        pairs = []
        for slot in slots:
            pairs.append(slot.with_value(await self.storage_io.get_slot(self.address, slot.key)))

        return decode_variable(pairs, decode_strings=True)
