"""
evmstorage Storage Module

Slot addressing, the writer/reader/decoder passes and storage backends.
"""

from .backends import ContractStorage, JsonRpcStorage, StorageIO
from .decoder import decode_inplace, decode_variable
from .reader import get_variable_storage_slots
from .slots import (
    StorageSlotKeyTypePair,
    StorageSlotKeyValuePair,
    StorageSlotPair,
    array_element_positions,
    data_slot,
    encode_mapping_key,
    mapping_slot,
)
from .writer import compute_storage_slots, pack_slots

__all__ = [
    'ContractStorage',
    'JsonRpcStorage',
    'StorageIO',
    'StorageSlotKeyTypePair',
    'StorageSlotKeyValuePair',
    'StorageSlotPair',
    'array_element_positions',
    'compute_storage_slots',
    'data_slot',
    'decode_inplace',
    'decode_variable',
    'encode_mapping_key',
    'get_variable_storage_slots',
    'mapping_slot',
    'pack_slots',
]
