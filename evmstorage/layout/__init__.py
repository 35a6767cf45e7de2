from .loader import LayoutCache, find_storage_layout, load_layout
from .types import StorageEntry, StorageLayout, StorageMember, StorageType, TypeKind

__all__ = [
    'LayoutCache',
    'StorageEntry',
    'StorageLayout',
    'StorageMember',
    'StorageType',
    'TypeKind',
    'find_storage_layout',
    'load_layout',
]
