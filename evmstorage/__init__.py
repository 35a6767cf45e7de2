"""
evmstorage Package

Storage layout codec: turns typed values into contract storage slots and
reads them back.

Core imports are lazily loaded. For direct module access, import from
submodules:

    from evmstorage.layout import load_layout
    from evmstorage.storage import compute_storage_slots, decode_variable
    from evmstorage.logic import EditableStorage, ReadableStorage
"""

__version__ = "1.0.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'load_layout':
        from .layout import load_layout
        return load_layout
    elif name == 'StorageLayout':
        from .layout import StorageLayout
        return StorageLayout
    elif name == 'compute_storage_slots':
        from .storage import compute_storage_slots
        return compute_storage_slots
    elif name == 'get_variable_storage_slots':
        from .storage import get_variable_storage_slots
        return get_variable_storage_slots
    elif name == 'decode_variable':
        from .storage import decode_variable
        return decode_variable
    elif name == 'EditableStorage':
        from .logic import EditableStorage
        return EditableStorage
    elif name == 'ReadableStorage':
        from .logic import ReadableStorage
        return ReadableStorage
    raise AttributeError(f"module 'evmstorage' has no attribute {name!r}")

__all__ = [
    'load_layout',
    'StorageLayout',
    'compute_storage_slots',
    'get_variable_storage_slots',
    'decode_variable',
    'EditableStorage',
    'ReadableStorage',
]
