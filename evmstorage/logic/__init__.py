from .editable import EditableStorage
from .readable import ReadableStorage

__all__ = ['EditableStorage', 'ReadableStorage']
