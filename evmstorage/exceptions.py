"""
evmstorage Exceptions

Custom exception classes for the storage layout codec.
"""


class EVMStorageException(Exception):
    """Base exception for evmstorage."""
    pass


# -- Schema errors -------------------------------------------------------

class SchemaError(EVMStorageException):
    """The storage layout cannot describe the requested operation."""
    pass


class VariableNotFoundError(SchemaError):
    """Variable name is not declared in the storage layout."""

    def __init__(self, name: str):
        super().__init__(f"Variable name not found: {name}")
        self.name = name


class UnknownTypeError(SchemaError):
    """Type-id is not present in the layout's type registry."""

    def __init__(self, type_id: str):
        super().__init__(f"Type not found in storage layout: {type_id}")
        self.type_id = type_id


class UnsupportedEncodingError(SchemaError):
    """Encoding kind or type label the codec cannot handle."""
    pass


class InvalidLayoutError(SchemaError):
    """Layout entry is malformed (e.g. a packed string)."""
    pass


# -- Value validation ----------------------------------------------------

class ValueValidationError(EVMStorageException, ValueError):
    """Value does not match its declared type."""

    def __init__(self, message: str, variable: str = None, type_label: str = None):
        context = []
        if variable:
            context.append(f"variable={variable}")
        if type_label:
            context.append(f"type={type_label}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)
        self.variable = variable
        self.type_label = type_label


class InvalidValueError(ValueValidationError):
    """Value has the wrong shape or format for its type."""
    pass


class ValueTooLargeError(ValueValidationError):
    """Value does not fit in the declared width."""
    pass


# -- Corruption ----------------------------------------------------------

class SlotCorruptionError(EVMStorageException):
    """Two encodings claim the same non-zero byte of a slot."""

    def __init__(self, key: str, byte_index: int):
        super().__init__(
            f"Detected overlapping data while packing slot {key} at byte {byte_index}"
        )
        self.key = key
        self.byte_index = byte_index


# -- Missing context -----------------------------------------------------

class MissingMappingKeyError(EVMStorageException):
    """Mapping key path omitted (or too short) when reading a mapping."""
    pass


class DecodingError(EVMStorageException):
    """Slot values cannot be turned back into a typed value."""
    pass


# -- Collaborators -------------------------------------------------------

class ConfigurationError(EVMStorageException):
    """Configuration or layout provider error."""
    pass


class StorageBackendError(EVMStorageException):
    """Storage backend failed to read or write a slot."""
    pass


class MissingStorageLayoutError(ConfigurationError):
    """Contract found in build output, but without a storage layout section."""
    pass
