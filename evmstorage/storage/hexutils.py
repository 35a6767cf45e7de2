"""
Big-integer hex utilities

Conversions between Python integers and fixed-width, big-endian hex words,
including two's-complement encoding of negative values.

All slot keys and slot values handled by the codec are ``0x``-prefixed,
lower-case and padded to 64 hex characters (32 bytes).
"""

from typing import Optional, Union

from eth_utils import add_0x_prefix, is_hex, remove_0x_prefix

from ..constants import SLOT_HEX_LENGTH, SLOT_MODULUS, SLOT_SIZE


def remove_0x(value: str) -> str:
    """Strip a leading ``0x`` if present."""
    if value is None:
        return value
    return remove_0x_prefix(value)


def pad_left(hex_value: str, size: int = SLOT_SIZE) -> str:
    """Left-pad *hex_value* with zeros to *size* bytes (numeric alignment)."""
    return add_0x_prefix(remove_0x(hex_value).lower().rjust(size * 2, '0'))


def pad_right(hex_value: str, size: int = SLOT_SIZE) -> str:
    """Right-pad *hex_value* with zeros to *size* bytes (byte-string alignment)."""
    return add_0x_prefix(remove_0x(hex_value).lower().ljust(size * 2, '0'))


def to_hex32(value: int) -> str:
    """
    Encode a non-negative integer below 2**256 as a 32-byte hex word.

    Args:
        value: Unsigned integer

    Returns:
        ``0x`` followed by 64 lower-case hex characters

    Raises:
        ValueError: If the value does not fit in 256 bits
    """
    if value < 0 or value >= SLOT_MODULUS:
        raise ValueError(f"Value does not fit in 32 bytes: {value}")
    return '0x' + format(value, f'0{SLOT_HEX_LENGTH}x')


def hex_to_int(value: Union[str, bytes]) -> int:
    """Parse a big-endian hex word (or raw bytes) as an unsigned integer."""
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, 'big')
    stripped = remove_0x(value)
    return int(stripped, 16) if stripped else 0


def hex_to_bytes(value: str) -> bytes:
    """Decode a hex string, with or without ``0x``."""
    return bytes.fromhex(remove_0x(value))


def is_hex_of_size(value: str, size: Optional[int] = None) -> bool:
    """
    Check that *value* is a ``0x``-prefixed hex string, optionally of exactly
    *size* bytes.
    """
    if not isinstance(value, str) or not value.startswith(('0x', '0X')):
        return False
    if not is_hex(value):
        return False
    digits = remove_0x(value)
    if len(digits) % 2:
        return False
    return size is None or len(digits) == size * 2


def to_twos_complement(value: int, size: int) -> int:
    """
    Represent a signed integer as an unsigned *size*-byte two's-complement
    integer. Negative values come out with their high bits set ("padded with
    f"), confined to *size* bytes.
    """
    bits = size * 8
    if value < 0:
        return (1 << bits) + value
    return value


def from_twos_complement(value: int, size: int) -> int:
    """Interpret an unsigned *size*-byte integer as two's complement."""
    bits = size * 8
    if value >> (bits - 1):
        # complement and add one, then negate
        return -(((~value) & ((1 << bits) - 1)) + 1)
    return value


def signed_bounds(size: int):
    """Inclusive (min, max) of a signed integer of *size* bytes."""
    bits = size * 8
    return -(1 << (bits - 1)), (1 << (bits - 1)) - 1


def slice_word(word: int, offset: int, size: int) -> int:
    """Extract *size* bytes starting *offset* bytes from the low-order end of a word."""
    return (word >> (offset * 8)) & ((1 << (size * 8)) - 1)


def place_in_word(value: int, offset: int) -> int:
    """Shift *value* so that it starts *offset* bytes from the low-order end."""
    return (value << (offset * 8)) % SLOT_MODULUS


def byte_mask(offset: int, size: int) -> int:
    """Mask covering *size* bytes at *offset* (low-order relative)."""
    return place_in_word((1 << (size * 8)) - 1, offset)
