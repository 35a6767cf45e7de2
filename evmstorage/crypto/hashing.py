"""
evmstorage Hashing Module

Provides the hash used by the virtual machine's storage addressing rule:
- keccak256: slot derivation for mappings, dynamic arrays and long byte strings
"""

from typing import Union

from eth_utils import keccak


def keccak256(data: Union[bytes, str]) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum standard).

    Args:
        data: Input bytes or hex string

    Returns:
        32-byte hash
    """
    if isinstance(data, str):
        if data.startswith('0x') or data.startswith('0X'):
            data = bytes.fromhex(data[2:])
        else:
            data = bytes.fromhex(data)

    return keccak(data)


def keccak256_hex(data: Union[bytes, str]) -> str:
    """
    Compute Keccak-256 hash and return as hex string.

    Args:
        data: Input bytes or hex string

    Returns:
        Hex string with 0x prefix
    """
    return '0x' + keccak256(data).hex()


def keccak_int(data: Union[bytes, str]) -> int:
    """Keccak-256 of *data* read as a big-endian unsigned integer (a slot index)."""
    return int.from_bytes(keccak256(data), 'big')
