"""
evmstorage Crypto Module

Hash functions used for storage slot derivation.
"""

from .hashing import keccak256, keccak256_hex, keccak_int

__all__ = ['keccak256', 'keccak256_hex', 'keccak_int']
