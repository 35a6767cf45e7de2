"""
Hashing Tests

Keccak-256 as used for storage slot derivation.
"""

from evmstorage.crypto import keccak256, keccak256_hex, keccak_int


class TestHashing:
    """Hash functions used for slot derivation."""

    def test_keccak256(self):
        result = keccak256(b"evmstorage")
        assert isinstance(result, bytes)
        assert len(result) == 32

    def test_keccak256_empty(self):
        assert keccak256_hex(b"") == "0xc5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"

    def test_known_slot_hashes(self):
        """Data slots of the first dynamic arrays in a contract."""
        assert keccak256_hex(bytes(32)) == "0x290decd9548b62a8d60345a988386fc84ba6bc95484008f6362f93160ef3e563"
        assert keccak256_hex((1).to_bytes(32, "big")) == "0xb10e2d527612073b26eecdfd717e6a320cf44b4afac2b0732d9fcbe2b7fa0cf6"
        assert keccak256_hex((2).to_bytes(32, "big")) == "0x405787fa12a823e0f2b7631cc41b3ba8828b3321ca811111fa75cd3aa3bb5ace"

    def test_hex_input(self):
        assert keccak256("0x" + "00" * 32) == keccak256(bytes(32))
        assert keccak256("00" * 32) == keccak256(bytes(32))

    def test_keccak_int(self):
        assert keccak_int(bytes(32)) == int("290decd9548b62a8d60345a988386fc84ba6bc95484008f6362f93160ef3e563", 16)
