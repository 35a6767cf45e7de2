"""
Storage I/O backends

The codec reads and writes storage through any object that provides

    async get_slot(address, key) -> 32-byte hex value
    async put_slot(address, key, value) -> None

Two implementations ship with the package:

- ContractStorage: in-memory, per-address slot store with snapshots
- JsonRpcStorage: a development node reached over HTTP JSON-RPC
  (``eth_getStorageAt`` plus a ``*_setStorageAt`` method)
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import httpx
from eth_utils import is_hex, to_checksum_address

from ..constants import DEFAULT_RPC_URL, DEFAULT_SET_STORAGE_METHOD, ZERO_SLOT
from ..exceptions import StorageBackendError
from ..logger import get_logger
from .hexutils import hex_to_int, pad_left, to_hex32

logger = get_logger(__name__)


class StorageIO(ABC):
    """Per-slot key/value access to contract storage."""

    @abstractmethod
    async def get_slot(self, address: str, key: str) -> str:
        """Return the 32-byte value stored at *key* (zero if never written)."""
        pass

    @abstractmethod
    async def put_slot(self, address: str, key: str, value: str) -> None:
        """Store a 32-byte *value* at *key*."""
        pass


def _normalize_word(value: str, what: str) -> str:
    # nodes may return short quantities such as "0x0"
    if not isinstance(value, str) or not value.startswith(("0x", "0X")) or not is_hex(value) or len(value) > 66:
        raise StorageBackendError(f"Invalid storage {what}: {value!r}")
    return pad_left(value)


class ContractStorage(StorageIO):
    """
    In-memory contract storage.

    Slots are kept per checksummed address; unwritten slots read as zero.
    Snapshots copy the whole store, so ``revert`` restores every address.
    """

    def __init__(self):
        self._storage_cache: Dict[Tuple[str, str], str] = {}  # (address, key) -> value
        self._snapshots: List[Dict[Tuple[str, str], str]] = []

    async def get_slot(self, address: str, key: str) -> str:
        """
        Get contract storage value.

        Args:
            address: Contract address
            key: Storage key (32 bytes, hex)

        Returns:
            Storage value (32 bytes, hex)
        """
        cache_key = (to_checksum_address(address), _normalize_word(key, "key"))
        return self._storage_cache.get(cache_key, ZERO_SLOT)

    async def put_slot(self, address: str, key: str, value: str) -> None:
        """
        Set contract storage value.

        Args:
            address: Contract address
            key: Storage key (32 bytes, hex)
            value: Storage value (32 bytes, hex)
        """
        cache_key = (to_checksum_address(address), _normalize_word(key, "key"))
        value = _normalize_word(value, "value")
        if value == ZERO_SLOT:
            self._storage_cache.pop(cache_key, None)
        else:
            self._storage_cache[cache_key] = value

    async def clear_storage(self, address: str) -> None:
        """Clear all storage for a contract."""
        address = to_checksum_address(address)
        keys_to_remove = [k for k in self._storage_cache if k[0] == address]
        for key in keys_to_remove:
            del self._storage_cache[key]

    def slots(self, address: str) -> Dict[str, str]:
        """Non-zero slots of *address*, keyed by slot key."""
        address = to_checksum_address(address)
        return {key: value for (owner, key), value in self._storage_cache.items() if owner == address}

    async def snapshot(self) -> int:
        """
        Create storage snapshot for revert.

        Returns:
            Snapshot ID
        """
        self._snapshots.append(dict(self._storage_cache))
        return len(self._snapshots) - 1

    async def revert(self, snapshot_id: int) -> None:
        """
        Revert storage to snapshot.

        Args:
            snapshot_id: Snapshot ID from snapshot()
        """
        if snapshot_id < 0 or snapshot_id >= len(self._snapshots):
            raise ValueError(f"Invalid snapshot ID: {snapshot_id}")

        self._storage_cache = self._snapshots[snapshot_id]

        # Remove newer snapshots
        self._snapshots = self._snapshots[:snapshot_id]


class JsonRpcStorage(StorageIO):
    """
    Storage of a development node, over HTTP JSON-RPC.

    Reads use ``eth_getStorageAt``. Writes use a node-specific method such as
    ``hardhat_setStorageAt`` or ``anvil_setStorageAt``.
    """

    _rpc_id_counter = 0

    def __init__(
        self,
        url: str = DEFAULT_RPC_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        block: str = "latest",
        set_storage_method: str = DEFAULT_SET_STORAGE_METHOD,
    ):
        self.url = url
        self.block = block
        self.set_storage_method = set_storage_method
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "JsonRpcStorage":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    @classmethod
    def _next_id(cls) -> int:
        cls._rpc_id_counter += 1
        return cls._rpc_id_counter

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        """
        Send a JSON-RPC 2.0 request and return its ``result``.

        Raises:
            StorageBackendError: Network failure, HTTP error, invalid JSON
                or a JSON-RPC error object
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._next_id(),
        }
        start_time = time.time()
        try:
            response = await self.client.post(
                self.url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            elapsed = time.time() - start_time
            logger.debug("RPC %s -> %s [%d] (%.3fs)", method, self.url, response.status_code, elapsed)
            response.raise_for_status()
            body = response.json()
        except httpx.RequestError as exc:
            elapsed = time.time() - start_time
            logger.warning("RPC %s -> %s NETWORK_ERROR (%.3fs)", method, self.url, elapsed)
            raise StorageBackendError(f"{method} failed: {exc}") from exc
        except (ValueError, httpx.HTTPStatusError) as exc:
            elapsed = time.time() - start_time
            logger.warning("RPC %s -> %s ERROR (%.3fs): %s", method, self.url, elapsed, exc)
            raise StorageBackendError(f"{method} failed: {exc}") from exc

        if not isinstance(body, dict):
            raise StorageBackendError(f"{method} returned a malformed response: {body!r}")
        if body.get("error"):
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise StorageBackendError(f"{method} failed: {message}")
        return body.get("result")

    async def get_slot(self, address: str, key: str) -> str:
        position = hex(hex_to_int(_normalize_word(key, "key")))
        result = await self._rpc_call(
            "eth_getStorageAt",
            [to_checksum_address(address), position, self.block],
        )
        if not isinstance(result, str):
            raise StorageBackendError(f"eth_getStorageAt returned {result!r}")
        return _normalize_word(result, "value")

    async def put_slot(self, address: str, key: str, value: str) -> None:
        position = hex(hex_to_int(_normalize_word(key, "key")))
        await self._rpc_call(
            self.set_storage_method,
            [to_checksum_address(address), position, to_hex32(hex_to_int(_normalize_word(value, "value")))],
        )
