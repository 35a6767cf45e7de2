"""
Storage Backend Tests

In-memory contract storage and the JSON-RPC backend (with a mocked
transport).
"""

import json
import logging

import httpx
import pytest
from eth_utils import to_checksum_address

from evmstorage.constants import ZERO_SLOT
from evmstorage.exceptions import StorageBackendError
from evmstorage.storage.backends import ContractStorage, JsonRpcStorage
from evmstorage.storage.hexutils import to_hex32
from evmstorage.storage.slots import slot_key

from conftest import CONTRACT_ADDRESS, OTHER_ADDRESS


class TestContractStorage:
    """Test the in-memory backend."""

    @pytest.mark.asyncio
    async def test_unwritten_slot_is_zero(self, storage):
        assert await storage.get_slot(CONTRACT_ADDRESS, slot_key(0)) == ZERO_SLOT

    @pytest.mark.asyncio
    async def test_put_get(self, storage):
        await storage.put_slot(CONTRACT_ADDRESS, slot_key(1), to_hex32(42))
        assert await storage.get_slot(CONTRACT_ADDRESS, slot_key(1)) == to_hex32(42)

    @pytest.mark.asyncio
    async def test_address_and_key_normalized(self, storage):
        await storage.put_slot(CONTRACT_ADDRESS, "0x1", "0x2a")
        checksummed = to_checksum_address(CONTRACT_ADDRESS)
        assert await storage.get_slot(checksummed, slot_key(1)) == to_hex32(42)

    @pytest.mark.asyncio
    async def test_invalid_key(self, storage):
        with pytest.raises(StorageBackendError):
            await storage.get_slot(CONTRACT_ADDRESS, "not-a-key")

    @pytest.mark.asyncio
    async def test_clear_storage(self, storage):
        await storage.put_slot(CONTRACT_ADDRESS, slot_key(1), to_hex32(1))
        await storage.put_slot(OTHER_ADDRESS, slot_key(1), to_hex32(2))
        await storage.clear_storage(CONTRACT_ADDRESS)

        assert storage.slots(CONTRACT_ADDRESS) == {}
        assert storage.slots(OTHER_ADDRESS) == {slot_key(1): to_hex32(2)}

    @pytest.mark.asyncio
    async def test_snapshot_revert(self, storage):
        await storage.put_slot(CONTRACT_ADDRESS, slot_key(1), to_hex32(1))
        snapshot_id = await storage.snapshot()
        await storage.put_slot(CONTRACT_ADDRESS, slot_key(1), to_hex32(2))
        await storage.revert(snapshot_id)

        assert await storage.get_slot(CONTRACT_ADDRESS, slot_key(1)) == to_hex32(1)

    @pytest.mark.asyncio
    async def test_invalid_snapshot(self, storage):
        with pytest.raises(ValueError):
            await storage.revert(3)


class MockNode:
    """Mock JSON-RPC node recording requests."""

    def __init__(self, response=None, status_code=200):
        self.requests = []
        self.response = response
        self.status_code = status_code

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        if self.response is not None:
            return httpx.Response(self.status_code, json=self.response)
        return httpx.Response(self.status_code, json={"jsonrpc": "2.0", "id": body["id"], "result": "0x2a"})

    def storage(self, **kwargs) -> JsonRpcStorage:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self))
        return JsonRpcStorage(url="http://node.test", client=client, **kwargs)


class TestJsonRpcStorage:
    """Test the JSON-RPC backend."""

    @pytest.mark.asyncio
    async def test_get_slot(self):
        node = MockNode()
        storage = node.storage()
        value = await storage.get_slot(CONTRACT_ADDRESS, slot_key(5))
        await storage.client.aclose()

        assert value == to_hex32(42)
        request = node.requests[0]
        assert request["method"] == "eth_getStorageAt"
        assert request["params"] == [to_checksum_address(CONTRACT_ADDRESS), "0x5", "latest"]

    @pytest.mark.asyncio
    async def test_put_slot(self):
        node = MockNode()
        storage = node.storage(set_storage_method="anvil_setStorageAt")
        await storage.put_slot(CONTRACT_ADDRESS, slot_key(0), "0x2a")
        await storage.client.aclose()

        request = node.requests[0]
        assert request["method"] == "anvil_setStorageAt"
        assert request["params"] == [to_checksum_address(CONTRACT_ADDRESS), "0x0", to_hex32(42)]

    @pytest.mark.asyncio
    async def test_block_tag(self):
        node = MockNode()
        storage = node.storage(block="0x10")
        await storage.get_slot(CONTRACT_ADDRESS, slot_key(0))
        await storage.client.aclose()
        assert node.requests[0]["params"][2] == "0x10"

    @pytest.mark.asyncio
    async def test_rpc_error(self):
        node = MockNode(response={"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "Method not found"}})
        storage = node.storage()
        with pytest.raises(StorageBackendError, match="Method not found"):
            await storage.put_slot(CONTRACT_ADDRESS, slot_key(0), to_hex32(1))
        await storage.client.aclose()

    @pytest.mark.asyncio
    async def test_http_error(self):
        node = MockNode(response={"error": "boom"}, status_code=500)
        storage = node.storage()
        with pytest.raises(StorageBackendError):
            await storage.get_slot(CONTRACT_ADDRESS, slot_key(0))
        await storage.client.aclose()

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        async with JsonRpcStorage(url="http://node.test", client=client) as storage:
            with pytest.raises(StorageBackendError):
                await storage.get_slot(CONTRACT_ADDRESS, slot_key(0))
        await client.aclose()

    @pytest.mark.asyncio
    async def test_invalid_result(self):
        node = MockNode(response={"jsonrpc": "2.0", "id": 1, "result": None})
        storage = node.storage()
        with pytest.raises(StorageBackendError):
            await storage.get_slot(CONTRACT_ADDRESS, slot_key(0))
        await storage.client.aclose()

    @pytest.mark.asyncio
    async def test_request_logged_with_lazy_arguments(self, caplog):
        node = MockNode()
        storage = node.storage()
        with caplog.at_level(logging.DEBUG, logger="evmstorage"):
            await storage.get_slot(CONTRACT_ADDRESS, slot_key(0))
        await storage.client.aclose()

        record = next(r for r in caplog.records if r.getMessage().startswith("RPC eth_getStorageAt"))
        assert record.args[:3] == ("eth_getStorageAt", "http://node.test", 200)
