"""
Shared fixtures: a storage layout shaped like the compiler's output for a
contract exercising every supported storage encoding.
"""

import copy
import json

import pytest

from evmstorage.layout.types import StorageLayout
from evmstorage.storage.backends import ContractStorage


CONTRACT_ADDRESS = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
OTHER_ADDRESS = "0xe7f1725e7734ce288f8367e1bb143e90bb3f0512"


def _var(label, slot, type_id, offset=0):
    return {
        "astId": 1,
        "contract": "contracts/StorageGetter.sol:StorageGetter",
        "label": label,
        "offset": offset,
        "slot": str(slot),
        "type": type_id,
    }


def _member(label, slot, type_id, offset=0):
    return {"astId": 1, "contract": "", "label": label, "offset": offset, "slot": str(slot), "type": type_id}


def _inplace(label, size):
    return {"encoding": "inplace", "label": label, "numberOfBytes": str(size)}


RAW_LAYOUT = {
    "storage": [
        _var("_uint256", 0, "t_uint256"),
        _var("_bool", 1, "t_bool"),
        _var("_address", 1, "t_address", offset=1),
        _var("_int256", 2, "t_int256"),
        _var("_int56", 3, "t_int56"),
        _var("_uint16", 3, "t_uint16", offset=7),
        _var("_bytes32", 4, "t_bytes32"),
        _var("_uint256Map", 5, "t_mapping(t_uint256,t_uint256)"),
        _var("_uint256NestedMap", 6, "t_mapping(t_uint256,t_mapping(t_uint256,t_uint256))"),
        _var("_string", 7, "t_string_storage"),
        _var("_bytes", 8, "t_bytes_storage"),
        _var("_simpleStruct", 9, "t_struct(SimpleStruct)_storage"),
        _var("_packedStruct", 11, "t_struct(PackedStruct)_storage"),
        _var("_offsetStruct", 13, "t_struct(OffsetStruct)_storage"),
        _var("_uint256Array", 15, "t_array(t_uint256)dyn_storage"),
        _var("_uint16Array", 16, "t_array(t_uint16)dyn_storage"),
        _var("_bytes32ToBoolMap", 17, "t_mapping(t_bytes32,t_bool)"),
        _var("_addressToStructMap", 18, "t_mapping(t_address,t_struct(SimpleStruct)_storage)"),
        _var("_uint128FixedArray", 19, "t_array(t_uint128)3_storage"),
        _var("_int8", 21, "t_int8"),
        _var("_enum", 21, "t_enum(Status)1", offset=1),
        _var("_complexStruct", 22, "t_struct(ComplexStruct)_storage"),
        _var("_stringToUintMap", 26, "t_mapping(t_string_memory_ptr,t_uint256)"),
        _var("_intToUintMap", 27, "t_mapping(t_int256,t_uint256)"),
        _var("_stringArray", 28, "t_array(t_string_storage)dyn_storage"),
        _var("_callback", 29, "t_function_external"),
        _var("_broken", 30, "t_missing"),
    ],
    "types": {
        "t_address": _inplace("address", 20),
        "t_bool": _inplace("bool", 1),
        "t_bytes32": _inplace("bytes32", 32),
        "t_int256": _inplace("int256", 32),
        "t_int56": _inplace("int56", 7),
        "t_int8": _inplace("int8", 1),
        "t_uint16": _inplace("uint16", 2),
        "t_uint64": _inplace("uint64", 8),
        "t_uint128": _inplace("uint128", 16),
        "t_uint256": _inplace("uint256", 32),
        "t_enum(Status)1": _inplace("enum StorageGetter.Status", 1),
        "t_function_external": {"encoding": "inplace", "label": "function () external", "numberOfBytes": "24"},
        "t_string_storage": {"encoding": "bytes", "label": "string", "numberOfBytes": "32"},
        "t_string_memory_ptr": {"encoding": "bytes", "label": "string", "numberOfBytes": "32"},
        "t_bytes_storage": {"encoding": "bytes", "label": "bytes", "numberOfBytes": "32"},
        "t_mapping(t_uint256,t_uint256)": {
            "encoding": "mapping",
            "key": "t_uint256",
            "label": "mapping(uint256 => uint256)",
            "numberOfBytes": "32",
            "value": "t_uint256",
        },
        "t_mapping(t_uint256,t_mapping(t_uint256,t_uint256))": {
            "encoding": "mapping",
            "key": "t_uint256",
            "label": "mapping(uint256 => mapping(uint256 => uint256))",
            "numberOfBytes": "32",
            "value": "t_mapping(t_uint256,t_uint256)",
        },
        "t_mapping(t_bytes32,t_bool)": {
            "encoding": "mapping",
            "key": "t_bytes32",
            "label": "mapping(bytes32 => bool)",
            "numberOfBytes": "32",
            "value": "t_bool",
        },
        "t_mapping(t_address,t_bool)": {
            "encoding": "mapping",
            "key": "t_address",
            "label": "mapping(address => bool)",
            "numberOfBytes": "32",
            "value": "t_bool",
        },
        "t_mapping(t_address,t_struct(SimpleStruct)_storage)": {
            "encoding": "mapping",
            "key": "t_address",
            "label": "mapping(address => struct StorageGetter.SimpleStruct)",
            "numberOfBytes": "32",
            "value": "t_struct(SimpleStruct)_storage",
        },
        "t_mapping(t_string_memory_ptr,t_uint256)": {
            "encoding": "mapping",
            "key": "t_string_memory_ptr",
            "label": "mapping(string => uint256)",
            "numberOfBytes": "32",
            "value": "t_uint256",
        },
        "t_mapping(t_int256,t_uint256)": {
            "encoding": "mapping",
            "key": "t_int256",
            "label": "mapping(int256 => uint256)",
            "numberOfBytes": "32",
            "value": "t_uint256",
        },
        "t_array(t_uint256)dyn_storage": {
            "base": "t_uint256",
            "encoding": "dynamic_array",
            "label": "uint256[]",
            "numberOfBytes": "32",
        },
        "t_array(t_uint16)dyn_storage": {
            "base": "t_uint16",
            "encoding": "dynamic_array",
            "label": "uint16[]",
            "numberOfBytes": "32",
        },
        "t_array(t_string_storage)dyn_storage": {
            "base": "t_string_storage",
            "encoding": "dynamic_array",
            "label": "string[]",
            "numberOfBytes": "32",
        },
        "t_array(t_uint128)3_storage": {
            "base": "t_uint128",
            "encoding": "inplace",
            "label": "uint128[3]",
            "numberOfBytes": "64",
        },
        "t_struct(SimpleStruct)_storage": {
            "encoding": "inplace",
            "label": "struct StorageGetter.SimpleStruct",
            "members": [
                _member("valueA", 0, "t_uint256"),
                _member("valueB", 1, "t_bool"),
            ],
            "numberOfBytes": "64",
        },
        "t_struct(PackedStruct)_storage": {
            "encoding": "inplace",
            "label": "struct StorageGetter.PackedStruct",
            "members": [
                _member("flag", 0, "t_bool"),
                _member("owner", 0, "t_address", offset=1),
                _member("amount", 0, "t_uint64", offset=21),
                _member("total", 1, "t_uint256"),
            ],
            "numberOfBytes": "64",
        },
        "t_struct(OffsetStruct)_storage": {
            "encoding": "inplace",
            "label": "struct StorageGetter.OffsetStruct",
            "members": [
                _member("x", 0, "t_uint256"),
                _member("y", 1, "t_uint16"),
                _member("z", 1, "t_int56", offset=2),
            ],
            "numberOfBytes": "64",
        },
        "t_struct(ComplexStruct)_storage": {
            "encoding": "inplace",
            "label": "struct StorageGetter.ComplexStruct",
            "members": [
                _member("name", 0, "t_string_storage"),
                _member("values", 1, "t_array(t_uint256)dyn_storage"),
                _member("count", 2, "t_uint64"),
                _member("approvals", 3, "t_mapping(t_address,t_bool)"),
            ],
            "numberOfBytes": "128",
        },
    },
}


@pytest.fixture
def raw_layout():
    """A fresh copy of the raw ``storageLayout`` document."""
    return copy.deepcopy(RAW_LAYOUT)


@pytest.fixture
def layout(raw_layout):
    """Parsed storage layout."""
    return StorageLayout.from_dict(raw_layout)


@pytest.fixture
def storage():
    """Empty in-memory contract storage."""
    return ContractStorage()


@pytest.fixture
def address():
    return CONTRACT_ADDRESS


@pytest.fixture
def layout_file(tmp_path, raw_layout):
    """Storage layout written to disk as compiler standard-JSON output."""
    path = tmp_path / "output.json"
    path.write_text(json.dumps({
        "output": {
            "contracts": {
                "contracts/StorageGetter.sol": {
                    "StorageGetter": {"storageLayout": raw_layout},
                },
            },
        },
    }))
    return path
