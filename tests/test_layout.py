"""
Storage Layout Tests

Parsing of the compiler's storageLayout output and the layout provider.
"""

import json
import logging

import pytest

from evmstorage.exceptions import (
    ConfigurationError,
    InvalidLayoutError,
    MissingStorageLayoutError,
    UnknownTypeError,
    UnsupportedEncodingError,
    VariableNotFoundError,
)
from evmstorage.layout.loader import LayoutCache, find_storage_layout, load_layout
from evmstorage.layout.types import StorageLayout, TypeKind


class TestTypeParsing:
    """Test that type labels are parsed once into structured kinds."""

    def test_scalar_kinds(self, layout):
        assert layout.resolve("t_uint256").kind is TypeKind.UINT
        assert layout.resolve("t_uint256").bits == 256
        assert layout.resolve("t_uint16").bits == 16
        assert layout.resolve("t_int56").kind is TypeKind.INT
        assert layout.resolve("t_int56").bits == 56
        assert layout.resolve("t_bool").kind is TypeKind.BOOL
        assert layout.resolve("t_address").kind is TypeKind.ADDRESS
        assert layout.resolve("t_bytes32").kind is TypeKind.FIXED_BYTES
        assert layout.resolve("t_enum(Status)1").kind is TypeKind.ENUM

    def test_composite_kinds(self, layout):
        assert layout.resolve("t_struct(SimpleStruct)_storage").kind is TypeKind.STRUCT
        assert layout.resolve("t_mapping(t_uint256,t_uint256)").kind is TypeKind.MAPPING
        assert layout.resolve("t_array(t_uint256)dyn_storage").kind is TypeKind.DYNAMIC_ARRAY
        assert layout.resolve("t_string_storage").kind is TypeKind.STRING
        assert layout.resolve("t_bytes_storage").kind is TypeKind.BYTES

    def test_static_array(self, layout):
        """Fixed-size arrays are inplace types with a base."""
        fixed = layout.resolve("t_array(t_uint128)3_storage")
        assert fixed.kind is TypeKind.STATIC_ARRAY
        assert fixed.array_length == 3
        assert fixed.base_type.label == "uint128"

    def test_contract_label_is_address(self, raw_layout):
        raw_layout["types"]["t_contract(Token)12"] = {
            "encoding": "inplace", "label": "contract Token", "numberOfBytes": "20",
        }
        layout = StorageLayout.from_dict(raw_layout)
        assert layout.resolve("t_contract(Token)12").kind is TypeKind.ADDRESS

    def test_unsupported_kind(self, layout):
        callback = layout.variable_type("_callback")
        assert callback.kind is TypeKind.UNSUPPORTED
        with pytest.raises(UnsupportedEncodingError):
            callback.require_supported()

    def test_references_resolve_lazily(self, layout):
        """Unknown type-ids only fail when dereferenced."""
        with pytest.raises(UnknownTypeError):
            layout.variable_type("_broken")

        mapping = layout.resolve("t_mapping(t_uint256,t_uint256)")
        assert mapping.key_type is layout.resolve("t_uint256")
        assert mapping.value_type is layout.resolve("t_uint256")

    def test_packable_elements(self, layout):
        assert layout.resolve("t_uint16").is_packable_element
        assert layout.resolve("t_uint128").is_packable_element
        assert not layout.resolve("t_uint256").is_packable_element
        assert not layout.resolve("t_address").is_packable_element
        assert layout.resolve("t_struct(SimpleStruct)_storage").slot_count == 2


class TestStorageLayout:
    """Test variable lookup and validation."""

    def test_find_variable(self, layout):
        entry = layout.find_variable("_address")
        assert entry.slot == 1
        assert entry.offset == 1
        assert entry.type_id == "t_address"
        assert "_address" in layout

    def test_variable_not_found(self, layout):
        with pytest.raises(VariableNotFoundError, match="Variable name not found: _nope"):
            layout.find_variable("_nope")

    def test_null_types(self):
        """Contracts without state carry types: null."""
        layout = StorageLayout.from_dict({"storage": [], "types": None})
        assert len(layout) == 0

    def test_missing_storage(self):
        with pytest.raises(InvalidLayoutError):
            StorageLayout.from_dict({"types": {}})

    def test_offset_out_of_range(self, raw_layout):
        raw_layout["storage"][0]["offset"] = 32
        with pytest.raises(InvalidLayoutError):
            StorageLayout.from_dict(raw_layout)


class TestLayoutProvider:
    """Test locating storage layouts in compiler output."""

    def _output(self, raw_layout, with_layout=True):
        contract = {"storageLayout": raw_layout} if with_layout else {"abi": []}
        return {"output": {"contracts": {"contracts/StorageGetter.sol": {"StorageGetter": contract}}}}

    def test_find_in_standard_json(self, raw_layout):
        found = find_storage_layout(self._output(raw_layout), "StorageGetter")
        assert found is raw_layout

    def test_find_qualified_name(self, raw_layout):
        output = self._output(raw_layout)
        assert find_storage_layout(output, "contracts/StorageGetter.sol:StorageGetter") is raw_layout
        with pytest.raises(ConfigurationError):
            find_storage_layout(output, "other.sol:StorageGetter")

    def test_missing_layout_section(self, raw_layout):
        with pytest.raises(MissingStorageLayoutError, match="outputSelection"):
            find_storage_layout(self._output(raw_layout, with_layout=False), "StorageGetter")

    def test_missing_contract(self, raw_layout):
        with pytest.raises(ConfigurationError, match="Failed to find contract Nope"):
            find_storage_layout(self._output(raw_layout), "Nope")

    def test_load_bare_layout(self, raw_layout):
        assert len(load_layout(raw_layout)) == len(raw_layout["storage"])

    def test_load_artifact(self, raw_layout):
        layout = load_layout({"contractName": "StorageGetter", "storageLayout": raw_layout})
        assert "_uint256" in layout

    def test_load_from_file(self, layout_file):
        layout = load_layout(str(layout_file), "StorageGetter")
        assert layout.find_variable("_string").slot == 7

    def test_load_requires_contract_name(self, layout_file):
        with pytest.raises(ConfigurationError):
            load_layout(layout_file)

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_layout(tmp_path / "missing.json")


class TestLayoutCache:
    """Test the caller-owned layout cache."""

    def test_loads_from_build_info(self, tmp_path, layout_file):
        build_info = tmp_path / "build-info"
        build_info.mkdir()
        (build_info / "broken.json").write_text("{not json")
        (build_info / "abc123.json").write_text(layout_file.read_text())

        cache = LayoutCache(build_info)
        layout = cache.get("StorageGetter")
        assert "_uint256" in layout
        assert "StorageGetter" in cache
        assert cache.get("StorageGetter") is layout

        cache.clear()
        assert "StorageGetter" not in cache

    def test_unknown_contract(self, tmp_path, layout_file):
        build_info = tmp_path / "build-info"
        build_info.mkdir()
        (build_info / "abc123.json").write_text(layout_file.read_text())

        with pytest.raises(ConfigurationError):
            LayoutCache(build_info).get("Nope")

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigurationError):
            LayoutCache(tmp_path / "nope").get("StorageGetter")

    def test_put(self, layout, tmp_path):
        cache = LayoutCache(tmp_path)
        cache.put("StorageGetter", layout)
        assert cache.get("StorageGetter") is layout

    def test_separate_caches_do_not_share_state(self, layout, tmp_path):
        first = LayoutCache(tmp_path)
        second = LayoutCache(tmp_path)
        first.put("StorageGetter", layout)
        assert "StorageGetter" not in second

    def test_skips_malformed_build_info_with_warning(self, tmp_path, layout_file, caplog):
        build_info = tmp_path / "build-info"
        build_info.mkdir()
        (build_info / "aaa.json").write_text("{not json")
        (build_info / "bbb.json").write_text(layout_file.read_text())

        with caplog.at_level(logging.WARNING, logger="evmstorage"):
            layout = LayoutCache(build_info).get("StorageGetter")
        assert layout.find_variable("_string").slot == 7
        assert any("aaa.json" in r.getMessage() for r in caplog.records)

    def test_qualified_identity(self, tmp_path, layout_file):
        build_info = tmp_path / "build-info"
        build_info.mkdir()
        (build_info / "abc123.json").write_text(layout_file.read_text())

        cache = LayoutCache(build_info)
        qualified = "contracts/StorageGetter.sol:StorageGetter"
        layout = cache.get(qualified)
        assert qualified in cache
        assert "StorageGetter" not in cache
        assert cache.get("StorageGetter", "contracts/StorageGetter.sol") is layout
        with pytest.raises(ConfigurationError):
            cache.get("other.sol:StorageGetter")

    def test_missing_layout_section_raised(self, tmp_path):
        build_info = tmp_path / "build-info"
        build_info.mkdir()
        output = {"output": {"contracts": {"a.sol": {"StorageGetter": {"abi": []}}}}}
        (build_info / "abc123.json").write_text(json.dumps(output))

        with pytest.raises(MissingStorageLayoutError, match="outputSelection"):
            LayoutCache(build_info).get("StorageGetter")
