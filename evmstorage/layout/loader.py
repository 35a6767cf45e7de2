"""
Storage Layout Provider

Locates the compiler's ``storageLayout`` section in build output and turns it
into a ``StorageLayout``. Accepted inputs:

- a bare storage layout object (``{"storage": [...], "types": {...}}``)
- an artifact carrying a top-level ``storageLayout`` key
- standard-JSON compiler output or a build-info file
  (``output.contracts[source][name].storageLayout``)

``LayoutCache`` is an explicit, caller-owned cache over a build-info
directory; there is no process-wide layout state.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Union

from ..exceptions import ConfigurationError, MissingStorageLayoutError
from ..logger import get_logger
from .types import StorageLayout

logger = get_logger(__name__)

MISSING_LAYOUT_HINT = (
    "Did you forget to add 'storageLayout' to the compiler's outputSelection?"
)


def _iter_contracts(build_output: Mapping[str, Any]) -> Iterator[Tuple[str, str, Mapping[str, Any]]]:
    """Yield (source_name, contract_name, contract_output) from compiler output."""
    output = build_output.get("output", build_output)
    contracts = output.get("contracts") or {}
    for source_name, by_name in contracts.items():
        for contract_name, contract_output in (by_name or {}).items():
            yield source_name, contract_name, contract_output


def find_storage_layout(
    build_output: Mapping[str, Any],
    contract_name: str,
    source_name: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Extract the raw ``storageLayout`` of one contract from compiler output.

    Args:
        build_output: Standard-JSON output or build-info document
        contract_name: Contract name, optionally qualified as ``source:Name``
        source_name: Source unit to restrict the search to

    Returns:
        The raw storage layout object

    Raises:
        ConfigurationError: If the contract or its layout section is absent
    """
    if ":" in contract_name and source_name is None:
        source_name, contract_name = contract_name.rsplit(":", 1)

    for source, name, contract_output in _iter_contracts(build_output):
        if name != contract_name or (source_name and source != source_name):
            continue
        if "storageLayout" not in contract_output:
            raise MissingStorageLayoutError(
                f"Storage layout for {contract_name} not found. {MISSING_LAYOUT_HINT}"
            )
        return contract_output["storageLayout"]

    qualified = f"{source_name}:{contract_name}" if source_name else contract_name
    raise ConfigurationError(f"Failed to find contract {qualified}")


def load_layout(
    source: Union[str, Path, Mapping[str, Any]],
    contract_name: Optional[str] = None,
) -> StorageLayout:
    """
    Load a storage layout from a JSON file or an already parsed document.

    Args:
        source: Path to a JSON file, or a parsed JSON document
        contract_name: Required when *source* is compiler output with
            several contracts

    Returns:
        Parsed StorageLayout
    """
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.exists():
            raise ConfigurationError(f"Layout file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
    else:
        document = source

    if "storage" in document:
        raw = document
    elif "storageLayout" in document:
        raw = document["storageLayout"]
    elif contract_name:
        raw = find_storage_layout(document, contract_name)
    else:
        raise ConfigurationError(
            f"No storage layout in document and no contract name given. {MISSING_LAYOUT_HINT}"
        )

    layout = StorageLayout.from_dict(raw)
    logger.debug("Loaded storage layout: %s", layout)
    return layout


class LayoutCache:
    """
    Caller-owned cache of storage layouts keyed by contract identity.

    Scans a build-info directory (``*.json`` compiler build-info files) on
    first miss and keeps parsed layouts for the lifetime of the cache.
    """

    def __init__(self, build_info_dir: Union[str, Path]):
        self.build_info_dir = Path(build_info_dir)
        self._layouts: Dict[str, StorageLayout] = {}
        self._lock = threading.Lock()

    def get(self, contract_name: str, source_name: Optional[str] = None) -> StorageLayout:
        """
        Return the layout for *contract_name*, loading it on first use.

        Raises:
            ConfigurationError: If no build-info file contains the contract
        """
        identity = f"{source_name}:{contract_name}" if source_name else contract_name
        with self._lock:
            cached = self._layouts.get(identity)
            if cached is not None:
                return cached

        layout = self._load(contract_name, source_name)

        with self._lock:
            self._layouts[identity] = layout
        logger.info("Cached storage layout for %s (%d variables)", identity, len(layout))
        return layout

    def put(self, contract_name: str, layout: StorageLayout) -> None:
        with self._lock:
            self._layouts[contract_name] = layout

    def clear(self) -> None:
        with self._lock:
            self._layouts.clear()

    def __contains__(self, contract_name: str) -> bool:
        return contract_name in self._layouts

    def _load(self, contract_name: str, source_name: Optional[str]) -> StorageLayout:
        if not self.build_info_dir.is_dir():
            raise ConfigurationError(f"Build info directory not found: {self.build_info_dir}")

        last_error: Optional[ConfigurationError] = None
        for path in sorted(self.build_info_dir.glob("*.json")):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    document = json.load(f)
            except json.JSONDecodeError as e:
                logger.warning("Skipping unreadable build info %s: %s", path.name, e)
                continue
            try:
                raw = find_storage_layout(document, contract_name, source_name)
            except MissingStorageLayoutError:
                raise
            except ConfigurationError as e:
                last_error = e
                continue
            return StorageLayout.from_dict(raw)

        raise last_error or ConfigurationError(f"Failed to find contract {contract_name}")
