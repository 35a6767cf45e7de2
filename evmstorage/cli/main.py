"""
evmstorage CLI

Command-line interface for encoding and inspecting contract storage.

Usage:
    evmstorage slots <layout> <variables_json> [--contract NAME]
    evmstorage read <layout> <address> <name> [--key KEY ...]
    evmstorage write <layout> <address> <variables_json>

<layout> is a storage layout JSON, a compiler artifact carrying
``storageLayout``, or standard-JSON/build-info output (with --contract).
When [layout] build_info_dir is configured, <layout> may instead be a
contract name (Name or source:Name) looked up in that directory.
<variables_json> is a JSON object of variable name to value, or @file.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click

from ..config import CodecConfig, load_config
from ..exceptions import EVMStorageException
from ..layout.loader import LayoutCache, load_layout
from ..layout.types import StorageLayout
from ..logger import configure_logging
from ..logic import EditableStorage, ReadableStorage
from ..storage.backends import JsonRpcStorage
from ..storage.writer import compute_storage_slots


def parse_variables(raw: str) -> Dict[str, Any]:
    """Parse a JSON object given inline or as @file."""
    if raw.startswith("@"):
        path = Path(raw[1:])
        if not path.exists():
            raise click.ClickException(f"File not found: {path}")
        raw = path.read_text(encoding="utf-8")
    try:
        variables = json.loads(raw)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON: {e}")
    if not isinstance(variables, dict):
        raise click.ClickException("Variables must be a JSON object of name to value")
    return variables


def open_layout(config: CodecConfig, source: str, contract: Optional[str]) -> StorageLayout:
    """
    Load the layout from a file, or by contract name from the configured
    build-info directory when no such file exists.
    """
    try:
        if config.layout.build_info_dir and not Path(source).exists():
            return LayoutCache(config.layout.build_info_dir).get(contract or source)
        return load_layout(source, contract)
    except EVMStorageException as e:
        raise click.ClickException(str(e))


def rpc_storage(config: CodecConfig, rpc_url: Optional[str]) -> JsonRpcStorage:
    return JsonRpcStorage(
        url=rpc_url or config.rpc.url,
        timeout=config.rpc.timeout,
        block=config.rpc.block,
        set_storage_method=config.rpc.set_storage_method,
    )


def to_json(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


@click.group()
@click.version_option(version="1.0.0", prog_name="evmstorage")
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(),
    default=None,
    help="Path to evmstorage.toml (default: $EVMSTORAGE_CONFIG or ./evmstorage.toml)"
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override the configured log level"
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], log_level: Optional[str]):
    """evmstorage Command Line Interface

    Encode values into contract storage slots and read them back.
    """
    try:
        config = load_config(config_path)
        if log_level:
            config.logging.level = log_level.upper()
        config.validate()
    except EVMStorageException as e:
        raise click.ClickException(str(e))

    configure_logging(
        log_level=config.logging.level,
        log_file=Path(config.logging.file) if config.logging.file else None,
        console_output=config.logging.console,
    )
    ctx.obj = config


@cli.command("slots")
@click.argument("layout_source", metavar="LAYOUT")
@click.argument("variables")
@click.option("--contract", default=None, help="Contract name (source:Name) in compiler output")
@click.pass_obj
def slots_cmd(config: CodecConfig, layout_source: str, variables: str, contract: Optional[str]):
    """Print the packed storage slots for a set of values.

    Examples:

        evmstorage slots layout.json '{"_uint256": 1, "_bool": true}'
    """
    layout = open_layout(config, layout_source, contract)
    try:
        slots = compute_storage_slots(layout, parse_variables(variables))
    except EVMStorageException as e:
        raise click.ClickException(str(e))

    click.echo(to_json([{"key": s.key, "val": s.val, "type": s.type} for s in slots]))


@cli.command("read")
@click.argument("layout_source", metavar="LAYOUT")
@click.argument("address")
@click.argument("name")
@click.option("--key", "-k", "keys", multiple=True, help="Mapping key (repeat for nested mappings)")
@click.option("--contract", default=None, help="Contract name (source:Name) in compiler output")
@click.option("--rpc-url", default=None, help="Node JSON-RPC URL")
@click.pass_obj
def read_cmd(
    config: CodecConfig,
    layout_source: str,
    address: str,
    name: str,
    keys: Tuple[str, ...],
    contract: Optional[str],
    rpc_url: Optional[str],
):
    """Read and decode a state variable from a node.

    Examples:

        evmstorage read layout.json 0x5FbDB2315678afecb367f032d93F642f64180aa3 _uint256Map -k 1234
    """
    layout = open_layout(config, layout_source, contract)

    async def run():
        async with rpc_storage(config, rpc_url) as storage:
            return await ReadableStorage(layout, storage, address).get_variable(name, list(keys) or None)

    try:
        value = asyncio.run(run())
    except EVMStorageException as e:
        raise click.ClickException(str(e))

    click.echo(to_json(value))


@cli.command("write")
@click.argument("layout_source", metavar="LAYOUT")
@click.argument("address")
@click.argument("variables")
@click.option("--contract", default=None, help="Contract name (source:Name) in compiler output")
@click.option("--rpc-url", default=None, help="Node JSON-RPC URL")
@click.pass_obj
def write_cmd(
    config: CodecConfig,
    layout_source: str,
    address: str,
    variables: str,
    contract: Optional[str],
    rpc_url: Optional[str],
):
    """Write state variables into a development node's storage.

    Examples:

        evmstorage write layout.json 0x5FbDB2315678afecb367f032d93F642f64180aa3 '{"_uint256": 7}'
    """
    layout = open_layout(config, layout_source, contract)
    values = parse_variables(variables)

    async def run():
        async with rpc_storage(config, rpc_url) as storage:
            return await EditableStorage(layout, storage, address).set_variables(values)

    try:
        slots = asyncio.run(run())
    except EVMStorageException as e:
        raise click.ClickException(str(e))

    click.echo(click.style(f"✓ Wrote {len(slots)} slot(s)", fg="green"))


def main():
    cli()


if __name__ == "__main__":
    main()
