"""
evmstorage TOML Configuration Loader

Loads the optional evmstorage.toml with environment variable overrides.

Environment variable mapping:
    [logging] level              -> EVMSTORAGE_LOG_LEVEL
    [rpc] url                    -> EVMSTORAGE_RPC_URL
    [rpc] timeout                -> EVMSTORAGE_RPC_TIMEOUT
    [rpc] set_storage_method     -> EVMSTORAGE_SET_STORAGE_METHOD
    [layout] build_info_dir      -> EVMSTORAGE_BUILD_INFO_DIR
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    try:
        import tomli  # type: ignore[no-redef]
    except ImportError:
        tomli = None  # type: ignore[assignment]

from ..constants import DEFAULT_RPC_URL, DEFAULT_SET_STORAGE_METHOD, SET_STORAGE_METHODS
from ..exceptions import ConfigurationError
from ..logger import get_logger

logger = get_logger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = "INFO"
    console: bool = True
    file: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            console=data.get("console", True),
            file=data.get("file", ""),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("EVMSTORAGE_LOG_LEVEL"):
            self.level = v.upper()


@dataclass
class RpcConfig:
    """[rpc] section."""
    url: str = DEFAULT_RPC_URL
    timeout: float = 10.0
    block: str = "latest"
    set_storage_method: str = DEFAULT_SET_STORAGE_METHOD

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RpcConfig":
        return cls(
            url=data.get("url", DEFAULT_RPC_URL),
            timeout=float(data.get("timeout", 10.0)),
            block=data.get("block", "latest"),
            set_storage_method=data.get("set_storage_method", DEFAULT_SET_STORAGE_METHOD),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("EVMSTORAGE_RPC_URL"):
            self.url = v
        if v := os.environ.get("EVMSTORAGE_RPC_TIMEOUT"):
            try:
                self.timeout = float(v)
            except ValueError as e:
                raise ConfigurationError(f"Invalid EVMSTORAGE_RPC_TIMEOUT: {v}") from e
        if v := os.environ.get("EVMSTORAGE_SET_STORAGE_METHOD"):
            self.set_storage_method = v


@dataclass
class LayoutConfig:
    """[layout] section."""
    build_info_dir: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LayoutConfig":
        return cls(build_info_dir=data.get("build_info_dir", ""))

    def apply_env(self) -> None:
        if v := os.environ.get("EVMSTORAGE_BUILD_INFO_DIR"):
            self.build_info_dir = v


@dataclass
class CodecConfig:
    """Top-level evmstorage configuration."""
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    rpc: RpcConfig = field(default_factory=RpcConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CodecConfig":
        return cls(
            logging=LoggingConfig.from_dict(data.get("logging", {})),
            rpc=RpcConfig.from_dict(data.get("rpc", {})),
            layout=LayoutConfig.from_dict(data.get("layout", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "CodecConfig":
        """
        Load configuration from a TOML file.

        A missing file is not an error: defaults plus environment overrides
        are returned instead.
        """
        path = Path(config_path)
        if not path.exists():
            logger.debug("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        if tomli is None:
            raise ConfigurationError(
                "tomli is required for TOML config loading. "
                "Install it: pip install tomli"
            )

        try:
            with open(path, "rb") as f:
                raw = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.logging.apply_env()
        self.rpc.apply_env()
        self.layout.apply_env()

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        if self.logging.level not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        if self.rpc.timeout <= 0:
            raise ConfigurationError("rpc timeout must be > 0")
        if self.rpc.set_storage_method not in SET_STORAGE_METHODS:
            raise ConfigurationError(
                f"Unsupported set_storage_method: {self.rpc.set_storage_method} "
                f"(expected one of {', '.join(SET_STORAGE_METHODS)})"
            )
        if not self.rpc.url.startswith(("http://", "https://")):
            raise ConfigurationError(f"rpc url must be http(s): {self.rpc.url}")
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "logging": {
                "level": self.logging.level,
                "console": self.logging.console,
                "file": self.logging.file,
            },
            "rpc": {
                "url": self.rpc.url,
                "timeout": self.rpc.timeout,
                "block": self.rpc.block,
                "set_storage_method": self.rpc.set_storage_method,
            },
            "layout": {
                "build_info_dir": self.layout.build_info_dir,
            },
        }


def load_config(path: Optional[str] = None) -> CodecConfig:
    """
    Load evmstorage configuration.

    Resolution order:
        1. Explicit *path* argument
        2. EVMSTORAGE_CONFIG env var
        3. ./evmstorage.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("EVMSTORAGE_CONFIG", "evmstorage.toml")

    return CodecConfig.from_file(path)
