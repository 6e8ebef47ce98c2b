"""
Application settings.

Merges the optional TOML config file (nawi.toml) with the environment;
environment variables win. Exposes a typed Settings object for the CLI
and the Blockfrost resolution service.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from nawi.config.env import (
    Network,
    get_blockfrost_key,
    get_blockfrost_url,
    get_config_path,
    get_request_timeout_sec,
    get_system_start_ms,
)
from nawi.core.exceptions import ConfigError


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for one run."""

    network: Network
    blockfrost_key: str
    blockfrost_url: str
    request_timeout_sec: float = 30.0
    system_start_ms: int | None = None


def _load_toml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to read configuration file {path}: {e}") from e


def get_settings(network: Network, config_path: Path | None = None) -> Settings:
    """
    Return the settings for the given network.

    Raises ConfigError when no Blockfrost key is configured, or when no API URL
    is known for the network (custom testnets need BLOCKFROST_URL or `url`).
    """
    path = config_path or get_config_path()
    file_cfg = _load_toml(path)

    key = get_blockfrost_key() or str(file_cfg.get("key") or "").strip()
    if not key:
        raise ConfigError(
            "Failed to load configuration. Ensure BLOCKFROST_KEY is set or "
            f"{path} exists with a `key` entry"
        )

    url = get_blockfrost_url(network, str(file_cfg.get("url") or "") or None)
    if not url:
        raise ConfigError(
            f"No Blockfrost URL known for network {network}. Set BLOCKFROST_URL or `url` in {path}"
        )

    timeout = get_request_timeout_sec(float(file_cfg.get("request_timeout_sec", 30.0)))
    system_start = get_system_start_ms()
    if system_start is None and "system_start_ms" in file_cfg:
        system_start = int(file_cfg["system_start_ms"])

    return Settings(
        network=network,
        blockfrost_key=key,
        blockfrost_url=url,
        request_timeout_sec=timeout,
        system_start_ms=system_start,
    )
