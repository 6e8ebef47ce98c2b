"""
Environment variable loading and validation for nawi.

- BLOCKFROST_KEY: Blockfrost project id (BLOCKFROST_PROJECT_ID also accepted)
- BLOCKFROST_URL: API base URL override (required for testnet:<magic>)
- NAWI_CONFIG: path of the optional TOML config (default: nawi.toml)
- NAWI_REQUEST_TIMEOUT_SEC: HTTP timeout for Blockfrost requests (default: 30)
- NAWI_SYSTEM_START_MS: POSIX ms of slot 0 for custom testnets (default: 0)
- Loads .env from the working directory when available.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from nawi.core.exceptions import ConfigError

MAINNET = "mainnet"
PREPROD = "preprod"
PREVIEW = "preview"
TESTNET = "testnet"

BLOCKFROST_URLS = {
    MAINNET: "https://cardano-mainnet.blockfrost.io/api/v0",
    PREPROD: "https://cardano-preprod.blockfrost.io/api/v0",
    PREVIEW: "https://cardano-preview.blockfrost.io/api/v0",
}


@dataclass(frozen=True)
class Network:
    """A Cardano network: one of the public networks or a testnet identified by its magic."""

    name: str
    magic: int | None = None

    def __str__(self) -> str:
        if self.name == TESTNET:
            return f"{TESTNET}:{self.magic}"
        return self.name


def parse_network(raw: str) -> Network:
    """Parse mainnet | preprod | preview | testnet:<magic> (case-insensitive)."""
    s = raw.strip().lower()
    if s in (MAINNET, PREPROD, PREVIEW):
        return Network(s)
    if s.startswith(f"{TESTNET}:"):
        magic = s[len(TESTNET) + 1:]
        if magic.isdigit() and int(magic) < 2**32:
            return Network(TESTNET, int(magic))
        raise ValueError("Invalid testnet format, expected testnet:<magic>")
    raise ValueError(
        f"Unknown network: {raw}. Valid options: mainnet, preprod, preview, testnet:<magic>"
    )


def load_nawi_env() -> None:
    """Load .env from the working directory. Safe to call multiple times."""
    load_dotenv(Path.cwd() / ".env")


def get_blockfrost_key() -> str | None:
    """Return BLOCKFROST_KEY (or BLOCKFROST_PROJECT_ID) from env; None if unset."""
    load_nawi_env()
    key = (os.getenv("BLOCKFROST_KEY") or os.getenv("BLOCKFROST_PROJECT_ID") or "").strip()
    return key or None


def get_blockfrost_url(network: Network, configured: str | None = None) -> str | None:
    """
    Resolve the Blockfrost base URL.
    Order: BLOCKFROST_URL > configured (config file) > public network default.
    None for custom testnets without an override.
    """
    load_nawi_env()
    url = (os.getenv("BLOCKFROST_URL") or configured or "").strip()
    if url:
        return url.rstrip("/")
    return BLOCKFROST_URLS.get(network.name)


def get_config_path() -> Path:
    load_nawi_env()
    return Path((os.getenv("NAWI_CONFIG") or "nawi.toml").strip())


def _float_env(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


def get_request_timeout_sec(default: float = 30.0) -> float:
    load_nawi_env()
    return _float_env("NAWI_REQUEST_TIMEOUT_SEC", default)


def get_system_start_ms() -> int | None:
    """Return NAWI_SYSTEM_START_MS for custom testnets; None if unset."""
    load_nawi_env()
    raw = (os.getenv("NAWI_SYSTEM_START_MS") or "").strip()
    if not raw:
        return None
    if not raw.isdigit():
        raise ConfigError(f"NAWI_SYSTEM_START_MS must be a non-negative integer, got {raw!r}")
    return int(raw)
