"""
Configuration management for nawi.

Loads settings from environment variables (.env supported) and the optional
nawi.toml file. Exposes network parsing and a single Settings object per run.
"""

from nawi.config.env import Network, parse_network  # noqa: F401
from nawi.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Network", "Settings", "get_settings", "parse_network"]
