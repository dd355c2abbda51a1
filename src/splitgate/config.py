# Copyright (c) Syntropy Systems
"""Configuration management for splitgate."""
from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import cast

import yaml

CONFIG_DIR_NAME = ".splitgate"
CONFIG_FILE_NAME = "config.yaml"


@dataclass
class SplitgateConfig:
    """Configuration for splitgate."""

    # Base URL of the search engine
    server_url: str = "http://localhost:7700"

    # Credentials sent as x-algolia-* headers
    api_key: str | None = None
    application_id: str | None = None

    # HTTP request timeout (seconds)
    timeout: float = 30.0

    # Results refresh interval while watching or deciding (seconds)
    poll_interval: float = 30.0

    def to_dict(self) -> dict[str, object]:
        """Convert to a YAML-friendly dictionary, excluding unset values."""
        return {k: v for k, v in asdict(self).items() if v is not None}


def find_splitgate_dir(start_path: Path | None = None) -> Path | None:
    """Find the nearest .splitgate directory by walking up from start_path.

    Returns None if no .splitgate directory is found.
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()

    while current != current.parent:
        candidate = current / CONFIG_DIR_NAME
        if candidate.is_dir():
            return candidate
        current = current.parent

    # Check root
    candidate = current / CONFIG_DIR_NAME
    if candidate.is_dir():
        return candidate

    return None


def get_global_config_dir() -> Path:
    """Get the global splitgate config directory (~/.splitgate)."""
    return Path.home() / CONFIG_DIR_NAME


def _apply_file(config: SplitgateConfig, data: dict[str, object]) -> None:
    server_url = data.get("server_url")
    if isinstance(server_url, str) and server_url:
        config.server_url = server_url
    api_key = data.get("api_key")
    if isinstance(api_key, str) and api_key:
        config.api_key = api_key
    application_id = data.get("application_id")
    if isinstance(application_id, str) and application_id:
        config.application_id = application_id
    timeout = data.get("timeout")
    if isinstance(timeout, (int, float)) and timeout > 0:
        config.timeout = float(timeout)
    poll_interval = data.get("poll_interval")
    if isinstance(poll_interval, (int, float)) and poll_interval > 0:
        config.poll_interval = float(poll_interval)


def _apply_env(config: SplitgateConfig) -> None:
    server_url = os.environ.get("SPLITGATE_SERVER_URL")
    if server_url:
        config.server_url = server_url
    api_key = os.environ.get("SPLITGATE_API_KEY")
    if api_key:
        config.api_key = api_key
    application_id = os.environ.get("SPLITGATE_APPLICATION_ID")
    if application_id:
        config.application_id = application_id


def load_config(config_dir: Path | None = None) -> SplitgateConfig:
    """Load configuration from .splitgate/config.yaml or defaults.

    Looks for config in:
    1. Provided config_dir
    2. Nearest .splitgate directory walking up
    3. ~/.splitgate/config.yaml
    4. Defaults

    SPLITGATE_SERVER_URL, SPLITGATE_API_KEY and SPLITGATE_APPLICATION_ID
    override whatever the file says.
    """
    config = SplitgateConfig()

    config_path = None

    if config_dir is not None:
        config_path = config_dir / CONFIG_FILE_NAME
    else:
        found_dir = find_splitgate_dir()
        if found_dir is not None:
            config_path = found_dir / CONFIG_FILE_NAME
        else:
            global_config = get_global_config_dir() / CONFIG_FILE_NAME
            if global_config.exists():
                config_path = global_config

    if config_path is not None and config_path.exists():
        with config_path.open() as f:
            data = cast("dict[str, object]", yaml.safe_load(f) or {})
        _apply_file(config, data)

    _apply_env(config)
    return config


def write_config(config_dir: Path, config: SplitgateConfig) -> Path:
    """Write a config file into config_dir, creating the directory."""
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / CONFIG_FILE_NAME
    with config_path.open("w") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False)
    return config_path
