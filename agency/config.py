"""Centralized config loading — read once at import time.

The YAML next to this module holds the defaults. AGENCY_CONFIG points at an
alternative file; AGENCY_PROVIDER switches the chat model provider without
editing any file.
"""

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

# Load .env from project root (parent of agency/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

CONFIG_PATH = Path(os.environ.get("AGENCY_CONFIG") or Path(__file__).resolve().parent / "config.yaml")


def load_config(path: Path = CONFIG_PATH) -> dict:
    """Read a config file and apply environment overrides."""
    config = yaml.safe_load(Path(path).read_text()) or {}
    provider = os.environ.get("AGENCY_PROVIDER")
    if provider:
        if provider not in config.get("models", {}):
            raise ValueError(f"AGENCY_PROVIDER={provider!r} has no models configured in {path}")
        config["provider"] = provider
    return config


_config = load_config()


def get_config() -> dict:
    """Return the loaded config dictionary."""
    return _config
