"""YAML config loader — reads rivalscan.yml into ScanConfig."""

import os
from pathlib import Path

import yaml

from rivalscan.schemas.config import ScanConfig

# Checked in order when the config file leaves the key blank.
_AUTOMATION_KEY_ENV = ("AUTOMATION_API_KEY", "TINYFISH_API_KEY")
_OPENAI_KEY_ENV = ("OPENAI_API_KEY",)


def _first_env(names: tuple[str, ...]) -> str:
    for name in names:
        if value := os.environ.get(name):
            return value
    return ""


def load_config(path: str | Path | None = None) -> ScanConfig:
    """Load and validate a config file, filling API keys from the environment.

    With no ``path`` the defaults are used. Raises ``FileNotFoundError`` if the
    path doesn't exist and ``pydantic.ValidationError`` if the YAML content is
    invalid.
    """
    raw: dict = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        loaded = yaml.safe_load(path.read_text())
        # An empty file loads as None
        if loaded is not None and not isinstance(loaded, dict):
            raise ValueError(f"Config file must be a YAML mapping, got {type(loaded).__name__}")
        raw = loaded or {}

    # Drop keys explicitly set to null so the model defaults apply.
    raw = {k: v for k, v in raw.items() if v is not None or k == "automation_read_timeout"}

    cfg = ScanConfig(**raw)
    if not cfg.automation_api_key:
        cfg.automation_api_key = _first_env(_AUTOMATION_KEY_ENV)
    if not cfg.openai_api_key:
        cfg.openai_api_key = _first_env(_OPENAI_KEY_ENV)
    return cfg
