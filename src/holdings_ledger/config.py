"""Configuration management for Holdings Ledger."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


def _default_base_dir() -> Path:
    """Resolve the base directory, honouring HOLDINGS_LEDGER_HOME."""
    home = os.environ.get("HOLDINGS_LEDGER_HOME", "")
    if home:
        return Path(home).expanduser()
    # __file__ is config.py in src/holdings_ledger/, so .parent.parent.parent = repo root
    return Path(__file__).parent.parent.parent


@dataclass
class Config:
    """Application configuration."""

    base_dir: Path = field(default_factory=_default_base_dir)
    data_dir: Path = field(init=False)
    artifacts_dir: Path = field(init=False)
    db_path: Path = field(init=False)
    settings_file: Path = field(init=False)

    # Analysis defaults
    default_quarters: int = 4
    unchanged_threshold_pct: float = 0.01  # |shares change %| below this is UNCHANGED
    unknown_sector: str = "Unknown"
    top_filers: int = 10

    # Storage
    max_write_retries: int = 3

    def __post_init__(self) -> None:
        self.base_dir = Path(self.base_dir)
        self.data_dir = self.base_dir / "data"
        self.artifacts_dir = self.base_dir / "artifacts"
        self.db_path = self.data_dir / "holdings.db"
        self.settings_file = self.data_dir / "settings.yaml"

        # Ensure directories exist
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.artifacts_dir.mkdir(parents=True, exist_ok=True)


OVERRIDABLE_SETTINGS = ("default_quarters", "unchanged_threshold_pct", "unknown_sector", "top_filers", "max_write_retries")


def load_settings(config: Config) -> Config:
    """Apply overrides from the YAML settings file, if present."""
    if not config.settings_file.exists():
        return config

    with open(config.settings_file) as f:
        data = yaml.safe_load(f) or {}

    for key, value in data.items():
        apply_setting(config, key, value)
    return config


def apply_setting(config: Config, key: str, value) -> None:
    """Set one overridable setting, cast to the type of its default."""
    if key not in OVERRIDABLE_SETTINGS:
        raise ValueError(f"Unknown setting: {key}")
    current = getattr(config, key)
    setattr(config, key, type(current)(value))


def save_settings(config: Config) -> None:
    """Write the overridable settings to the YAML settings file."""
    data = {key: getattr(config, key) for key in OVERRIDABLE_SETTINGS}
    with open(config.settings_file, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def get_config(base_dir: Path | None = None) -> Config:
    """Get the default configuration."""
    config = Config(base_dir=base_dir) if base_dir else Config()
    return load_settings(config)
