"""Load the ledger configuration from YAML, with optional overrides."""

import copy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .schema import Config

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    yaml_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> Config:
    """
    Load configuration from a YAML file.

    Args:
        yaml_path: Path to YAML file (defaults to the packaged defaults.yaml)
        overrides: Nested values merged over the file, section by section

    Returns:
        Validated Config

    Raises:
        ValueError: If the file is empty
        pydantic.ValidationError: If a value is out of range
    """
    path = Path(yaml_path) if yaml_path is not None else DEFAULTS_PATH
    with open(path, 'r') as f:
        data = yaml.safe_load(f)
    if not data:
        raise ValueError(f"Configuration file {path} is empty")

    if overrides:
        data = _merge(data, overrides)
    return config_from_dict(data)


def config_from_dict(data: Dict[str, Any]) -> Config:
    """Validate a plain dict (e.g. parsed JSON) into a Config."""
    return Config.from_dict(data)


def dump_config(config: Config, yaml_path: Union[str, Path]) -> None:
    """Write a config back to YAML so a run can be reproduced."""
    with open(yaml_path, 'w') as f:
        yaml.safe_dump(config.to_dict(), f, sort_keys=False)
