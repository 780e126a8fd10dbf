from pathlib import Path
from typing import Any, Dict

import yaml
from yaml import YAMLError

from ...exceptions import ConfigurationError

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "templates" / "config.yaml"


def load_config(config_path: str) -> Dict[str, Any]:
    """Load a YAML configuration file with friendly errors.

    Parameters
    ----------
    config_path: str
        Path to a YAML file (UTF-8).

    Returns
    -------
    Dict[str, Any]
        The parsed mapping; an empty file yields ``{}``.

    Raises
    ------
    ConfigurationError
        When the file is missing, the YAML syntax is invalid, or the top
        level is not a mapping.
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except YAMLError as e:
        mark = getattr(e, "mark", None)
        where = f" (line {mark.line + 1}, column {mark.column + 1})" if mark else ""
        raise ConfigurationError(f"Invalid YAML syntax in {config_path}{where}: {e}")
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file {config_path} must contain a mapping at the top level."
        )
    return data


def load_default_config() -> Dict[str, Any]:
    return load_config(str(DEFAULT_CONFIG_PATH))
