"""Configuration loading, merging and validation."""

from .io import load_config, load_default_config
from .merge import merge_configs
from .validate import validate_config

__all__ = ["load_config", "load_default_config", "merge_configs", "validate_config"]
