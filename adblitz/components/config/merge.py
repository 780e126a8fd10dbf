from typing import Any, Dict


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries where ``override`` has precedence.

    Nested dicts are deep-merged; any other value replaces the base. ``None``
    in ``override`` means "not given" and keeps the base value.
    """
    merged = base.copy()
    for key, value in override.items():
        if value is None:
            continue
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value
    return merged
