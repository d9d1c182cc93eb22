"""Utility functions for guildwatch."""

import os
import re

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def expand_env_vars(config: object) -> object:
    """Recursively expand environment variables in config.

    Replaces ``${VAR}`` with the value of ``VAR`` (left untouched when unset)
    and ``${VAR:-default}`` with the value of ``VAR`` or ``default``.
    """
    if isinstance(config, dict):
        return {k: expand_env_vars(v) for k, v in config.items()}
    if isinstance(config, list):
        return [expand_env_vars(item) for item in config]
    if isinstance(config, str):

        def replace_env_var(match: re.Match[str]) -> str:
            value = os.getenv(match.group(1))
            if value is not None:
                return value
            default = match.group(2)
            return default if default is not None else match.group(0)

        return _ENV_PATTERN.sub(replace_env_var, config)
    return config


def deep_merge(base: dict[str, object], override: dict[str, object]) -> dict[str, object]:
    """Deep merge ``override`` into a copy of ``base``."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)  # type: ignore[arg-type]
        else:
            result[key] = value
    return result
