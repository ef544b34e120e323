"""Config Loader - Loads equivalence policies and merges route exclusions.

Handles loading YAML policy files with environment variable substitution and
building the effective policy for a single request path.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from response_parity.models import EquivalencePolicy


class ConfigError(Exception):
    """Raised when configuration loading fails."""


# Policy settings may sit under this key (proxy config files) or at the top level
POLICY_SECTION = "comparison"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def load_policy(config_path: Path) -> EquivalencePolicy:
    """Load an equivalence policy from YAML with ${ENV_VAR} substitution."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e

    if raw_config is None:
        return EquivalencePolicy()
    if not isinstance(raw_config, dict):
        raise ConfigError("Config file must be a YAML mapping")

    return policy_from_mapping(_substitute_env_vars(raw_config))


def policy_from_mapping(data: dict[str, Any]) -> EquivalencePolicy:
    """Validate already-loaded settings into an EquivalencePolicy.

    Accepts either the policy fields directly or a mapping with the fields
    under ``comparison``.
    """
    section = data.get(POLICY_SECTION, data)
    if section is None:
        return EquivalencePolicy()
    if not isinstance(section, dict):
        raise ConfigError(f"'{POLICY_SECTION}' must be a mapping")

    try:
        return EquivalencePolicy.model_validate(section)
    except ValidationError as e:
        raise ConfigError(f"Invalid comparison policy: {e}") from e


def build_effective_policy(
    base: EquivalencePolicy,
    request_path: str | None,
) -> EquivalencePolicy:
    """Get the policy for one request, merging global and route exclusions.

    Every route prefix the request path starts with (case-insensitive)
    contributes its fields; matches are unioned, not first-match-wins.
    Duplicate names are dropped, keeping first-seen order.
    """
    merged: list[str] = list(base.exclude_fields)

    if request_path:
        for prefix, fields in base.route_exclude_fields.items():
            if path_has_prefix(request_path, prefix):
                merged.extend(fields)

    deduplicated = tuple(dict.fromkeys(merged))
    if deduplicated == base.exclude_fields:
        return base
    return base.model_copy(update={"exclude_fields": deduplicated})


def path_has_prefix(request_path: str, prefix: str) -> bool:
    """Case-insensitive "starts with" check, character by character."""
    if len(prefix) > len(request_path):
        return False
    for path_char, prefix_char in zip(request_path, prefix):
        if path_char.lower() != prefix_char.lower():
            return False
    return True


def _substitute_env_vars(data: Any) -> Any:
    """Recursively substitute ${ENV_VAR} patterns in strings within data."""
    if isinstance(data, str):
        return _substitute_string(data)
    elif isinstance(data, dict):
        return {k: _substitute_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    return data


def _substitute_string(s: str) -> str:
    """Substitute ${ENV_VAR} patterns. Raises ConfigError if env var is not set."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(f"Environment variable '{var_name}' is not set")
        return value

    return _ENV_VAR_PATTERN.sub(replacer, s)
