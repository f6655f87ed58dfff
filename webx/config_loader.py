"""Config Loader - Loads named base-request profiles from YAML.

A profile describes the persistent configuration of one base request (URL,
headers, query arguments, credentials, timeout, debug). String values may
reference environment variables as ${ENV_VAR} so secrets stay out of the file.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from webx.models import ProfileConfig, RuntimeConfig
from webx.options import Option, api_key, auth, debug, replace_arg, replace_header, timeout
from webx.request import Request

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


class ConfigError(Exception):
    """Raised when configuration loading fails."""


def load_runtime_config(config_path: Path) -> RuntimeConfig:
    """Load runtime configuration from YAML with ${ENV_VAR} substitution."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError("Config file must be a YAML mapping")

    raw_config = _substitute_env_vars(raw_config)

    try:
        return RuntimeConfig.model_validate(raw_config)
    except ValidationError as e:
        raise ConfigError(f"Invalid config structure: {e}") from e


def get_profile(config: RuntimeConfig, name: str) -> ProfileConfig:
    """Return the named profile or raise ConfigError listing the known ones."""
    if name not in config.profiles:
        available = ", ".join(config.profiles.keys()) or "(none)"
        raise ConfigError(f"Profile '{name}' not found in config. Available: {available}")
    return config.profiles[name]


def profile_options(profile: ProfileConfig) -> list[Option]:
    """Translate a profile into base-request options.

    Headers and args from a profile are replacing values; calls can still
    append to them or replace them.
    """
    options: list[Option] = []
    for name, value in profile.headers.items():
        options.append(replace_header(name, value))
    for name, value in profile.args.items():
        options.append(replace_arg(name, value))
    if profile.api_key:
        options.append(api_key(profile.api_key))
    if profile.auth is not None:
        options.append(auth(profile.auth.username, profile.auth.password))
    if profile.timeout is not None:
        options.append(timeout(profile.timeout))
    if profile.debug:
        options.append(debug())
    return options


def request_from_profile(profile: ProfileConfig, *extra: Option) -> Request:
    """Build a base request from a profile; extra options apply after it."""
    return Request(profile.base_url, *profile_options(profile), *extra)


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
