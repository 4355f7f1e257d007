# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/peboot/config/loader.py

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from peboot.errors import UsageError

from .models import PebootConfig

log = logging.getLogger("peboot")

DEFAULT_CONFIG_PATH = Path("/etc/peboot/cluster.yaml")


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _find_secrets_file(config_path: Path) -> Path | None:
    """
    Locate secrets.yaml:

    1. PEBOOT_SECRETS_FILE environment variable (explicit override)
    2. secrets.yaml in the same directory as the cluster config
    """
    env = os.environ.get("PEBOOT_SECRETS_FILE")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("PEBOOT_SECRETS_FILE=%s does not exist, skipping", env)
        return None

    p = config_path.parent / "secrets.yaml"
    if p.is_file():
        return p

    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    try:
        return yaml.safe_load(expanded) or {}
    except yaml.YAMLError as e:
        raise UsageError(f"{path} is not valid YAML: {e}") from e


def resolve_config_path(path: Optional[str | Path] = None) -> Optional[Path]:
    """
    --config wins, then PEBOOT_CONFIG, then /etc/peboot/cluster.yaml if it
    exists. None means "run on built-in defaults".
    """
    if path:
        return Path(path)
    env = os.environ.get("PEBOOT_CONFIG")
    if env:
        return Path(env)
    if DEFAULT_CONFIG_PATH.is_file():
        return DEFAULT_CONFIG_PATH
    return None


def load_config(path: Optional[str | Path] = None) -> PebootConfig:
    """
    Load and validate the orchestrator config.

    Passwords and other secrets can live in a ``secrets.yaml`` next to the
    config (or at ``$PEBOOT_SECRETS_FILE``) and are deep-merged before
    validation. ``${ENV_VAR}`` placeholders are expanded in both files.
    """
    resolved = resolve_config_path(path)
    if resolved is None:
        log.debug("No config file found, using defaults")
        return PebootConfig()

    if not resolved.is_file():
        raise FileNotFoundError(f"Config file not found: {resolved}")

    data = _load_yaml(resolved)

    secrets_path = _find_secrets_file(resolved)
    if secrets_path:
        log.debug("Merging secrets from %s", secrets_path)
        _deep_merge(data, _load_yaml(secrets_path))

    try:
        return PebootConfig.model_validate(data)
    except ValidationError as e:
        raise UsageError(f"Invalid config {resolved}: {e}") from e
