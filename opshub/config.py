#!/usr/bin/env python3

import os
import json
import tomllib
from pathlib import Path

import logging
import sys

import toml
import yaml

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr) # Default to stderr
    ]
)
logger = logging.getLogger("opshub")

CONFIG_FILENAMES = ['config.toml', 'config.json', 'config.yaml', 'config.yml']


def get_config_path():
    """Get the path to the settings file.

    Checks in order:
    1. OPSHUB_CONFIG environment variable
    2. ~/.opshub/ directory
    """
    # Check for environment variable override
    if 'OPSHUB_CONFIG' in os.environ:
        path = Path(os.environ['OPSHUB_CONFIG'])
        if path.exists():
            return path

    opshub_dir = Path.home() / '.opshub'
    for filename in CONFIG_FILENAMES:
        path = opshub_dir / filename
        if path.exists() and path.stat().st_size > 0:
            return path

    # If no file exists, return default path for saving
    return opshub_dir / 'config.toml'


def _read_settings_file(config_path: Path) -> dict:
    suffix = config_path.suffix.lower()
    if suffix == '.toml':
        with open(config_path, 'rb') as f:
            return tomllib.load(f)
    if suffix in ('.yaml', '.yml'):
        with open(config_path, 'r') as f:
            return yaml.safe_load(f) or {}
    with open(config_path, 'r') as f:
        return json.load(f)


def load_config():
    """Load settings: defaults, then the settings file, then OPSHUB_* env vars."""
    config_path = get_config_path()

    # Start with default config
    config = get_default_config()

    # Load from file if it exists
    if config_path.exists():
        try:
            file_config = _read_settings_file(config_path)
            config = merge_configs(config, file_config)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Error loading config from {config_path}: {e}")

    # Apply environment variable overrides
    config = apply_env_overrides(config)

    configure_logging(config)
    return config


def save_config(config, config_path=None):
    """Save settings to file, in the format implied by its suffix."""
    config_path = Path(config_path) if config_path else get_config_path()

    # Create directory if it doesn't exist
    config_path.parent.mkdir(parents=True, exist_ok=True)

    suffix = config_path.suffix.lower()
    if suffix == '.toml':
        with open(config_path, 'w') as f:
            toml.dump(config, f)
    elif suffix in ('.yaml', '.yml'):
        with open(config_path, 'w') as f:
            yaml.safe_dump(config, f, default_flow_style=False)
    else:
        with open(config_path, 'w') as f:
            json.dump(config, f, indent=2)

    logger.info(f"Configuration saved to {config_path}")
    return config_path


def get_default_config():
    """Get default configuration."""
    return {
        "general": {
            # The ops repository holding the registries ("" = current directory)
            "ops_dir": "",
            # Directory holding every sibling repository ("" = parent of ops_dir)
            "workspace_root": "",
        },
        "registries": {
            "repositories": "config/repositories.toml",
            "versions": "config/versions.toml",
            "dependencies": "config/dependencies.toml",
        },
        "commands": {
            "timeout_seconds": 600,
            "git_timeout": 60,
            "test_command": "cargo test --workspace",
            "validators": {
                "cargo": "cargo verify-project",
                "go": "go mod edit -json",
            },
        },
        "release": {
            "commit_message": "chore: release v{version}",
            "tag_name": "v{version}",
            "tag_message": "Release v{version}",
        },
        "sdk": {
            "required_methods": [
                "getBalance",
                "sendTransaction",
                "getTransaction",
                "getBlock",
                "getBlockByHash",
                "getLatestBlock",
                "connect",
                "disconnect",
            ],
        },
        "dependabot": {
            "path": ".github/dependabot.yml",
            "commit_message": "ci: add Dependabot configuration for automated dependency updates",
            "remote": "origin",
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s: %(message)s"
        },
    }


def configure_logging(config, verbose=False):
    """Apply the [logging] section to the opshub logger."""
    logging_config = config.get("logging", {})
    level_name = "DEBUG" if verbose else str(logging_config.get("level", "INFO")).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    fmt = logging_config.get("format")
    if fmt:
        for handler in logging.getLogger().handlers:
            handler.setFormatter(logging.Formatter(fmt))


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            # Recursively merge nested dictionaries
            merged[key] = merge_configs(merged[key], value)
        else:
            # Override or add new key
            merged[key] = value

    return merged


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: OPSHUB_SECTION_SUBSECTION_KEY
    For example: OPSHUB_COMMANDS_TIMEOUT_SECONDS=120
    """
    env_prefix = "OPSHUB_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix) or env_key == "OPSHUB_CONFIG":
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        # Convert value
        if value.lower() in ('true', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', 'no', 'off'):
            typed_value = False
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts_from_key = config_key.split('_')
                if key_parts[i : i + len(config_key_parts_from_key)] == config_key_parts_from_key:
                    if len(config_key_parts_from_key) > best_match_len:
                        best_match_len = len(config_key_parts_from_key)
                        matched_key = config_key

            if matched_key:
                # If we are at the end of the env var, we have found the key to set
                if i + best_match_len == len(key_parts):
                    current_level[matched_key] = typed_value
                    break

                # Otherwise, we descend into the dictionary
                if isinstance(current_level[matched_key], dict):
                    current_level = current_level[matched_key]
                    i += best_match_len
                else:
                    # Path conflict, e.g., env var is longer but we found a non-dict value
                    break
            else:
                # No match found
                break

    return config


def resolve_ops_dir(config, override=None) -> Path:
    """Directory of the ops repository (holds the registries)."""
    raw = override or config.get("general", {}).get("ops_dir") or os.getcwd()
    return Path(raw).expanduser().resolve()


def resolve_workspace_root(config, ops_dir: Path, override=None) -> Path:
    """Directory holding every sibling repository; defaults to the ops dir's parent."""
    raw = override or config.get("general", {}).get("workspace_root")
    if raw:
        return Path(raw).expanduser().resolve()
    return ops_dir.parent
