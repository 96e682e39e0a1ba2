import json
from pathlib import Path

import click
import yaml

from ..config import get_config_path, get_default_config, load_config, save_config


@click.group("config")
def config_cmd():
    """Configuration management commands."""
    pass


@config_cmd.command("show")
@click.option("--yaml", "as_yaml", is_flag=True, help="Display as YAML instead of JSON")
def show_config(as_yaml):
    """Show the current configuration with all merges applied.

    Defaults, then the settings file, then OPSHUB_* environment variables.
    """
    config = load_config()
    if as_yaml:
        click.echo(yaml.safe_dump(config, default_flow_style=False, sort_keys=False), nl=False)
    else:
        click.echo(json.dumps(config, indent=2, ensure_ascii=False))


@config_cmd.command("path")
def show_path():
    """Show the settings file path being used."""
    click.echo(str(get_config_path()))


@config_cmd.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing settings file")
@click.option("--path", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              help="Where to write (default: ~/.opshub/config.toml)")
def init_config(force, config_path):
    """Write a settings file with the default values."""
    path = config_path or get_config_path()
    if path.exists() and not force:
        click.echo(f"Configuration already exists at {path} (use --force to overwrite)", err=True)
        raise SystemExit(1)
    written = save_config(get_default_config(), path)
    click.echo(f"Configuration written to {written}")
