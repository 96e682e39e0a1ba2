#!/usr/bin/env python3

import click

from opshub import __version__
from opshub.commands.check import check_handler
from opshub.commands.sync import sync_handler
from opshub.commands.release import release_handler
from opshub.commands.sdk import sdk_handler
from opshub.commands.dependabot import dependabot_handler
from opshub.commands.config import config_cmd


@click.group()
@click.version_option(__version__, prog_name="opshub")
@click.option('--ops-dir', type=click.Path(file_okay=False),
              help='Ops repository holding the registries (default: current directory)')
@click.option('--workspace', 'workspace_root', type=click.Path(file_okay=False),
              help='Directory holding the sibling repositories (default: parent of the ops directory)')
@click.pass_context
def cli(ctx, ops_dir, workspace_root):
    """opshub - Keep a family of sibling repositories consistent.

    Checks repository standards, synchronizes dependency versions, releases
    every component with one version and validates SDK surfaces, all driven
    by the TOML registries of the ops repository.
    """
    ctx.ensure_object(dict)
    ctx.obj['ops_dir'] = ops_dir
    ctx.obj['workspace_root'] = workspace_root


cli.add_command(check_handler)
cli.add_command(sync_handler)
cli.add_command(release_handler)
cli.add_command(sdk_handler)
cli.add_command(dependabot_handler)
cli.add_command(config_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
