"""
Sync command for opshub.

Rewrites dependency versions in every repository's manifests to match the
Dependency Registry.
"""

import click

from ..cli_utils import add_common_options, emit, get_workspace, resolve_format, standard_command
from ..config import logger
from ..exit_codes import PartialSuccessError
from ..infra.command_runner import CommandRunner
from ..registries import load_dependency_registry, load_repository_registry
from ..render import console, render_dependency_registry, render_final_line, render_operation_summary, render_sync_result
from ..services.sync_service import SyncOptions, SyncService


@click.command('sync')
@click.argument('repos', nargs=-1)
@click.option('--no-validate', is_flag=True,
              help='Skip the ecosystem validator command after writing')
@add_common_options('dry_run', 'verbose', 'format')
@click.pass_context
@standard_command
def sync_handler(ctx, repos, no_validate, dry_run, verbose, format):
    """
    Synchronize dependency versions with the registry.

    Every manifest entry of a registry package is rewritten to the
    registry's version. Each rewritten manifest is backed up, verified, and
    restored from the backup if it no longer parses.

    \b
    Examples:
        opshub sync --dry-run
        opshub sync chert-node chert-sdk-rust
        opshub sync --verbose
    """
    config, workspace = get_workspace(ctx, verbose)
    registry = load_repository_registry(workspace.registry_path("repositories"))
    dependencies = load_dependency_registry(workspace.registry_path("dependencies"))
    try:
        registry = registry.select(repos)
    except KeyError as e:
        raise click.BadParameter(e.args[0], param_hint='REPOS')

    commands = config.get("commands", {})
    service = SyncService(
        workspace.root,
        dependencies,
        runner=CommandRunner(timeout=commands.get("timeout_seconds", 600)),
        validators=commands.get("validators", {}),
    )
    options = SyncOptions(dry_run=dry_run, verbose=verbose, validate=not no_validate)

    output_format = resolve_format(format)
    table = output_format == 'table'
    if table and verbose:
        render_dependency_registry(dependencies)

    gen = service.sync_all(registry, options)
    for message in gen:
        logger.info(message)

    summary = service.last_result
    if table:
        for detail in summary.details:
            render_sync_result(detail, verbose=verbose)
        render_operation_summary(summary, "Sync", success_label="Dry run" if dry_run else "Synced")
    else:
        emit([d.to_dict() for d in summary.details] + [summary.to_dict()], output_format)

    rolled_back = [d for d in summary.details if d.action == "rolled_back"]
    if summary.failed:
        if table:
            render_final_line(False, "", f"{summary.failed} manifest(s) failed")
        raise PartialSuccessError(
            f"{len(rolled_back)} rolled back, {summary.failed} failed in total",
            succeeded=summary.successful, failed=summary.failed,
        )
    if table:
        verb = "checked" if dry_run else "in sync"
        render_final_line(True, f"{summary.total} manifest(s) {verb}", "")
        if dry_run and summary.successful:
            console.print("[dim]Run without --dry-run to apply.[/dim]")
    return 0
