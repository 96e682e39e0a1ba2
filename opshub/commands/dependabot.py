"""
Dependabot command for opshub.

Commits each repository's Dependabot configuration and optionally pushes it.
"""

import click

from ..cli_utils import add_common_options, emit, get_workspace, resolve_format, standard_command
from ..config import logger
from ..exit_codes import PartialSuccessError
from ..infra.git_client import GitClient
from ..registries import load_repository_registry
from ..render import render_final_line, render_operation_summary
from ..services.dependabot_service import DependabotOptions, DependabotService


@click.command('dependabot')
@click.option('--push', is_flag=True, help='Push the current branch after committing')
@add_common_options('dry_run', 'verbose', 'format')
@click.pass_context
@standard_command
def dependabot_handler(ctx, push, dry_run, verbose, format):
    """
    Commit Dependabot configurations across repositories.

    A repository is committed only when its configuration is new or
    modified. Failures are reported and the run continues.

    \b
    Examples:
        opshub dependabot --dry-run
        opshub dependabot --push
    """
    config, workspace = get_workspace(ctx, verbose)
    registry = load_repository_registry(workspace.registry_path("repositories"))
    settings = config.get("dependabot", {})
    options = DependabotOptions(
        path=settings.get("path", DependabotOptions.path),
        commit_message=settings.get("commit_message", DependabotOptions.commit_message),
        remote=settings.get("remote", DependabotOptions.remote),
        push=push,
        dry_run=dry_run,
    )
    git = GitClient(timeout=config.get("commands", {}).get("git_timeout", 60))
    service = DependabotService(workspace.root, git_client=git)

    for message in service.rollout(registry, options):
        logger.info(message)

    summary = service.last_result
    output_format = resolve_format(format)
    if output_format == 'table':
        render_operation_summary(summary, "Dependabot",
                                 success_label="Pushed" if push else "Committed")
        render_final_line(summary.success, "Dependabot configurations up to date",
                          f"{summary.failed} repositories failed")
    else:
        emit([d.to_dict() for d in summary.details] + [summary.to_dict()], output_format)

    if not summary.success:
        raise PartialSuccessError(
            f"{summary.failed} of {summary.total} repositories failed",
            succeeded=summary.successful, failed=summary.failed,
        )
    return 0
