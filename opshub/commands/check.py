"""
Check command for opshub.

Verifies every repository of the registry against the organization's
standards. The exit code is the number of errors found.
"""

import click

from ..cli_utils import add_common_options, emit, get_workspace, resolve_format, standard_command
from ..config import logger
from ..exit_codes import clamp_exit_code
from ..registries import load_repository_registry
from ..render import render_check_results, render_check_summary
from ..services.checker_service import ConsistencyChecker


@click.command('check')
@click.option('--repo', 'repos', multiple=True, help='Only check the named repository (repeatable)')
@click.option('--show-ok', is_flag=True, help='List passing checks too')
@add_common_options('verbose', 'format')
@click.pass_context
@standard_command
def check_handler(ctx, repos, show_ok, verbose, format):
    """
    Check repository consistency.

    Every repository must have a LICENSE, a README.md, a .gitignore, its
    ecosystem manifest and lockfile, and CI workflows. Rust repositories are
    also checked for edition 2024, the dual license and cargo-deny.

    Missing repositories and warnings never fail the run; the exit code is
    the number of errors.

    \b
    Examples:
        opshub check
        opshub check --repo chert-node --show-ok
        opshub check --format jsonl | jq 'select(.severity == "error")'
    """
    config, workspace = get_workspace(ctx, verbose)
    registry = load_repository_registry(workspace.registry_path("repositories"))
    try:
        registry = registry.select(repos)
    except KeyError as e:
        raise click.BadParameter(e.args[0], param_hint='--repo')

    logger.info(f"Checking {len(registry)} repositories under {workspace.root}")
    checker = ConsistencyChecker(workspace.root, registry)
    summary = checker.run()

    output_format = resolve_format(format)
    if output_format == 'table':
        render_check_results(summary.results, show_ok=show_ok or verbose)
        render_check_summary(summary)
    else:
        emit([r.to_dict() for r in summary.results] + [summary.to_dict()], output_format)

    return clamp_exit_code(summary.errors)
