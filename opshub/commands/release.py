"""
Release command for opshub.

Bumps every releasable repository to one version: updates the Version
Registry, runs the Rust test suites, writes manifest versions, then commits
and tags each changed repository.
"""

import click

from ..cli_utils import add_common_options, emit, get_workspace, resolve_format, standard_command
from ..config import logger
from ..domain.version import Channel
from ..infra.command_runner import CommandRunner
from ..infra.git_client import GitClient
from ..registries import load_repository_registry, load_version_registry
from ..render import console, render_final_line, render_operation_summary, render_table
from ..services.release_service import ReleaseCoordinator, ReleaseOptions, changelog_template


@click.command('release')
@click.argument('version')
@click.option('--channel', '-c', default=Channel.STABLE.value, show_default=True,
              help=f"Release channel ({', '.join(c.value for c in Channel)})")
@click.option('--skip-tests', is_flag=True, help='Do not run the Rust test suites')
@add_common_options('dry_run', 'verbose', 'format')
@click.pass_context
@standard_command
def release_handler(ctx, version, channel, skip_tests, dry_run, verbose, format):
    """
    Release every component as VERSION.

    VERSION must be MAJOR.MINOR.PATCH (no "v" prefix). A failing test suite
    stops the release before any manifest is touched; commit and tag
    failures are reported and the release continues. Nothing is pushed.

    \b
    Examples:
        opshub release 1.2.3 --dry-run
        opshub release 1.3.0 --channel beta
        opshub release 1.2.4 --skip-tests
    """
    config, workspace = get_workspace(ctx, verbose)
    repositories = load_repository_registry(workspace.registry_path("repositories"))
    versions_path = workspace.registry_path("versions")
    versions = load_version_registry(versions_path)

    commands = config.get("commands", {})
    coordinator = ReleaseCoordinator(
        workspace.root,
        repositories,
        versions,
        versions_path,
        settings=config.get("release"),
        test_command=commands.get("test_command", "cargo test --workspace"),
        runner=CommandRunner(timeout=commands.get("timeout_seconds", 600)),
        git_client=GitClient(timeout=commands.get("git_timeout", 60)),
    )
    options = ReleaseOptions(version=version, channel=channel, dry_run=dry_run, skip_tests=skip_tests)

    output_format = resolve_format(format)
    table = output_format == 'table'
    if table:
        mode = "[bold yellow]DRY RUN[/bold yellow] " if dry_run else ""
        console.print(f"\n{mode}[bold]Release v{version}[/bold] ({channel})")

    # A validation or test failure propagates as a CommandError
    for message in coordinator.release(options):
        logger.info(message)

    summary = coordinator.last_result
    if not table:
        emit([d.to_dict() for d in summary.details] + [summary.to_dict()], output_format)
        return 0

    rows = [[d.repo_name, d.action, ", ".join(d.files) or "-",
             "yes" if d.committed else "-", "yes" if d.tagged else "-"]
            for d in summary.details]
    render_table(["Repository", "Result", "Files", "Committed", "Tagged"], rows,
                 title="Release Results")
    render_operation_summary(summary, f"Release v{version}", success_label="Released")

    if dry_run:
        render_final_line(True, "Dry run complete, nothing was changed", "")
        return 0

    render_final_line(True, f"Release v{version} prepared", "")
    tag = config.get("release", {}).get("tag_name", "v{version}").format(version=version)
    console.print("\n[bold]Next steps:[/bold]")
    console.print("  1. Add a CHANGELOG.md entry to each repository:")
    console.print(changelog_template(version), markup=False)
    console.print("  2. Review the release commits and push them with their tags: git push --follow-tags")
    console.print(f"  3. CI publishes the artifacts for tag {tag}")
    return 0
