"""
SDK command for opshub.

Checks that every SDK declares the organization's required client methods
and reports SDK versions side by side.
"""

import click

from ..cli_utils import add_common_options, emit, get_workspace, resolve_format, standard_command
from ..config import logger
from ..exit_codes import GENERAL_ERROR, SUCCESS
from ..registries import load_repository_registry
from ..render import render_final_line, render_sdk_reports, render_sdk_versions
from ..services.sdk_service import SdkValidator, version_mismatch


@click.command('sdk')
@click.option('--strict', is_flag=True, help='Treat missing methods as errors')
@add_common_options('verbose', 'format')
@click.pass_context
@standard_command
def sdk_handler(ctx, strict, verbose, format):
    """
    Validate the API surface of every SDK.

    Method names are matched in each language's convention (get_balance in
    Rust and Python, GetBalance in Go and C#, getBalance in TypeScript).
    This is a textual search, not a parse: treat misses as hints.

    \b
    Examples:
        opshub sdk
        opshub sdk --strict --format json
    """
    config, workspace = get_workspace(ctx, verbose)
    registry = load_repository_registry(workspace.registry_path("repositories"))
    required = list(config.get("sdk", {}).get("required_methods", []))

    validator = SdkValidator(workspace.root, registry, required)
    reports = validator.validate()
    mismatch = version_mismatch(reports)

    missing_source = [r for r in reports if not r.found_source]
    missing_methods = [r for r in reports if r.missing]
    for report in missing_source:
        logger.error(f"{report.repository}: SDK source directory {report.source} not found")
    for report in missing_methods:
        log = logger.error if strict else logger.warning
        log(f"{report.repository}: missing {', '.join(report.missing)}")
    if mismatch:
        logger.warning("SDK versions differ")

    output_format = resolve_format(format)
    if output_format == 'table':
        render_sdk_reports(reports, required)
        render_sdk_versions(reports, mismatch)
    else:
        emit([r.to_dict() for r in reports], output_format)

    failed = bool(missing_source) or (strict and bool(missing_methods))
    if output_format == 'table':
        render_final_line(
            not failed,
            f"{len(reports)} SDK(s) checked" + (f", {len(missing_methods)} with missing methods" if missing_methods else ""),
            f"{len(missing_source)} SDK(s) without sources, {len(missing_methods)} with missing methods",
        )
    return GENERAL_ERROR if failed else SUCCESS
