"""
Rendering functions for opshub output.

This module handles all pretty-printing and table formatting.
Services return data, this module makes it human-readable.
"""

from typing import Dict, Iterable, List, Optional

from rich import box
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from .domain.check import CheckResult, CheckSummary, Severity
from .domain.dependency import DependencyRegistry
from .domain.operation import OperationStatus, OperationSummary, SyncResult
from .services.checker_service import results_by_repository
from .services.sdk_service import method_name

console = Console()

SEVERITY_STYLES = {
    Severity.OK: ("green", "✓"),
    Severity.WARNING: ("yellow", "⚠"),
    Severity.ERROR: ("red", "✗"),
}


def render_table(headers: List[str], rows: List[List[str]], title: Optional[str] = None) -> None:
    """
    Render a generic table with the given headers and rows.

    Args:
        headers: List of column headers
        rows: List of rows, where each row is a list of values
        title: Optional table title
    """
    if not rows:
        console.print("[yellow]No data to display.[/yellow]")
        return

    table = Table(
        title=title,
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )
    for header in headers:
        table.add_column(header)
    for row in rows:
        table.add_row(*[str(val) for val in row])

    console.print(table)


def render_final_line(ok: bool, success: str, failure: str) -> None:
    if ok:
        console.print(f"\n[bold green]✓[/bold green] {success}")
    else:
        console.print(f"\n[bold red]✗[/bold red] {failure}")


# ============================================================================
# check
# ============================================================================

def render_check_results(results: Iterable[CheckResult], show_ok: bool = False) -> None:
    """Print results grouped by repository; ok results only with show_ok."""
    for repository, grouped in results_by_repository(results, include_ok=show_ok).items():
        console.print(f"\n[bold cyan]{repository}[/bold cyan]")
        for result in grouped:
            style, symbol = SEVERITY_STYLES[result.severity]
            console.print(f"  [{style}]{symbol}[/{style}] {result.message} [dim]({result.rule})[/dim]")


def render_check_summary(summary: CheckSummary) -> None:
    table = Table(title="Consistency Check Summary", box=box.ROUNDED, show_header=True,
                  header_style="bold magenta")
    table.add_column("Result", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("OK", f"[green]{summary.ok}[/green]")
    table.add_row("Warnings", f"[yellow]{summary.warnings}[/yellow]")
    table.add_row("Errors", f"[red]{summary.errors}[/red]")
    console.print()
    console.print(table)

    render_final_line(
        summary.passed,
        "All checks passed" if not summary.warnings else f"No errors ({summary.warnings} warnings)",
        f"{summary.errors} error(s) found",
    )


# ============================================================================
# sync
# ============================================================================

def render_dependency_registry(dependencies: DependencyRegistry) -> None:
    rows = [[spec.ecosystem.value, spec.category, spec.package, spec.constraint, spec.pin.value]
            for spec in dependencies]
    render_table(["Ecosystem", "Category", "Package", "Version", "Pin"], rows,
                 title="Dependency Registry")


def render_sync_result(result: SyncResult, verbose: bool = False) -> None:
    label = f"{result.repo_name}/{result.manifest}" if result.manifest else result.repo_name
    if result.action == "would_sync":
        console.print(f"\n[bold yellow]Would update {label}[/bold yellow]")
        console.print(Syntax(result.metadata.get("diff", ""), "diff", theme="ansi_dark"))
    elif result.action == "synced":
        console.print(f"[green]✓[/green] {label}: {len(result.applied)} updated")
    elif result.status == OperationStatus.FAILED:
        console.print(f"[red]✗[/red] {label}: {result.error}")
    elif verbose:
        console.print(f"[dim]= {label}: {result.message or result.action}[/dim]")

    for change in result.changes:
        if not change.applied:
            console.print(f"  [yellow]⚠[/yellow] {change.package}: left at {change.old} "
                          f"({change.reason}, registry wants {change.new})")
        elif verbose:
            console.print(f"  [dim]{change.table}[/dim] {change.package}: {change.old} -> {change.new}")


# ============================================================================
# release / dependabot / sync summaries
# ============================================================================

def render_operation_summary(summary: OperationSummary, title: str,
                             success_label: str = "Successful") -> None:
    """Rich summary table for any operation producing an OperationSummary."""
    mode = "[bold yellow]DRY RUN[/bold yellow] " if summary.dry_run else ""

    table = Table(title=f"{mode}{title} Summary", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row(success_label, f"[green]{summary.successful}[/green]")
    if summary.skipped > 0:
        table.add_row("Skipped", f"[yellow]{summary.skipped}[/yellow]")
    if summary.failed > 0:
        table.add_row("Failed", f"[red]{summary.failed}[/red]")
    if summary.warnings:
        table.add_row("Warnings", f"[yellow]{len(summary.warnings)}[/yellow]")
    console.print()
    console.print(table)

    if summary.warnings:
        console.print(f"\n[yellow]Warnings ({len(summary.warnings)}):[/yellow]")
        for warning in summary.warnings:
            console.print(f"  [yellow]•[/yellow] {warning}")
    if summary.errors:
        console.print(f"\n[red]Errors ({len(summary.errors)}):[/red]")
        for error in summary.errors:
            console.print(f"  [red]•[/red] {error}")


# ============================================================================
# sdk
# ============================================================================

def render_sdk_reports(reports, required_methods: List[str]) -> None:
    """One row per required method, one column per SDK."""
    if not reports:
        console.print("[yellow]No SDK repositories in the registry.[/yellow]")
        return

    table = Table(title="SDK Method Coverage", box=box.ROUNDED, show_header=True,
                  header_style="bold magenta")
    table.add_column("Method", style="cyan")
    for report in reports:
        table.add_column(report.repository, justify="center")

    for method in required_methods:
        row = [method]
        for report in reports:
            if not report.found_source:
                row.append("[red]-[/red]")
                continue
            name = method_name(report.language, method)
            row.append("[green]✓[/green]" if name in report.present else "[yellow]✗[/yellow]")
        table.add_row(*row)
    console.print(table)

    for report in reports:
        if not report.found_source:
            console.print(f"[red]✗[/red] {report.repository}: source directory {report.source} not found")


def render_sdk_versions(reports, mismatch: Dict[str, str]) -> None:
    rows = [[r.repository, r.language, r.version or "-"] for r in reports if r.found_source]
    if rows:
        render_table(["SDK", "Language", "Version"], rows, title="SDK Versions")
    if mismatch:
        console.print("[yellow]⚠ SDK versions differ: "
                      + ", ".join(f"{name} {version}" for name, version in mismatch.items())
                      + "[/yellow]")
