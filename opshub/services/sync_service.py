"""
Dependency synchronization service for opshub.

Rewrites dependency versions in each repository's manifests so they match
the Dependency Registry. Writes follow a fixed discipline per manifest:
backup, write, verify, and restore the backup if verification fails.
Repositories are independent units of work; one failure never stops the
others.
"""

import difflib
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Tuple

from ..config import logger
from ..domain.dependency import DependencyRegistry
from ..domain.operation import OperationStatus, OperationSummary, SyncResult
from ..domain.repository import Ecosystem, RepositoryEntry, RepositoryRegistry
from ..infra.command_runner import CommandRunner
from ..manifests import manifest_for

BACKUP_SUFFIX = ".bak"


@dataclass
class SyncOptions:
    """Options for a sync run."""
    dry_run: bool = False
    verbose: bool = False
    validate: bool = True  # run the ecosystem validator command when installed


class VerificationError(Exception):
    """A rewritten manifest failed post-write verification."""


class SyncService:
    """
    Service synchronizing dependency versions across repositories.

    Example:
        service = SyncService(workspace_root, dependencies)
        for message in service.sync_all(registry, SyncOptions(dry_run=True)):
            print(message)
        print(service.last_result.failed)
    """

    def __init__(
        self,
        workspace_root: Path,
        dependencies: DependencyRegistry,
        runner: Optional[CommandRunner] = None,
        validators: Optional[Dict[str, str]] = None,
    ):
        self.workspace_root = Path(workspace_root)
        self.dependencies = dependencies
        self.runner = runner or CommandRunner()
        self.validators = validators or {}
        self.last_result: Optional[OperationSummary] = None

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def manifests_for(self, entry: RepositoryEntry) -> List[Tuple[Ecosystem, Path]]:
        """(ecosystem, manifest path) pairs of a repository, primary first."""
        repo = entry.location(self.workspace_root)
        found = []
        handler = manifest_for(entry.ecosystem)
        if handler:
            for filename in handler.filenames:
                found.append((entry.ecosystem, repo / filename))
        for ecosystem, relative in entry.extra_manifests:
            found.append((ecosystem, repo / relative))
        return found

    def plan_manifest(self, ecosystem: Ecosystem, path: Path):
        """Compute the rewritten text of one manifest without touching it.

        Returns:
            Tuple of (original text, new text, changes)
        """
        handler = manifest_for(ecosystem)
        text = path.read_text()
        new_text, changes = handler.plan(path, text, self.dependencies.for_ecosystem(ecosystem))
        return text, new_text, changes

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _validator_for(self, ecosystem: Ecosystem) -> Optional[str]:
        command = self.validators.get(ecosystem.value)
        if command and self.runner.available(command):
            return command
        return None

    def _verify(self, ecosystem: Ecosystem, path: Path, options: SyncOptions) -> None:
        handler = manifest_for(ecosystem)
        try:
            handler.verify(path, path.read_text())
        except ValueError as e:
            raise VerificationError(f"{path.name} no longer parses: {e}") from e

        command = self._validator_for(ecosystem) if options.validate else None
        if command is None:
            return
        result = self.runner.run(command, cwd=path.parent)
        if not result.ok:
            lines = result.output.strip().splitlines()
            detail = "timed out" if result.timed_out else (lines[-1] if lines else f"exit {result.returncode}")
            raise VerificationError(f"{command} failed: {detail}")

    def apply_manifest(self, ecosystem: Ecosystem, path: Path, new_text: str, options: SyncOptions) -> None:
        """Write new text with backup/verify/restore.

        Raises:
            VerificationError: if the rewritten manifest fails verification;
                the original content is restored before raising
        """
        backup = path.with_name(path.name + BACKUP_SUFFIX)
        shutil.copy2(path, backup)
        try:
            path.write_text(new_text)
            self._verify(ecosystem, path, options)
        except (VerificationError, OSError):
            shutil.move(str(backup), str(path))
            raise
        backup.unlink()

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    def sync_repository(self, entry: RepositoryEntry, options: SyncOptions) -> Generator[Any, None, List[SyncResult]]:
        """Sync every manifest of one repository.

        Yields progress messages; returns one SyncResult per manifest examined.
        """
        repo = entry.location(self.workspace_root)
        results: List[SyncResult] = []
        if not repo.is_dir():
            yield f"{entry.name}: directory not found, skipping"
            results.append(SyncResult(str(repo), entry.name, OperationStatus.SKIPPED, "missing",
                                      message="Directory not found"))
            return results

        found_any = False
        for ecosystem, path in self.manifests_for(entry):
            if not path.is_file():
                continue
            found_any = True
            relative = str(path.relative_to(repo))
            try:
                original, new_text, changes = self.plan_manifest(ecosystem, path)
            except ValueError as e:
                logger.warning(f"{entry.name}: cannot parse {relative}: {e}")
                results.append(SyncResult(str(repo), entry.name, OperationStatus.FAILED, "unparseable",
                                          error=str(e), manifest=relative))
                continue

            result = SyncResult(str(repo), entry.name, OperationStatus.SKIPPED, "up_to_date",
                                manifest=relative, changes=changes)
            for change in changes:
                if not change.applied:
                    logger.warning(f"{entry.name}: {change.package} in {relative} left at "
                                   f"{change.old!r} ({change.reason}; registry wants {change.new!r})")
            if new_text == original:
                result.message = "Already in sync"
            elif options.dry_run:
                result.status = OperationStatus.DRY_RUN
                result.action = "would_sync"
                result.metadata["diff"] = unified_diff(original, new_text, f"{entry.name}/{relative}")
            else:
                try:
                    self.apply_manifest(ecosystem, path, new_text, options)
                    result.status = OperationStatus.SUCCESS
                    result.action = "synced"
                    yield f"{entry.name}: updated {len(result.applied)} entries in {relative}"
                except VerificationError as e:
                    logger.warning(f"{entry.name}: {e} - restored backup of {relative}")
                    result.status = OperationStatus.FAILED
                    result.action = "rolled_back"
                    result.error = str(e)
                except OSError as e:
                    logger.warning(f"{entry.name}: could not write {relative}: {e}")
                    result.status = OperationStatus.FAILED
                    result.action = "write_failed"
                    result.error = str(e)
            results.append(result)

        if not found_any:
            yield f"{entry.name}: no manifest found, skipping"
            logger.warning(f"{entry.name}: no manifest found")
        return results

    def sync_all(
        self,
        registry: RepositoryRegistry,
        options: SyncOptions
    ) -> Generator[Any, None, OperationSummary]:
        """
        Sync every repository with a package ecosystem, in registry order.

        Yields:
            Progress messages

        Returns:
            OperationSummary with one detail per manifest examined
        """
        summary = OperationSummary(operation="sync", dry_run=options.dry_run)
        self.last_result = summary
        for entry in registry:
            if entry.ecosystem == Ecosystem.NONE and not entry.extra_manifests:
                continue
            yield f"Syncing {entry.name} ({entry.ecosystem.value})..."
            results = yield from self.sync_repository(entry, options)
            if not results:
                summary.warn(f"{entry.name}: no manifest found")
            for result in results:
                summary.add_detail(result)
                if result.status == OperationStatus.SKIPPED and result.action == "missing":
                    summary.warn(f"{entry.name}: directory not found")
        return summary


def unified_diff(original: str, new_text: str, label: str) -> str:
    """Diff-style report of a planned rewrite."""
    return "".join(difflib.unified_diff(
        original.splitlines(keepends=True),
        new_text.splitlines(keepends=True),
        fromfile=f"a/{label}",
        tofile=f"b/{label}",
    ))
