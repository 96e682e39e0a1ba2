"""
Release coordination service for opshub.

Releases every component of the organization with one version:

1. update the Version Registry (version, channel, release date)
2. run the test suite of each Rust repository (fatal on first failure)
3. write the new version into each repository's manifest (best effort)
4. commit and tag each repository with uncommitted changes (best effort)

Input is validated before anything is touched, and every step only reports
what it would do in dry-run mode.
"""

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

from packaging.version import Version

from ..config import logger
from ..domain.operation import OperationDetail, OperationStatus, OperationSummary
from ..domain.repository import Ecosystem, RepositoryEntry, RepositoryRegistry
from ..domain.version import Channel, VersionRegistry, validate_channel, validate_version
from ..exit_codes import ReleaseError
from ..infra.command_runner import CommandRunner
from ..infra.git_client import GitClient
from ..manifests import set_version
from ..registries import save_version_registry


@dataclass
class ReleaseOptions:
    """Options for a coordinated release."""
    version: str
    channel: str = "stable"
    dry_run: bool = False
    skip_tests: bool = False
    release_date: Optional[date] = None


@dataclass
class ReleaseRepoResult(OperationDetail):
    """What the release did to one repository."""
    files: List[str] = field(default_factory=list)
    committed: bool = False
    tagged: bool = False

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['files'] = self.files
        result['committed'] = self.committed
        result['tagged'] = self.tagged
        return result


DEFAULT_RELEASE_SETTINGS = {
    "commit_message": "chore: release v{version}",
    "tag_name": "v{version}",
    "tag_message": "Release v{version}",
}


class ReleaseCoordinator:
    """
    Coordinates a version bump across every releasable repository.

    Example:
        coordinator = ReleaseCoordinator(root, repos, versions, versions_path)
        gen = coordinator.release(ReleaseOptions("1.2.3", channel="beta"))
        for message in gen:
            print(message)
    """

    def __init__(
        self,
        workspace_root: Path,
        repositories: RepositoryRegistry,
        versions: VersionRegistry,
        versions_path: Path,
        settings: Optional[Dict[str, Any]] = None,
        test_command: str = "cargo test --workspace",
        runner: Optional[CommandRunner] = None,
        git_client: Optional[GitClient] = None,
    ):
        self.workspace_root = Path(workspace_root)
        self.repositories = repositories
        self.versions = versions
        self.versions_path = Path(versions_path)
        self.settings = {**DEFAULT_RELEASE_SETTINGS, **(settings or {})}
        self.test_command = test_command
        self.runner = runner or CommandRunner()
        self.git = git_client or GitClient()
        self.last_result: Optional[OperationSummary] = None

    def _format(self, key: str, version: str) -> str:
        return self.settings[key].format(version=version)

    def _present(self) -> List[RepositoryEntry]:
        return [e for e in self.repositories.releasable()
                if e.location(self.workspace_root).is_dir()]

    def release(self, options: ReleaseOptions) -> Generator[str, None, OperationSummary]:
        """
        Run the release.

        Yields:
            Progress messages

        Returns:
            OperationSummary with one detail per releasable repository

        Raises:
            ValidationError: malformed version or channel (nothing touched)
            ReleaseError: a test suite failed (later steps not run)
        """
        version = validate_version(options.version)
        channel = validate_channel(options.channel)

        summary = OperationSummary(operation="release", dry_run=options.dry_run)
        self.last_result = summary

        yield from self._preflight(version, summary)
        yield from self._update_registry(version, channel, options)
        if options.skip_tests:
            summary.warn("Tests skipped (--skip-tests)")
            yield "Skipping tests (--skip-tests)"
        else:
            yield from self._run_tests(options)

        results = {}
        yield from self._write_versions(version, options, results, summary)
        yield from self._commit_and_tag(version, options, results, summary)

        for entry in self.repositories.releasable():
            if entry.name in results:
                summary.add_detail(results[entry.name])
        return summary

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _preflight(self, version: str, summary: OperationSummary) -> Generator[str, None, None]:
        yield "Running pre-flight checks..."
        for entry in self.repositories.releasable():
            repo = entry.location(self.workspace_root)
            if not repo.is_dir():
                message = f"Repository not found: {entry.name}"
                logger.warning(message)
                summary.warn(message)
            elif self.git.is_git_repo(repo) and self.git.has_uncommitted_changes(repo):
                message = f"{entry.name} has uncommitted changes"
                logger.warning(message)
                summary.warn(message)

        new = Version(version)
        for record in self.versions:
            try:
                current = Version(record.version)
            except ValueError:
                continue
            if new < current:
                message = f"{record.component}: {version} is lower than current {record.version}"
                logger.warning(message)
                summary.warn(message)

    def _update_registry(self, version: str, channel: Channel, options: ReleaseOptions) -> Generator[str, None, None]:
        if options.dry_run:
            yield f"Would update {self.versions_path} ({len(self.versions)} components)"
            return
        when = options.release_date or date.today()
        for record in self.versions:
            record.bump(version, channel, when)
        save_version_registry(self.versions, self.versions_path)
        yield f"Updated {self.versions_path}"

    def _run_tests(self, options: ReleaseOptions) -> Generator[str, None, None]:
        yield "Running tests..."
        for entry in self.repositories.releasable():
            if entry.ecosystem != Ecosystem.CARGO:
                continue
            repo = entry.location(self.workspace_root)
            if not (repo / "Cargo.toml").is_file():
                continue
            if options.dry_run:
                yield f"Would test {entry.name} ({self.test_command})"
                continue
            yield f"Testing {entry.name}..."
            result = self.runner.run(self.test_command, cwd=repo)
            if not result.ok:
                reason = "timed out" if result.timed_out else f"exit code {result.returncode}"
                raise ReleaseError(f"Tests failed for {entry.name} ({reason})", repository=entry.name)
        yield "All tests passed"

    def _write_versions(self, version: str, options: ReleaseOptions,
                        results: Dict[str, ReleaseRepoResult],
                        summary: OperationSummary) -> Generator[str, None, None]:
        yield "Updating version numbers..."
        for entry in self._present():
            repo = entry.location(self.workspace_root)
            result = ReleaseRepoResult(str(repo), entry.name, OperationStatus.SKIPPED, "unchanged")
            results[entry.name] = result

            targets = [(entry.ecosystem, repo)]
            targets += [(eco, (repo / rel).parent) for eco, rel in entry.extra_manifests]
            for ecosystem, directory in targets:
                if ecosystem in (Ecosystem.GO, Ecosystem.NONE):
                    continue
                if options.dry_run:
                    result.status = OperationStatus.DRY_RUN
                    result.action = "would_update"
                    yield f"Would update {entry.name} ({ecosystem.value}) to {version}"
                    continue
                try:
                    written = set_version(directory, ecosystem, version, runner=self.runner)
                except (OSError, RuntimeError, ValueError) as e:
                    message = f"{entry.name}: could not update version: {e}"
                    logger.warning(message)
                    summary.warn(message)
                    result.error = str(e)
                    continue
                if written:
                    result.files.extend(str(Path(f).relative_to(repo)) for f in written)
                    result.status = OperationStatus.SUCCESS
                    result.action = "version_updated"
                    yield f"Updated {entry.name}: {', '.join(result.files)}"

    def _commit_and_tag(self, version: str, options: ReleaseOptions,
                        results: Dict[str, ReleaseRepoResult],
                        summary: OperationSummary) -> Generator[str, None, None]:
        commit_message = self._format("commit_message", version)
        tag_name = self._format("tag_name", version)
        tag_message = self._format("tag_message", version)

        yield "Creating release commits and tags..."
        for entry in self._present():
            repo = entry.location(self.workspace_root)
            if not self.git.is_git_repo(repo):
                continue
            result = results[entry.name]
            if options.dry_run:
                yield f"Would commit and tag {entry.name} as {tag_name} if changed"
                continue
            if not self.git.has_uncommitted_changes(repo):
                yield f"{entry.name}: clean, skipping"
                continue
            if not self.git.commit_all(repo, commit_message):
                message = f"{entry.name}: commit failed"
                logger.warning(message)
                summary.warn(message)
                continue
            result.committed = True
            result.status = OperationStatus.SUCCESS
            result.action = "committed"
            yield f"{entry.name}: committed"

            if self.git.tag_exists(repo, tag_name):
                message = f"{entry.name}: tag {tag_name} already exists"
                logger.warning(message)
                summary.warn(message)
                continue
            if self.git.tag(repo, tag_name, tag_message):
                result.tagged = True
                result.action = "tagged"
                yield f"{entry.name}: tagged {tag_name}"
            else:
                message = f"{entry.name}: tagging {tag_name} failed"
                logger.warning(message)
                summary.warn(message)


def changelog_template(version: str, when: Optional[date] = None) -> str:
    """CHANGELOG.md section to paste into each repository."""
    when = when or date.today()
    return (
        f"## [{version}] - {when.isoformat()}\n"
        "\n"
        "### Added\n"
        "- (your features)\n"
        "\n"
        "### Changed\n"
        "- (your changes)\n"
        "\n"
        "### Fixed\n"
        "- (your fixes)\n"
    )
