"""
Dependabot configuration rollout.

Commits each repository's Dependabot configuration when it is new or
modified, and optionally pushes the branch. Repositories are handled one at
a time and a failure in one never stops the others.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Generator, Optional

from ..config import logger
from ..domain.operation import OperationDetail, OperationStatus, OperationSummary
from ..domain.repository import RepositoryRegistry
from ..infra.git_client import GitClient


@dataclass
class DependabotOptions:
    path: str = ".github/dependabot.yml"
    commit_message: str = "ci: add Dependabot configuration for automated dependency updates"
    remote: str = "origin"
    push: bool = False
    dry_run: bool = False


class DependabotService:
    """Commits (and optionally pushes) Dependabot configs across repositories."""

    def __init__(self, workspace_root: Path, git_client: Optional[GitClient] = None):
        self.workspace_root = Path(workspace_root)
        self.git = git_client or GitClient()
        self.last_result: Optional[OperationSummary] = None

    def _detail(self, repo, name, status, action, **kwargs) -> OperationDetail:
        return OperationDetail(str(repo), name, status, action, **kwargs)

    def rollout(self, registry: RepositoryRegistry, options: DependabotOptions) -> Generator[str, None, OperationSummary]:
        summary = OperationSummary(operation="dependabot", dry_run=options.dry_run)
        self.last_result = summary

        for entry in registry:
            repo = entry.location(self.workspace_root)
            if not repo.is_dir():
                yield f"{entry.name}: not found, skipping"
                summary.warn(f"{entry.name}: directory not found")
                summary.add_detail(self._detail(repo, entry.name, OperationStatus.SKIPPED, "missing"))
                continue
            if not (repo / options.path).is_file():
                yield f"{entry.name}: no {options.path}, skipping"
                summary.add_detail(self._detail(repo, entry.name, OperationStatus.SKIPPED, "no_config"))
                continue
            if not self.git.is_git_repo(repo):
                yield f"{entry.name}: not a git repository, skipping"
                summary.add_detail(self._detail(repo, entry.name, OperationStatus.SKIPPED, "not_git"))
                continue

            if (self.git.is_tracked(repo, options.path)
                    and not self.git.has_uncommitted_changes(repo, options.path)):
                yield f"{entry.name}: already committed"
                summary.add_detail(self._detail(repo, entry.name, OperationStatus.SKIPPED, "up_to_date"))
                continue

            if options.dry_run:
                action = "commit and push" if options.push else "commit"
                yield f"Would {action} {options.path} in {entry.name}"
                summary.add_detail(self._detail(repo, entry.name, OperationStatus.DRY_RUN, "would_commit"))
                continue

            if not (self.git.add(repo, options.path) and self.git.commit(repo, options.commit_message)):
                logger.warning(f"{entry.name}: commit of {options.path} failed")
                summary.add_detail(self._detail(repo, entry.name, OperationStatus.FAILED, "commit_failed",
                                                error="git commit failed"))
                continue
            yield f"{entry.name}: committed {options.path}"

            if options.push:
                branch = self.git.current_branch(repo)
                pushed, output = self.git.push(repo, remote=options.remote, branch=branch)
                if not pushed:
                    logger.warning(f"{entry.name}: push to {options.remote} failed")
                    summary.add_detail(self._detail(repo, entry.name, OperationStatus.FAILED, "push_failed",
                                                    error=output or "git push failed"))
                    continue
                yield f"{entry.name}: pushed to {options.remote}/{branch}"

            summary.add_detail(self._detail(repo, entry.name, OperationStatus.SUCCESS,
                                            "pushed" if options.push else "committed"))
        return summary
