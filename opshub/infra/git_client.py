"""
Git client infrastructure for opshub.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Isolated from business logic
"""

import subprocess
from typing import List, Optional, Tuple
from pathlib import Path
import logging

logger = logging.getLogger(__name__)


class GitClient:
    """
    Abstraction over git commands.

    Provides methods for the git operations the release and dependabot
    commands need, with consistent error handling and return types.

    Example:
        client = GitClient()
        if client.has_uncommitted_changes("/path/to/repo"):
            client.commit_all("/path/to/repo", "chore: release v1.2.3")
    """

    def __init__(self, timeout: int = 60):
        """
        Initialize GitClient.

        Args:
            timeout: Command timeout in seconds (default: 60)
        """
        self.timeout = timeout

    def _run(
        self,
        args: List[str],
        cwd: str,
        check: bool = False,
    ) -> Tuple[Optional[str], int]:
        """
        Run a git command.

        Args:
            args: Arguments after ``git``
            cwd: Working directory
            check: Raise on non-zero exit

        Returns:
            Tuple of (stdout, returncode)
        """
        cmd = ["git", *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )

            if check and result.returncode != 0:
                raise subprocess.CalledProcessError(
                    result.returncode,
                    cmd,
                    output=result.stdout,
                    stderr=result.stderr
                )

            if result.returncode != 0 and result.stderr:
                logger.debug(f"git {' '.join(args)} in {cwd}: {result.stderr.strip()}")

            output = result.stdout
            return output.strip() if output else None, result.returncode

        except subprocess.TimeoutExpired:
            logger.warning(f"Git command timed out: git {' '.join(args)}")
            return None, -1
        except OSError as e:
            logger.error(f"Git command failed: git {' '.join(args)} - {e}")
            return None, -1

    def is_git_repo(self, path) -> bool:
        """Check if path is a git repository."""
        git_dir = Path(path) / ".git"
        return git_dir.exists()

    def current_branch(self, path) -> Optional[str]:
        """Get current branch name."""
        output, code = self._run(["rev-parse", "--abbrev-ref", "HEAD"], cwd=str(path))
        if code == 0 and output:
            return output.strip()
        return None

    def has_uncommitted_changes(self, path, pathspec: Optional[str] = None) -> bool:
        """Check if repo (or one path in it) has uncommitted or untracked changes."""
        args = ["status", "--porcelain"]
        if pathspec:
            args += ["--", pathspec]
        output, _ = self._run(args, cwd=str(path))
        return bool(output and output.strip())

    def is_tracked(self, path, pathspec: str) -> bool:
        """True if ``pathspec`` is known to the index."""
        _, code = self._run(["ls-files", "--error-unmatch", pathspec], cwd=str(path))
        return code == 0

    def tag_exists(self, path, tag: str) -> bool:
        _, code = self._run(["rev-parse", "-q", "--verify", f"refs/tags/{tag}"], cwd=str(path))
        return code == 0

    def add(self, path, pathspec: str = "-A") -> bool:
        args = ["add", "-A"] if pathspec == "-A" else ["add", "--", pathspec]
        _, code = self._run(args, cwd=str(path))
        return code == 0

    def commit(self, path, message: str) -> bool:
        """
        Commit what is staged.

        Returns:
            True if a commit was created
        """
        _, code = self._run(["commit", "-m", message], cwd=str(path))
        return code == 0

    def commit_all(self, path, message: str) -> bool:
        """Stage everything and commit."""
        return self.add(path) and self.commit(path, message)

    def tag(self, path, name: str, message: str) -> bool:
        """Create an annotated tag on HEAD."""
        _, code = self._run(["tag", "-a", name, "-m", message], cwd=str(path))
        return code == 0

    def push(self, path, remote: str = "origin", branch: Optional[str] = None) -> Tuple[bool, str]:
        """
        Push to remote.

        Returns:
            Tuple of (success, output)
        """
        args = ["push", remote]
        if branch:
            args.append(branch)
        output, code = self._run(args, cwd=str(path))
        return code == 0, output or ""
