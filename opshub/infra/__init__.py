"""
Infrastructure layer for opshub.

Thin wrappers over external processes:
- GitClient: git commands (status, commit, tag, push)
- CommandRunner: test suites, manifest validators, npm
"""

from .git_client import GitClient
from .command_runner import CommandRunner, CommandResult

__all__ = [
    'GitClient',
    'CommandRunner',
    'CommandResult',
]
