"""
Repository registry domain objects for opshub.

A RepositoryEntry describes one sibling repository of the workspace: where it
lives, which package ecosystem its manifest belongs to and what role it plays.
Entries are immutable after load and owned by a RepositoryRegistry, which
keeps the declaration order of the registry file.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Any, FrozenSet, Iterator, Optional, Tuple


class Ecosystem(Enum):
    """Package-manifest format of a repository."""
    CARGO = "cargo"
    NODE = "node"
    PYTHON = "python"
    GO = "go"
    NONE = "none"

    @classmethod
    def parse(cls, value: str) -> "Ecosystem":
        """Parse an ecosystem name, accepting the common aliases."""
        key = str(value).strip().lower()
        key = ECOSYSTEM_ALIASES.get(key, key)
        return cls(key)


ECOSYSTEM_ALIASES = {
    "rust": "cargo",
    "crates": "cargo",
    "typescript": "node",
    "javascript": "node",
    "npm": "node",
    "golang": "go",
    "pypi": "python",
}


class Role(Enum):
    """What a repository ships."""
    LIBRARY = "library"
    SERVICE = "service"
    SDK = "sdk"
    FRONTEND = "frontend"
    INFRASTRUCTURE = "infrastructure"
    TOOLING = "tooling"


@dataclass(frozen=True)
class RepositoryEntry:
    """One repository of the workspace."""
    name: str
    ecosystem: Ecosystem
    role: Role
    path: str = ""
    expected_files: FrozenSet[str] = frozenset()
    language: Optional[str] = None
    sdk_source: Optional[str] = None
    extra_manifests: Tuple[Tuple[Ecosystem, str], ...] = ()
    release: bool = True

    @property
    def relative_path(self) -> str:
        return self.path or self.name

    def location(self, workspace_root: Path) -> Path:
        """Absolute location of the checkout under the workspace root."""
        return Path(workspace_root) / self.relative_path

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'name': self.name,
            'ecosystem': self.ecosystem.value,
            'role': self.role.value,
            'path': self.relative_path,
            'release': self.release,
        }
        if self.expected_files:
            result['expected_files'] = sorted(self.expected_files)
        if self.language:
            result['language'] = self.language
        if self.sdk_source:
            result['sdk_source'] = self.sdk_source
        if self.extra_manifests:
            result['extra_manifests'] = {eco.value: p for eco, p in self.extra_manifests}
        return result


@dataclass(frozen=True)
class RepositoryRegistry:
    """Ordered, immutable collection of repository entries."""
    entries: Tuple[RepositoryEntry, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[RepositoryEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, name: str) -> Optional[RepositoryEntry]:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def by_role(self, role: Role) -> Tuple[RepositoryEntry, ...]:
        return tuple(e for e in self.entries if e.role == role)

    def releasable(self) -> Tuple[RepositoryEntry, ...]:
        return tuple(e for e in self.entries if e.release)

    def select(self, names) -> "RepositoryRegistry":
        """Restrict to the named entries, keeping registry order.

        Raises:
            KeyError: if a name is not in the registry
        """
        if not names:
            return self
        wanted = set(names)
        unknown = wanted - {e.name for e in self.entries}
        if unknown:
            raise KeyError(f"Unknown repositories: {', '.join(sorted(unknown))}")
        return RepositoryRegistry(tuple(e for e in self.entries if e.name in wanted))
