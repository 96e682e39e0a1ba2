"""
Consistency checker service for opshub.

Walks the Repository Registry and verifies that each checkout follows the
organization's standards: license, README, ignore file, ecosystem manifest,
lockfile, CI workflows and a few ecosystem-specific conventions. Every rule
yields exactly one CheckResult per repository; a missing checkout yields a
single warning and nothing else. The checker never writes anything.
"""

import json
import re
import tomllib
from pathlib import Path
from typing import Generator, Iterable, List, Optional

from ..config import logger
from ..domain.check import CheckResult, CheckSummary, Severity
from ..domain.repository import Ecosystem, RepositoryEntry, RepositoryRegistry

LICENSE_FILES = ("LICENSE", "LICENSE-MIT", "LICENSE-APACHE", "LICENSE.md", "LICENSE.txt")

MANIFEST_FILES = {
    Ecosystem.CARGO: ("Cargo.toml",),
    Ecosystem.NODE: ("package.json",),
    Ecosystem.PYTHON: ("pyproject.toml", "setup.py"),
    Ecosystem.GO: ("go.mod",),
}

LOCKFILES = {
    Ecosystem.CARGO: ("Cargo.lock",),
    Ecosystem.NODE: ("package-lock.json", "pnpm-lock.yaml", "yarn.lock"),
    Ecosystem.PYTHON: ("requirements.txt", "pyproject.toml"),
    Ecosystem.GO: ("go.sum",),
}

WORKFLOWS_DIR = ".github/workflows"
EDITION_PATTERN = re.compile(r'edition\s*=\s*"2024"|edition\.workspace\s*=\s*true')
CARGO_LICENSE_PATTERN = re.compile(r'license\s*=\s*"[^"]*MIT[^"]*Apache|license\.workspace\s*=\s*true')


def _first_existing(repo: Path, names: Iterable[str]) -> Optional[str]:
    for name in names:
        if (repo / name).is_file():
            return name
    return None


class ConsistencyChecker:
    """
    Checks every repository of a registry against the standard rules.

    Example:
        checker = ConsistencyChecker(workspace_root, registry)
        summary = checker.run()
        print(summary.errors, summary.warnings)
    """

    def __init__(self, workspace_root: Path, registry: RepositoryRegistry):
        self.workspace_root = Path(workspace_root)
        self.registry = registry

    def run(self) -> CheckSummary:
        """Check every repository and aggregate the results."""
        summary = CheckSummary()
        for result in self.iter_results():
            summary.add(result)
        return summary

    def iter_results(self) -> Generator[CheckResult, None, None]:
        for entry in self.registry:
            yield from self.check_repository(entry)

    def check_repository(self, entry: RepositoryEntry) -> Generator[CheckResult, None, None]:
        repo = entry.location(self.workspace_root)
        if not repo.is_dir():
            logger.debug(f"{entry.name}: directory not found at {repo}")
            yield CheckResult(entry.name, "directory", Severity.WARNING, "Directory not found")
            return

        yield self._require(entry, "license", _first_existing(repo, LICENSE_FILES),
                            Severity.ERROR, "Missing LICENSE file")
        yield self._require(entry, "readme", _first_existing(repo, ("README.md",)),
                            Severity.ERROR, "Missing README.md")
        yield self._require(entry, "gitignore", _first_existing(repo, (".gitignore",)),
                            Severity.WARNING, "Missing .gitignore")

        if entry.ecosystem in MANIFEST_FILES:
            yield from self._check_ecosystem(entry, repo)

        has_workflows = (repo / WORKFLOWS_DIR).is_dir()
        yield self._require(entry, "workflows", WORKFLOWS_DIR if has_workflows else None,
                            Severity.WARNING, f"Missing {WORKFLOWS_DIR} directory")

        for relative in sorted(entry.expected_files):
            found = relative if (repo / relative).exists() else None
            yield self._require(entry, f"expected:{relative}", found,
                                Severity.WARNING, f"Missing {relative}")

    @staticmethod
    def _require(entry: RepositoryEntry, rule: str, found: Optional[str],
                 severity: Severity, message: str) -> CheckResult:
        if found:
            return CheckResult(entry.name, rule, Severity.OK, f"{found} present")
        return CheckResult(entry.name, rule, severity, message)

    def _check_ecosystem(self, entry: RepositoryEntry, repo: Path) -> Generator[CheckResult, None, None]:
        names = MANIFEST_FILES[entry.ecosystem]
        manifest = _first_existing(repo, names)
        if manifest is None:
            yield CheckResult(entry.name, "manifest", Severity.ERROR, f"Missing {' or '.join(names)}")
            return
        yield CheckResult(entry.name, "manifest", Severity.OK, f"{manifest} present")

        if entry.ecosystem == Ecosystem.CARGO:
            yield from self._check_cargo(entry, repo)
        elif entry.ecosystem == Ecosystem.NODE:
            yield from self._check_node(entry, repo)
        else:
            lockfiles = LOCKFILES[entry.ecosystem]
            yield self._require(entry, "lockfile", _first_existing(repo, lockfiles),
                                Severity.WARNING, f"Missing {' or '.join(lockfiles)}")

    def _check_cargo(self, entry: RepositoryEntry, repo: Path) -> Generator[CheckResult, None, None]:
        text = (repo / "Cargo.toml").read_text()

        if (repo / "Cargo.lock").is_file():
            yield CheckResult(entry.name, "lockfile", Severity.OK, "Cargo.lock present")
        elif _is_library(text):
            yield CheckResult(entry.name, "lockfile", Severity.OK,
                              "Library without Cargo.lock (OK for libraries)")
        else:
            yield CheckResult(entry.name, "lockfile", Severity.WARNING,
                              "Binary/application missing Cargo.lock")

        if EDITION_PATTERN.search(text):
            yield CheckResult(entry.name, "edition", Severity.OK, "Edition 2024")
        else:
            yield CheckResult(entry.name, "edition", Severity.WARNING,
                              "Not using edition 2024 or workspace edition")

        if CARGO_LICENSE_PATTERN.search(text):
            yield CheckResult(entry.name, "cargo-license", Severity.OK, "Dual MIT/Apache-2.0 license")
        else:
            yield CheckResult(entry.name, "cargo-license", Severity.WARNING,
                              "Missing dual MIT/Apache-2.0 license")

        yield self._require(entry, "deny", _first_existing(repo, ("deny.toml",)),
                            Severity.WARNING, "Missing deny.toml for cargo-deny")

        if (repo / "clippy.toml").is_file():
            yield CheckResult(entry.name, "clippy", Severity.OK, "clippy.toml present")
        else:
            yield CheckResult(entry.name, "clippy", Severity.OK,
                              "Consider adding clippy.toml for lint configuration")

    def _check_node(self, entry: RepositoryEntry, repo: Path) -> Generator[CheckResult, None, None]:
        lockfiles = LOCKFILES[Ecosystem.NODE]
        yield self._require(entry, "lockfile", _first_existing(repo, lockfiles),
                            Severity.WARNING, "Missing lockfile (package-lock.json or pnpm-lock.yaml)")

        try:
            scripts = json.loads((repo / "package.json").read_text()).get("scripts") or {}
        except (json.JSONDecodeError, AttributeError):
            scripts = {}
        for script in ("test", "lint"):
            rule = f"{script}-script"
            if script in scripts:
                yield CheckResult(entry.name, rule, Severity.OK, f"'{script}' script defined")
            else:
                yield CheckResult(entry.name, rule, Severity.WARNING,
                                  f"Missing '{script}' script in package.json")


def _is_library(cargo_text: str) -> bool:
    try:
        return "lib" in tomllib.loads(cargo_text)
    except tomllib.TOMLDecodeError:
        return bool(re.search(r'^\[lib\]', cargo_text, re.MULTILINE))


def results_by_repository(results: Iterable[CheckResult], include_ok: bool = False):
    """Group results by repository, keeping order; ok results only with include_ok."""
    grouped = {}
    for result in results:
        if include_ok or not result.ok:
            grouped.setdefault(result.repository, []).append(result)
    return grouped
