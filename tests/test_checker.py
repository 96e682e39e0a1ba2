"""
Tests for the consistency checker.

Tests cover:
- No false positives on a compliant repository
- Exactly one result per missing file per run
- Ecosystem-specific rules (Cargo, npm)
- Missing checkouts
"""

import json
from pathlib import Path

import pytest

from opshub.domain import Ecosystem, RepositoryEntry, RepositoryRegistry, Role, Severity
from opshub.services.checker_service import ConsistencyChecker, results_by_repository

COMPLIANT_CARGO = """[package]
name = "chert-node"
version = "1.2.0"
edition = "2024"
license = "MIT OR Apache-2.0"
"""


def make_repo(root: Path, name: str, files: dict, dirs=()) -> Path:
    repo = root / name
    repo.mkdir(parents=True)
    for relative, content in files.items():
        path = repo / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    for relative in dirs:
        (repo / relative).mkdir(parents=True, exist_ok=True)
    return repo


def compliant_cargo(root: Path, name: str = "chert-node", **overrides) -> Path:
    files = {
        "LICENSE": "MIT",
        "README.md": "# node",
        ".gitignore": "target/",
        "Cargo.toml": COMPLIANT_CARGO,
        "Cargo.lock": "",
        "deny.toml": "",
        "clippy.toml": "",
    }
    files.update(overrides)
    files = {k: v for k, v in files.items() if v is not None}
    return make_repo(root, name, files, dirs=[".github/workflows"])


def check(root, *entries):
    return ConsistencyChecker(root, RepositoryRegistry(tuple(entries))).run()


CARGO_ENTRY = RepositoryEntry("chert-node", Ecosystem.CARGO, Role.SERVICE)


class TestNoFalsePositives:
    """A repository with every required file yields no problems."""

    def test_compliant_cargo_repository(self, tmp_path):
        """Test that a fully compliant Rust repository passes every rule."""
        compliant_cargo(tmp_path)
        summary = check(tmp_path, CARGO_ENTRY)
        assert summary.problems() == []
        assert summary.errors == 0
        rules = {r.rule for r in summary.results}
        assert {"license", "readme", "gitignore", "manifest", "lockfile", "workflows",
                "edition", "cargo-license", "deny", "clippy"} <= rules

    def test_alternative_license_names(self, tmp_path):
        """Test that LICENSE-MIT satisfies the license rule."""
        compliant_cargo(tmp_path, LICENSE=None, **{"LICENSE-MIT": "MIT"})
        summary = check(tmp_path, CARGO_ENTRY)
        assert summary.problems() == []

    def test_workspace_inherited_fields(self, tmp_path):
        """Test that edition/license inherited from the workspace are accepted."""
        cargo = '[package]\nname = "x"\nedition.workspace = true\nlicense.workspace = true\n'
        compliant_cargo(tmp_path, **{"Cargo.toml": cargo})
        summary = check(tmp_path, CARGO_ENTRY)
        assert summary.problems() == []


class TestMissingFiles:
    """Each missing file yields exactly one result."""

    def test_missing_workflows_is_one_warning(self, tmp_path):
        """Test that missing .github/workflows adds one warning and no error."""
        compliant_cargo(tmp_path)
        baseline = check(tmp_path, CARGO_ENTRY)
        (tmp_path / "chert-node" / ".github" / "workflows").rmdir()

        summary = check(tmp_path, CARGO_ENTRY)
        problems = summary.problems()
        assert len(problems) == 1
        assert problems[0].rule == "workflows"
        assert problems[0].severity == Severity.WARNING
        assert summary.errors == baseline.errors
        assert summary.warnings == baseline.warnings + 1

    def test_missing_license_and_readme_are_errors(self, tmp_path):
        """Test that missing LICENSE and README.md are errors."""
        compliant_cargo(tmp_path, LICENSE=None, **{"README.md": None})
        summary = check(tmp_path, CARGO_ENTRY)
        assert summary.errors == 2
        assert sorted(r.rule for r in summary.problems()) == ["license", "readme"]

    def test_missing_manifest_reported_once(self, tmp_path):
        """Test that a missing manifest is one error and skips content rules."""
        compliant_cargo(tmp_path, **{"Cargo.toml": None})
        summary = check(tmp_path, CARGO_ENTRY)
        problems = summary.problems()
        assert [(r.rule, r.severity) for r in problems] == [("manifest", Severity.ERROR)]
        assert "edition" not in {r.rule for r in summary.results}

    def test_library_without_lockfile(self, tmp_path):
        """Test that a library may omit Cargo.lock but a binary may not."""
        library = COMPLIANT_CARGO + "\n[lib]\npath = \"src/lib.rs\"\n"
        compliant_cargo(tmp_path, "lib", **{"Cargo.toml": library, "Cargo.lock": None})
        compliant_cargo(tmp_path, "bin", **{"Cargo.lock": None})
        summary = check(
            tmp_path,
            RepositoryEntry("lib", Ecosystem.CARGO, Role.LIBRARY),
            RepositoryEntry("bin", Ecosystem.CARGO, Role.SERVICE),
        )
        problems = summary.problems()
        assert [(r.repository, r.rule) for r in problems] == [("bin", "lockfile")]

    def test_old_edition_and_single_license(self, tmp_path):
        """Test the edition and dual-license warnings."""
        cargo = '[package]\nname = "x"\nedition = "2021"\nlicense = "MIT"\n'
        compliant_cargo(tmp_path, **{"Cargo.toml": cargo, "deny.toml": None, "clippy.toml": None})
        summary = check(tmp_path, CARGO_ENTRY)
        assert sorted(r.rule for r in summary.problems()) == ["cargo-license", "deny", "edition"]
        assert summary.errors == 0
        clippy = [r for r in summary.results if r.rule == "clippy"]
        assert clippy[0].ok and "Consider" in clippy[0].message

    def test_expected_files(self, tmp_path):
        """Test per-repository expected files."""
        compliant_cargo(tmp_path)
        entry = RepositoryEntry("chert-node", Ecosystem.CARGO, Role.SERVICE,
                                expected_files=frozenset({"deny.toml", "docs/ARCHITECTURE.md"}))
        summary = check(tmp_path, entry)
        assert [r.rule for r in summary.problems()] == ["expected:docs/ARCHITECTURE.md"]


class TestNodeRules:
    """Tests for npm repository rules."""

    def test_scripts_and_lockfile(self, tmp_path):
        """Test lockfile and script checks on package.json."""
        package = {"name": "web", "scripts": {"test": "vitest"}}
        make_repo(tmp_path, "web", {
            "LICENSE": "", "README.md": "", ".gitignore": "",
            "package.json": json.dumps(package),
        }, dirs=[".github/workflows"])
        summary = check(tmp_path, RepositoryEntry("web", Ecosystem.NODE, Role.FRONTEND))
        assert sorted(r.rule for r in summary.problems()) == ["lint-script", "lockfile"]

    def test_pnpm_lockfile_accepted(self, tmp_path):
        """Test that pnpm-lock.yaml satisfies the lockfile rule."""
        package = {"name": "web", "scripts": {"test": "vitest", "lint": "eslint ."}}
        make_repo(tmp_path, "web", {
            "LICENSE": "", "README.md": "", ".gitignore": "",
            "package.json": json.dumps(package), "pnpm-lock.yaml": "",
        }, dirs=[".github/workflows"])
        summary = check(tmp_path, RepositoryEntry("web", Ecosystem.NODE, Role.FRONTEND))
        assert summary.problems() == []


class TestMissingRepository:
    """Tests for entries whose checkout does not exist."""

    def test_single_warning(self, tmp_path):
        """Test that a missing directory yields a single warning only."""
        summary = check(tmp_path, RepositoryEntry("ghost", Ecosystem.CARGO, Role.SERVICE))
        assert len(summary.results) == 1
        assert summary.results[0].rule == "directory"
        assert summary.warnings == 1
        assert summary.errors == 0

    def test_infrastructure_without_ecosystem(self, tmp_path):
        """Test that ecosystem none only runs the common rules."""
        make_repo(tmp_path, "infra", {"LICENSE": "", "README.md": "", ".gitignore": ""},
                  dirs=[".github/workflows"])
        summary = check(tmp_path, RepositoryEntry("infra", Ecosystem.NONE, Role.INFRASTRUCTURE))
        assert summary.problems() == []
        assert {r.rule for r in summary.results} == {"license", "readme", "gitignore", "workflows"}


def test_results_by_repository(tmp_path):
    """Test grouping of results, with and without ok ones."""
    compliant_cargo(tmp_path, "a", LICENSE=None)
    summary = check(
        tmp_path,
        RepositoryEntry("a", Ecosystem.CARGO, Role.SERVICE),
        RepositoryEntry("b", Ecosystem.CARGO, Role.SERVICE),
    )
    grouped = results_by_repository(summary.results)
    assert list(grouped) == ["a", "b"]
    assert [r.rule for r in grouped["a"]] == ["license"]
    assert [r.rule for r in grouped["b"]] == ["directory"]
    everything = results_by_repository(summary.results, include_ok=True)
    assert len(everything["a"]) == len([r for r in summary.results if r.repository == "a"])
