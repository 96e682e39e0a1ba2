"""
Tests for manifest reading, rewriting and version setting.

Tests cover:
- Cargo.toml dependency tables (simple, inline, target, workspace)
- package.json dependency sections
- pyproject.toml (PEP 621, Poetry) and requirements.txt
- go.mod require directives
- get_version / set_version per ecosystem
"""

import json
import tomllib
from unittest.mock import MagicMock

import pytest

from opshub.domain.dependency import DependencySpec, PinPolicy
from opshub.domain.repository import Ecosystem
from opshub.infra.command_runner import CommandResult
from opshub.manifests import (
    LOCKED,
    UNSUPPORTED,
    CargoManifest,
    GoManifest,
    NodeManifest,
    PythonManifest,
    get_version,
    manifest_for,
    set_version,
)


def specs(ecosystem, *entries):
    """Build a for_ecosystem()-style mapping from (name, constraint[, pin]) tuples."""
    result = {}
    for entry in entries:
        name, constraint = entry[0], entry[1]
        pin = entry[2] if len(entry) > 2 else PinPolicy.RANGE
        spec = DependencySpec(ecosystem, "core", name, constraint, pin)
        key = name.lower().replace("_", "-") if ecosystem == Ecosystem.PYTHON else name
        result[key] = spec
    return result


CARGO_TOML = """[package]
name = "chert-node"
version = "1.2.0"
edition = "2024"

[dependencies]
sha3 = "0.10.6"  # hashing
serde = { version = "1.0.190", features = ["derive"] }
tokio = { features = ["full"], version = "1.32.0" }
"anyhow" = "1.0.75"
local = { path = "../local" }

[dependencies.blake3]
version = "1.4.0"

[dev-dependencies]
proptest = "1.2.0"

[target.'cfg(unix)'.dependencies]
libc = "0.2.140"
"""


class TestCargoManifest:
    """Tests for Cargo.toml rewriting."""

    def test_simple_entry(self):
        """Test the sha3 0.10.6 -> 0.10.8 rewrite keeps the trailing comment."""
        new, changes = CargoManifest.plan(None, CARGO_TOML, specs(Ecosystem.CARGO, ("sha3", "0.10.8")))
        assert 'sha3 = "0.10.8"  # hashing\n' in new
        assert [(c.package, c.old, c.new, c.applied) for c in changes] == [("sha3", "0.10.6", "0.10.8", True)]

    def test_inline_tables(self):
        """Test that inline tables are rewritten wherever version sits."""
        new, changes = CargoManifest.plan(None, CARGO_TOML, specs(
            Ecosystem.CARGO, ("serde", "1.0.193"), ("tokio", "1.35.0", PinPolicy.EXACT)))
        data = tomllib.loads(new)
        assert data["dependencies"]["serde"] == {"version": "1.0.193", "features": ["derive"]}
        assert data["dependencies"]["tokio"]["version"] == "=1.35.0"
        assert len(changes) == 2

    def test_quoted_key_dev_and_target_tables(self):
        """Test quoted keys, dev-dependencies and target-specific tables."""
        new, changes = CargoManifest.plan(None, CARGO_TOML, specs(
            Ecosystem.CARGO, ("anyhow", "1.0.79"), ("proptest", "1.4.0"), ("libc", "0.2.150")))
        data = tomllib.loads(new)
        assert data["dependencies"]["anyhow"] == "1.0.79"
        assert data["dev-dependencies"]["proptest"] == "1.4.0"
        assert data["target"]["cfg(unix)"]["dependencies"]["libc"] == "0.2.150"
        assert all(c.applied for c in changes)

    def test_unmatched_bytes_are_identical(self):
        """Test that only the matched line differs after a rewrite."""
        new, _ = CargoManifest.plan(None, CARGO_TOML, specs(Ecosystem.CARGO, ("sha3", "0.10.8")))
        old_lines, new_lines = CARGO_TOML.splitlines(), new.splitlines()
        assert len(old_lines) == len(new_lines)
        differing = [i for i, (a, b) in enumerate(zip(old_lines, new_lines)) if a != b]
        assert len(differing) == 1
        assert old_lines[differing[0]].startswith("sha3")

    def test_sub_table_reported_unsupported(self):
        """Test that a [dependencies.x] sub-table is reported, not rewritten."""
        new, changes = CargoManifest.plan(None, CARGO_TOML, specs(Ecosystem.CARGO, ("blake3", "1.5.0")))
        assert new == CARGO_TOML
        assert len(changes) == 1
        assert changes[0].reason == UNSUPPORTED
        assert not changes[0].applied

    def test_locked_reported_not_rewritten(self):
        """Test that a locked spec never changes the manifest."""
        new, changes = CargoManifest.plan(None, CARGO_TOML, specs(
            Ecosystem.CARGO, ("sha3", "0.10.8", PinPolicy.LOCKED)))
        assert new == CARGO_TOML
        assert changes[0].reason == LOCKED

    def test_package_version_is_not_a_dependency(self):
        """Test that [package] version is never touched by a sync."""
        new, changes = CargoManifest.plan(None, CARGO_TOML, specs(Ecosystem.CARGO, ("version", "9.9.9")))
        assert new == CARGO_TOML
        assert changes == []

    def test_idempotent(self):
        """Test that a second plan over the rewritten text changes nothing."""
        lookup = specs(Ecosystem.CARGO, ("sha3", "0.10.8"), ("serde", "1.0.193"))
        once, _ = CargoManifest.plan(None, CARGO_TOML, lookup)
        twice, changes = CargoManifest.plan(None, once, lookup)
        assert twice == once
        assert changes == []

    def test_workspace_dependencies(self):
        """Test that [workspace.dependencies] is rewritten."""
        text = '[workspace]\nmembers = ["a"]\n\n[workspace.dependencies]\nsha3 = "0.10.6"\n'
        new, _ = CargoManifest.plan(None, text, specs(Ecosystem.CARGO, ("sha3", "0.10.8")))
        assert tomllib.loads(new)["workspace"]["dependencies"]["sha3"] == "0.10.8"

    def test_invalid_toml_raises(self):
        """Test that an unparseable manifest raises ValueError."""
        with pytest.raises(ValueError):
            CargoManifest.plan(None, "[dependencies\n", {})


PACKAGE_JSON = """{
  "name": "chert-explorer",
  "version": "0.4.0",
  "dependencies": {
    "react": "^18.0.0",
    "axios": "1.5.0"
  },
  "devDependencies": {
    "typescript": "~5.1.0",
    "react": "^18.0.0"
  }
}
"""


class TestNodeManifest:
    """Tests for package.json rewriting."""

    def test_rewrites_each_section(self):
        """Test that every dependency section is rewritten."""
        new, changes = NodeManifest.plan(None, PACKAGE_JSON, specs(Ecosystem.NODE, ("react", "18.2.0")))
        data = json.loads(new)
        assert data["dependencies"]["react"] == "^18.2.0"
        assert data["devDependencies"]["react"] == "^18.2.0"
        assert {c.table for c in changes} == {"dependencies", "devDependencies"}

    def test_exact_pin_and_formatting(self):
        """Test exact pins and that indentation is preserved."""
        new, _ = NodeManifest.plan(None, PACKAGE_JSON, specs(Ecosystem.NODE, ("axios", "1.6.2", PinPolicy.EXACT)))
        assert '    "axios": "1.6.2"\n' in new
        assert new.replace('"1.6.2"', '"1.5.0"') == PACKAGE_JSON

    def test_top_level_version_untouched(self):
        """Test that the package's own version is not a dependency."""
        new, _ = NodeManifest.plan(None, PACKAGE_JSON, specs(Ecosystem.NODE, ("version", "9.9.9")))
        assert new == PACKAGE_JSON

    def test_verify_rejects_non_object(self):
        """Test verification of package.json."""
        NodeManifest.verify(None, PACKAGE_JSON)
        with pytest.raises(ValueError):
            NodeManifest.verify(None, "[]")
        with pytest.raises(ValueError):
            NodeManifest.verify(None, "{")


PYPROJECT = """[project]
name = "chert-sdk"
version = "1.1.0"
dependencies = [
    "requests>=2.28.0",
    "pydantic[email]==2.4.0; python_version >= '3.9'",
    "click",
]

[project.optional-dependencies]
test = ["pytest>=7.0"]
"""


class TestPythonManifest:
    """Tests for pyproject.toml and requirements.txt rewriting."""

    def test_pep621_rewrite(self, tmp_path):
        """Test that requirement strings keep their extras and markers."""
        new, changes = PythonManifest.plan(tmp_path / "pyproject.toml", PYPROJECT, specs(
            Ecosystem.PYTHON, ("requests", "2.31.0"), ("pydantic", "2.5.0", PinPolicy.EXACT), ("pytest", "8.0.0")))
        data = tomllib.loads(new)
        deps = data["project"]["dependencies"]
        assert deps[0] == "requests>=2.31.0"
        assert deps[1] == "pydantic[email]==2.5.0; python_version >= '3.9'"
        assert deps[2] == "click"
        assert data["project"]["optional-dependencies"]["test"] == ["pytest>=8.0.0"]
        assert len(changes) == 3

    def test_matching_specifier_unchanged(self, tmp_path):
        """Test that an equivalent specifier is left alone."""
        new, changes = PythonManifest.plan(tmp_path / "pyproject.toml", PYPROJECT,
                                           specs(Ecosystem.PYTHON, ("requests", "2.28.0")))
        assert new == PYPROJECT
        assert changes == []

    def test_requirements_txt(self, tmp_path):
        """Test requirements.txt lines, comments and options."""
        text = "-r base.txt\nrequests==2.28.0  # http\nrich>=13\n"
        new, changes = PythonManifest.plan(tmp_path / "requirements.txt", text,
                                           specs(Ecosystem.PYTHON, ("requests", "2.31.0")))
        assert new == "-r base.txt\nrequests>=2.31.0  # http\nrich>=13\n"
        assert changes[0].old == "==2.28.0"

    def test_normalized_names(self, tmp_path):
        """Test that registry names match regardless of case and separators."""
        text = "Typing_Extensions==4.5.0\n"
        new, _ = PythonManifest.plan(tmp_path / "requirements.txt", text,
                                     specs(Ecosystem.PYTHON, ("typing-extensions", "4.9.0")))
        assert new == "Typing_Extensions>=4.9.0\n"

    def test_poetry_table(self, tmp_path):
        """Test that Poetry dependency tables are rewritten like Cargo ones."""
        text = '[tool.poetry]\nname = "x"\n\n[tool.poetry.dependencies]\npython = "^3.11"\nrequests = "^2.28"\n'
        new, _ = PythonManifest.plan(tmp_path / "pyproject.toml", text,
                                     specs(Ecosystem.PYTHON, ("requests", "^2.31")))
        assert tomllib.loads(new)["tool"]["poetry"]["dependencies"]["requests"] == "^2.31"

    def test_verify_requirements(self, tmp_path):
        """Test requirements.txt verification."""
        PythonManifest.verify(tmp_path / "requirements.txt", "requests>=2\n# comment\n")
        with pytest.raises(ValueError):
            PythonManifest.verify(tmp_path / "requirements.txt", "requests>=>2\n")

    def test_hash_pinned_requirement_reported(self, tmp_path):
        """Test that a hash-pinned line is reported as unsupported, not skipped."""
        text = "httpx==0.25.0 \\\n    --hash=sha256:abc\nrich>=13\n"
        new, changes = PythonManifest.plan(tmp_path / "requirements.txt", text,
                                           specs(Ecosystem.PYTHON, ("httpx", "0.27.0")))
        assert new == text
        assert len(changes) == 1
        assert changes[0].package == "httpx"
        assert not changes[0].applied
        assert changes[0].reason == "unsupported"

    def test_continuation_without_hashes(self, tmp_path):
        """Test that a requirement followed by continued options is still rewritten."""
        text = "httpx==0.25.0 \\\n    --config-settings=x=1\n"
        new, changes = PythonManifest.plan(tmp_path / "requirements.txt", text,
                                           specs(Ecosystem.PYTHON, ("httpx", "0.27.0")))
        assert new == "httpx>=0.27.0 \\\n    --config-settings=x=1\n"
        assert changes[0].applied

    def test_url_references(self, tmp_path):
        """Test that VCS references are left alone and named ones are reported."""
        text = ("httpx==0.25.0\n"
                "git+https://github.com/org/lib.git#egg=lib\n"
                "pydantic @ https://example.com/pydantic-2.0.tar.gz\n")
        new, changes = PythonManifest.plan(tmp_path / "requirements.txt", text, specs(
            Ecosystem.PYTHON, ("httpx", "0.27.0"), ("lib", "1.0.0"), ("pydantic", "2.7.1")))
        assert new.splitlines()[0] == "httpx>=0.27.0"
        assert new.splitlines()[1:] == text.splitlines()[1:]
        unsupported = {c.package for c in changes if c.reason == "unsupported"}
        assert unsupported == {"lib", "pydantic"}
        PythonManifest.verify(tmp_path / "requirements.txt", new)

    def test_verify_accepts_pip_syntax(self, tmp_path):
        """Test that pip-only lines do not fail verification."""
        PythonManifest.verify(tmp_path / "requirements.txt",
                              "-e .\n--index-url https://pypi.org/simple\n"
                              "git+https://github.com/org/lib.git#egg=lib\n./vendor/pkg.whl\n"
                              "httpx==0.27.0 \\\n    --hash=sha256:abc\n")


GO_MOD = """module github.com/chert/sdk-go

go 1.21

require github.com/stretchr/testify v1.8.0

require (
\tgolang.org/x/crypto v0.14.0
\tgithub.com/gorilla/websocket v1.5.0 // indirect
)
"""


class TestGoManifest:
    """Tests for go.mod rewriting."""

    def test_single_and_block_requires(self):
        """Test rewriting single-line and block require directives."""
        new, changes = GoManifest.plan(None, GO_MOD, specs(
            Ecosystem.GO, ("github.com/stretchr/testify", "1.8.4"), ("golang.org/x/crypto", "v0.17.0"),
            ("github.com/gorilla/websocket", "1.5.1")))
        assert "require github.com/stretchr/testify v1.8.4\n" in new
        assert "\tgolang.org/x/crypto v0.17.0\n" in new
        assert "\tgithub.com/gorilla/websocket v1.5.1 // indirect\n" in new
        assert len(changes) == 3
        GoManifest.verify(None, new)

    def test_verify(self):
        """Test go.mod verification."""
        with pytest.raises(ValueError):
            GoManifest.verify(None, "go 1.21\n")
        with pytest.raises(ValueError):
            GoManifest.verify(None, "module x\nrequire (\n")


class TestVersions:
    """Tests for get_version / set_version."""

    def test_cargo(self, fs):
        """Test reading and writing the Cargo package version."""
        fs.create_file("/w/node/Cargo.toml", contents=CARGO_TOML)
        assert get_version("/w/node", Ecosystem.CARGO) == "1.2.0"
        written = set_version("/w/node", Ecosystem.CARGO, "1.3.0")
        assert written == ["/w/node/Cargo.toml"]
        assert get_version("/w/node", Ecosystem.CARGO) == "1.3.0"
        # Dependency versions stay untouched
        data = tomllib.loads(open("/w/node/Cargo.toml").read())
        assert data["dependencies"]["serde"]["version"] == "1.0.190"

    def test_cargo_workspace_version(self, fs):
        """Test that a workspace package version is reported."""
        fs.create_file("/w/ws/Cargo.toml", contents='[workspace.package]\nversion = "2.0.0"\n')
        assert get_version("/w/ws", Ecosystem.CARGO) == "2.0.0"

    def test_node_textual_without_npm(self, fs):
        """Test the textual fallback when npm is not installed."""
        fs.create_file("/w/web/package.json", contents=PACKAGE_JSON)
        runner = MagicMock()
        runner.available.return_value = False
        assert set_version("/w/web", Ecosystem.NODE, "0.5.0", runner=runner) == ["/w/web/package.json"]
        assert get_version("/w/web", Ecosystem.NODE) == "0.5.0"
        runner.run.assert_not_called()

    def test_node_uses_npm(self, fs):
        """Test that npm version is used when available."""
        fs.create_file("/w/web/package.json", contents=PACKAGE_JSON)
        runner = MagicMock()
        runner.available.return_value = True
        runner.run.return_value = CommandResult("npm version", 0, "v0.5.0\n", "")
        set_version("/w/web", Ecosystem.NODE, "0.5.0", runner=runner)
        args = runner.run.call_args[0][0]
        assert args[:3] == ["npm", "version", "0.5.0"]
        assert "--no-git-tag-version" in args

    def test_node_npm_failure(self, fs):
        """Test that a failing npm raises RuntimeError."""
        fs.create_file("/w/web/package.json", contents=PACKAGE_JSON)
        runner = MagicMock()
        runner.available.return_value = True
        runner.run.return_value = CommandResult("npm version", 1, "", "npm ERR! bad")
        with pytest.raises(RuntimeError, match="npm version failed"):
            set_version("/w/web", Ecosystem.NODE, "0.5.0", runner=runner)

    def test_python(self, fs):
        """Test pyproject, setup.py and __init__ version updates."""
        fs.create_file("/w/sdk/pyproject.toml", contents=PYPROJECT)
        fs.create_file("/w/sdk/setup.py", contents='setup(name="x", version="1.1.0")\n')
        fs.create_file("/w/sdk/chert_sdk/__init__.py", contents='__version__ = "1.1.0"\n')
        written = set_version("/w/sdk", Ecosystem.PYTHON, "1.2.0")
        assert len(written) == 3
        assert get_version("/w/sdk", Ecosystem.PYTHON) == "1.2.0"
        assert open("/w/sdk/chert_sdk/__init__.py").read() == '__version__ = "1.2.0"\n'

    def test_go_and_none_write_nothing(self, fs):
        """Test that go and none ecosystems have no manifest version."""
        fs.create_file("/w/go/go.mod", contents=GO_MOD)
        assert set_version("/w/go", Ecosystem.GO, "1.0.0") == []
        assert get_version("/w/go", Ecosystem.GO) is None
        assert set_version("/w/go", Ecosystem.NONE, "1.0.0") == []
        assert manifest_for(Ecosystem.NONE) is None

    def test_missing_manifest(self, fs):
        """Test that a missing manifest yields no version and no writes."""
        fs.create_dir("/w/empty")
        assert get_version("/w/empty", Ecosystem.CARGO) is None
        assert set_version("/w/empty", Ecosystem.CARGO, "1.0.0") == []
