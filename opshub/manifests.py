"""
Manifest readers and writers for each package ecosystem.

Handles, per ecosystem:
- Cargo (Cargo.toml): dependency tables, [package] version
- Node.js (package.json): dependency maps, top-level version
- Python (pyproject.toml, requirements.txt, setup.py): PEP 508 requirements,
  Poetry dependency tables, project version
- Go (go.mod): require directives; the module version lives in git tags

Dependency rewriting is textual so that every byte the registry does not
govern stays as it was. The structural parser of each format decides what is
declared and verifies the rewritten text. Declarations the textual patterns
cannot reach (e.g. ``[dependencies.sha3]`` sub-tables) are reported as
unsupported instead of being changed.
"""

import json
import re
import tomllib
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from packaging.requirements import Requirement, InvalidRequirement
from packaging.specifiers import SpecifierSet, InvalidSpecifier

from .domain.dependency import DependencySpec, package_key
from .domain.operation import ManifestChange
from .domain.repository import Ecosystem

Lookup = Callable[[str], Optional[DependencySpec]]

UNSUPPORTED = "unsupported"
LOCKED = "locked"


def _lookup_for(ecosystem: Ecosystem, specs: Dict[str, DependencySpec]) -> Lookup:
    def lookup(name: str) -> Optional[DependencySpec]:
        return specs.get(package_key(ecosystem, name))
    return lookup


def _mark_unreached(changes: List[ManifestChange], drift: List[ManifestChange]) -> None:
    """Append structural drift that the textual rewrite did not reach."""
    reached = {c.package for c in changes}
    for change in drift:
        if change.package not in reached:
            changes.append(change)


# ============================================================================
# TOML dependency tables (Cargo, Poetry)
# ============================================================================

TOML_HEADER = re.compile(r'^\s*\[\[?\s*([^\[\]]+?)\s*\]\]?\s*(?:#.*)?$')
DEPENDENCY_TABLE = re.compile(
    r'^(?:workspace\.|target\..+\.|tool\.poetry\.(?:group\.[^.]+\.)?)?'
    r'(?:dev-|build-)?dependencies$'
)
SIMPLE_ENTRY = re.compile(
    r'^(?P<lead>\s*(?P<q>["\']?)(?P<name>[A-Za-z0-9_\-]+)(?P=q)\s*=\s*)"(?P<value>[^"]*)"'
)
INLINE_ENTRY = re.compile(
    r'^(?P<lead>\s*(?P<q>["\']?)(?P<name>[A-Za-z0-9_\-]+)(?P=q)\s*=\s*\{(?:[^}]*?,)?\s*version\s*=\s*)'
    r'"(?P<value>[^"]*)"'
)
DEPENDENCY_KINDS = ("dependencies", "dev-dependencies", "build-dependencies")


def _toml_dependency_tables(data: dict) -> Iterator[Tuple[str, dict]]:
    """Yield (label, table) for every dependency table of a parsed manifest."""
    for kind in DEPENDENCY_KINDS:
        if isinstance(data.get(kind), dict):
            yield kind, data[kind]
    workspace = data.get("workspace", {})
    if isinstance(workspace.get("dependencies"), dict):
        yield "workspace.dependencies", workspace["dependencies"]
    for cfg, target in (data.get("target") or {}).items():
        for kind in DEPENDENCY_KINDS:
            if isinstance(target, dict) and isinstance(target.get(kind), dict):
                yield f"target.{cfg}.{kind}", target[kind]
    poetry = data.get("tool", {}).get("poetry", {})
    for kind in ("dependencies", "dev-dependencies"):
        if isinstance(poetry.get(kind), dict):
            yield f"tool.poetry.{kind}", poetry[kind]
    for group, table in (poetry.get("group") or {}).items():
        if isinstance(table, dict) and isinstance(table.get("dependencies"), dict):
            yield f"tool.poetry.group.{group}.dependencies", table["dependencies"]


def _declared_version(value) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and isinstance(value.get("version"), str):
        return value["version"]
    return None


def _toml_drift(data: dict, lookup: Lookup) -> List[ManifestChange]:
    """Declared entries whose version differs from the registry."""
    drift = []
    for label, table in _toml_dependency_tables(data):
        for name, value in table.items():
            spec = lookup(name)
            current = _declared_version(value)
            if spec is None or current is None:
                continue
            target = spec.render()
            if current != target:
                reason = LOCKED if not spec.rewritable else UNSUPPORTED
                drift.append(ManifestChange(name, label, current, target, applied=False, reason=reason))
    return drift


def rewrite_toml_dependencies(text: str, lookup: Lookup) -> Tuple[str, List[ManifestChange]]:
    """Rewrite ``name = "v"`` and ``name = { version = "v", ... }`` entries."""
    lines = text.splitlines(keepends=True)
    changes: List[ManifestChange] = []
    table = None
    for index, line in enumerate(lines):
        header = TOML_HEADER.match(line)
        if header:
            table = header.group(1).replace(" ", "")
            continue
        if table is None or not DEPENDENCY_TABLE.match(table):
            continue
        match = SIMPLE_ENTRY.match(line) or INLINE_ENTRY.match(line)
        if not match:
            continue
        spec = lookup(match.group("name"))
        if spec is None or not spec.rewritable:
            continue
        target = spec.render()
        if match.group("value") == target:
            continue
        lines[index] = f'{match.group("lead")}"{target}"' + line[match.end():]
        changes.append(ManifestChange(match.group("name"), table, match.group("value"), target))
    return "".join(lines), changes


def _plan_toml(text: str, lookup: Lookup) -> Tuple[str, List[ManifestChange]]:
    data = tomllib.loads(text)
    new_text, changes = rewrite_toml_dependencies(text, lookup)
    _mark_unreached(changes, _toml_drift(data, lookup))
    return new_text, changes


# ============================================================================
# Cargo
# ============================================================================

PACKAGE_VERSION_LINE = re.compile(r'^version\s*=\s*"[^"]*"', re.MULTILINE)


class CargoManifest:
    """Manage Cargo.toml files."""

    ecosystem = Ecosystem.CARGO
    filenames = ("Cargo.toml",)

    @staticmethod
    def plan(path: Path, text: str, specs: Dict[str, DependencySpec]) -> Tuple[str, List[ManifestChange]]:
        return _plan_toml(text, _lookup_for(Ecosystem.CARGO, specs))

    @staticmethod
    def verify(path: Path, text: str) -> None:
        """Raise ValueError if the text is not valid TOML."""
        tomllib.loads(text)

    @staticmethod
    def get_version(repo_path) -> Optional[str]:
        """Get current version from Cargo.toml."""
        cargo_toml = Path(repo_path) / "Cargo.toml"
        if not cargo_toml.exists():
            return None
        try:
            data = tomllib.loads(cargo_toml.read_text())
        except (tomllib.TOMLDecodeError, OSError):
            return None
        version = data.get("package", {}).get("version")
        if isinstance(version, str):
            return version
        version = data.get("workspace", {}).get("package", {}).get("version")
        return version if isinstance(version, str) else None

    @staticmethod
    def set_version(repo_path, new_version: str, runner=None) -> List[str]:
        """Rewrite the first column-0 ``version = "..."`` line of Cargo.toml."""
        cargo_toml = Path(repo_path) / "Cargo.toml"
        if not cargo_toml.exists():
            return []
        content = cargo_toml.read_text()
        new_content = PACKAGE_VERSION_LINE.sub(f'version = "{new_version}"', content, count=1)
        if new_content == content:
            return []
        cargo_toml.write_text(new_content)
        return [str(cargo_toml)]


# ============================================================================
# Node.js
# ============================================================================

NODE_SECTIONS = ("dependencies", "devDependencies", "peerDependencies", "optionalDependencies")
NODE_VERSION_FIELD = re.compile(r'("version"\s*:\s*)"[^"]*"')


def _replace_in_json_section(text: str, section: str, name: str, old: str, new: str) -> Tuple[str, bool]:
    opening = re.search(r'"%s"\s*:\s*\{' % re.escape(section), text)
    if not opening:
        return text, False
    end = text.find('}', opening.end())
    if end < 0:
        return text, False
    body = text[opening.end():end]
    entry = re.compile(r'(%s\s*:\s*)%s' % (re.escape(json.dumps(name)), re.escape(json.dumps(old))))
    new_body, count = entry.subn(lambda m: m.group(1) + json.dumps(new), body, count=1)
    if not count:
        return text, False
    return text[:opening.end()] + new_body + text[end:], True


class NodeManifest:
    """Manage package.json files."""

    ecosystem = Ecosystem.NODE
    filenames = ("package.json",)

    @staticmethod
    def plan(path: Path, text: str, specs: Dict[str, DependencySpec]) -> Tuple[str, List[ManifestChange]]:
        lookup = _lookup_for(Ecosystem.NODE, specs)
        data = json.loads(text)
        changes = []
        new_text = text
        for section in NODE_SECTIONS:
            deps = data.get(section)
            if not isinstance(deps, dict):
                continue
            for name, current in deps.items():
                spec = lookup(name)
                if spec is None or not isinstance(current, str):
                    continue
                target = spec.render()
                if current == target:
                    continue
                if not spec.rewritable:
                    changes.append(ManifestChange(name, section, current, target, applied=False, reason=LOCKED))
                    continue
                new_text, replaced = _replace_in_json_section(new_text, section, name, current, target)
                changes.append(ManifestChange(
                    name, section, current, target,
                    applied=replaced, reason=None if replaced else UNSUPPORTED,
                ))
        return new_text, changes

    @staticmethod
    def verify(path: Path, text: str) -> None:
        """Raise ValueError if the text is not a JSON object."""
        if not isinstance(json.loads(text), dict):
            raise ValueError("package.json must contain a JSON object")

    @staticmethod
    def get_version(repo_path) -> Optional[str]:
        """Get current version from package.json."""
        package_json = Path(repo_path) / "package.json"
        if package_json.exists():
            try:
                data = json.loads(package_json.read_text())
                return data.get('version')
            except (json.JSONDecodeError, OSError):
                pass
        return None

    @staticmethod
    def set_version(repo_path, new_version: str, runner=None) -> List[str]:
        """Bump with ``npm version`` when npm is installed, else edit the field."""
        package_json = Path(repo_path) / "package.json"
        if not package_json.exists():
            return []
        if runner is not None and runner.available("npm"):
            result = runner.run(
                ["npm", "version", new_version, "--no-git-tag-version", "--allow-same-version"],
                cwd=repo_path,
            )
            if not result.ok:
                raise RuntimeError(f"npm version failed: {result.output.strip()}")
            return [str(package_json)]
        content = package_json.read_text()
        new_content = NODE_VERSION_FIELD.sub(rf'\g<1>"{new_version}"', content, count=1)
        if new_content == content:
            return []
        package_json.write_text(new_content)
        return [str(package_json)]


# ============================================================================
# Python
# ============================================================================

QUOTED = re.compile(r'(["\'])(.*?)\1')
ARRAY_START = re.compile(r'^\s*(?P<key>[A-Za-z0-9_.\-"\']+)\s*=\s*\[')
SETUP_VERSION = re.compile(r'(version\s*=\s*["\'])([^"\']+)(["\'])')
INIT_VERSION = re.compile(r'(__version__\s*=\s*["\'])([^"\']+)(["\'])')


def _format_requirement(req: Requirement, specifier: str) -> str:
    text = req.name
    if req.extras:
        text += "[" + ",".join(sorted(req.extras)) + "]"
    text += specifier
    if req.marker:
        text += f"; {req.marker}"
    return text


def _requirement_change(raw: str, lookup: Lookup, table: str) -> Optional[Tuple[ManifestChange, str]]:
    """Return (change, rewritten requirement) when ``raw`` drifts from the registry."""
    try:
        req = Requirement(raw)
    except InvalidRequirement:
        return None
    spec = lookup(req.name)
    if spec is None:
        return None
    target = spec.render()
    if req.url:
        return ManifestChange(req.name, table, req.url, target, applied=False, reason=UNSUPPORTED), raw
    old = str(req.specifier)
    try:
        if req.specifier == SpecifierSet(target):
            return None
    except InvalidSpecifier:
        return ManifestChange(req.name, table, old, target, applied=False, reason=UNSUPPORTED), raw
    if not spec.rewritable:
        return ManifestChange(req.name, table, old, target, applied=False, reason=LOCKED), raw
    return ManifestChange(req.name, table, old, target), _format_requirement(req, target)


def _strip_strings(line: str) -> str:
    return QUOTED.sub('', line)


def rewrite_pep621_dependencies(text: str, lookup: Lookup) -> Tuple[str, List[ManifestChange]]:
    """Rewrite requirement strings in [project] dependencies and optional-dependencies."""
    lines = text.splitlines(keepends=True)
    changes: List[ManifestChange] = []
    table = None
    in_array = False
    array_label = ""
    for index, line in enumerate(lines):
        header = TOML_HEADER.match(line)
        if header and not in_array:
            table = header.group(1).replace(" ", "")
            continue
        if not in_array:
            start = ARRAY_START.match(line)
            if not start:
                continue
            key = start.group("key").strip("\"'")
            if table == "project" and key == "dependencies":
                array_label = "project.dependencies"
            elif table == "project.optional-dependencies":
                array_label = f"project.optional-dependencies.{key}"
            else:
                continue
            in_array = True
            scan_from = start.end()
        else:
            scan_from = 0

        def replace(match):
            found = _requirement_change(match.group(2), lookup, array_label)
            if found is None:
                return match.group(0)
            change, rewritten = found
            changes.append(change)
            quote = match.group(1)
            # markers come back double-quoted from packaging
            rewritten = rewritten.replace(quote, "'" if quote == '"' else '"')
            return f"{quote}{rewritten}{quote}"

        segment = line[scan_from:]
        lines[index] = line[:scan_from] + QUOTED.sub(replace, segment)
        if ']' in _strip_strings(segment):
            in_array = False
    return "".join(lines), changes


REQUIREMENTS_TABLE = "requirements.txt"
# pip treats '#' as a comment only at line start or after whitespace
REQUIREMENTS_COMMENT = re.compile(r'(?:^|\s)#.*$')
REQUIREMENT_OPTION = re.compile(r'\s--[A-Za-z]')
URL_OR_PATH = re.compile(r'^(?:[A-Za-z][A-Za-z0-9+.\-]*://|file:|\.{1,2}[/\\]|[/\\~])')
EGG_FRAGMENT = re.compile(r'[#&]egg=([A-Za-z0-9_.\-]+)')


def _logical_lines(lines: List[str]) -> Iterator[Tuple[List[int], str]]:
    """Join backslash continuations; yield (physical line indices, joined text)."""
    indices: List[int] = []
    parts: List[str] = []
    for index, line in enumerate(lines):
        stripped = line.rstrip("\r\n")
        indices.append(index)
        if stripped.endswith("\\"):
            parts.append(stripped[:-1])
            continue
        parts.append(stripped)
        yield indices, " ".join(parts)
        indices, parts = [], []
    if indices:
        yield indices, " ".join(parts)


def _split_requirement_line(logical: str) -> Tuple[str, str]:
    """Split one logical line into (requirement, per-requirement options)."""
    body = REQUIREMENTS_COMMENT.sub('', logical).strip()
    option = REQUIREMENT_OPTION.search(body)
    if option:
        return body[:option.start()].strip(), body[option.start():].strip()
    return body, ""


def _reference_drift(reference: str, lookup: Lookup) -> Optional[ManifestChange]:
    """A URL or path requirement naming a registry package through ``#egg=``."""
    egg = EGG_FRAGMENT.search(reference)
    spec = lookup(egg.group(1)) if egg else None
    if spec is None:
        return None
    return ManifestChange(egg.group(1), REQUIREMENTS_TABLE, reference, spec.render(),
                          applied=False, reason=UNSUPPORTED)


def rewrite_requirements_txt(text: str, lookup: Lookup) -> Tuple[str, List[ManifestChange]]:
    """Rewrite ``name<specifier>`` lines of a requirements file.

    Hash-pinned requirements, URL/path references and requirements split
    over continuation lines are reported as unsupported, never rewritten.
    """
    lines = text.splitlines(keepends=True)
    changes: List[ManifestChange] = []
    for indices, logical in _logical_lines(lines):
        requirement, options = _split_requirement_line(logical)
        if not requirement or requirement.startswith('-'):
            continue
        if URL_OR_PATH.match(requirement):
            change = _reference_drift(requirement, lookup)
            if change:
                changes.append(change)
            continue
        found = _requirement_change(requirement, lookup, REQUIREMENTS_TABLE)
        if found is None:
            continue
        change, rewritten = found
        changes.append(change)
        if not change.applied:
            continue
        first = lines[indices[0]]
        if "--hash" in options or requirement not in first:
            # the hashes pin the artifacts of the old version
            change.applied = False
            change.reason = UNSUPPORTED
            continue
        lines[indices[0]] = first.replace(requirement, rewritten, 1)
    return "".join(lines), changes


def _verify_requirements_txt(text: str) -> None:
    """Raise ValueError if a requirement line is not PEP 508.

    Option lines and URL/path references are pip syntax, not PEP 508, and
    are not checked.
    """
    for indices, logical in _logical_lines(text.splitlines()):
        requirement, _ = _split_requirement_line(logical)
        if not requirement or requirement.startswith('-') or URL_OR_PATH.match(requirement):
            continue
        try:
            Requirement(requirement)
        except InvalidRequirement as e:
            raise ValueError(f"line {indices[0] + 1}: {e}") from e


def _pep621_drift(data: dict, lookup: Lookup) -> List[ManifestChange]:
    drift = []
    project = data.get("project", {})
    groups = [("project.dependencies", project.get("dependencies", []))]
    for name, reqs in (project.get("optional-dependencies") or {}).items():
        groups.append((f"project.optional-dependencies.{name}", reqs))
    for label, reqs in groups:
        for raw in reqs if isinstance(reqs, list) else []:
            found = _requirement_change(raw, lookup, label) if isinstance(raw, str) else None
            if found is not None:
                change = found[0]
                change.applied = False
                change.reason = change.reason or UNSUPPORTED
                drift.append(change)
    return drift


class PythonManifest:
    """Manage pyproject.toml, requirements.txt and setup.py files."""

    ecosystem = Ecosystem.PYTHON
    filenames = ("pyproject.toml", "requirements.txt")

    @staticmethod
    def plan(path: Path, text: str, specs: Dict[str, DependencySpec]) -> Tuple[str, List[ManifestChange]]:
        lookup = _lookup_for(Ecosystem.PYTHON, specs)
        if Path(path).suffix == ".txt":
            return rewrite_requirements_txt(text, lookup)
        data = tomllib.loads(text)
        new_text, changes = rewrite_pep621_dependencies(text, lookup)
        new_text, poetry_changes = rewrite_toml_dependencies(new_text, lookup)
        changes.extend(poetry_changes)
        _mark_unreached(changes, _pep621_drift(data, lookup) + _toml_drift(data, lookup))
        return new_text, changes

    @staticmethod
    def verify(path: Path, text: str) -> None:
        if Path(path).suffix == ".txt":
            _verify_requirements_txt(text)
        else:
            tomllib.loads(text)

    @staticmethod
    def get_version(repo_path) -> Optional[str]:
        """Get current version from a Python project."""
        repo = Path(repo_path)

        pyproject = repo / "pyproject.toml"
        if pyproject.exists():
            try:
                data = tomllib.loads(pyproject.read_text())
                if 'version' in data.get('project', {}):
                    return data['project']['version']
                if 'version' in data.get('tool', {}).get('poetry', {}):
                    return data['tool']['poetry']['version']
            except tomllib.TOMLDecodeError:
                pass

        setup_py = repo / "setup.py"
        if setup_py.exists():
            match = SETUP_VERSION.search(setup_py.read_text())
            if match:
                return match.group(2)

        return None

    @staticmethod
    def set_version(repo_path, new_version: str, runner=None) -> List[str]:
        """Set version in pyproject.toml, setup.py and package __init__ files."""
        repo = Path(repo_path)
        updated = []

        pyproject = repo / "pyproject.toml"
        if pyproject.exists():
            content = pyproject.read_text()
            new_content = PACKAGE_VERSION_LINE.sub(f'version = "{new_version}"', content, count=1)
            if new_content != content:
                pyproject.write_text(new_content)
                updated.append(str(pyproject))

        for candidate, pattern in [(repo / "setup.py", SETUP_VERSION)] + [
                (init, INIT_VERSION) for init in sorted(repo.glob("*/__init__.py"))]:
            if not candidate.exists():
                continue
            content = candidate.read_text()
            new_content = pattern.sub(rf'\g<1>{new_version}\g<3>', content, count=1)
            if new_content != content:
                candidate.write_text(new_content)
                updated.append(str(candidate))

        return updated


# ============================================================================
# Go
# ============================================================================

REQUIRE_BLOCK_START = re.compile(r'^\s*require\s*\(\s*(?://.*)?$')
REQUIRE_SINGLE = re.compile(r'^(?P<lead>\s*require\s+)(?P<module>[^\s()]+)(?P<sep>\s+)(?P<version>v\S+)')
REQUIRE_BLOCK_LINE = re.compile(r'^(?P<lead>\s*)(?P<module>[^\s()/][^\s()]*)(?P<sep>\s+)(?P<version>v\S+)')
MODULE_DIRECTIVE = re.compile(r'^\s*module\s+\S+', re.MULTILINE)


def rewrite_go_requires(text: str, lookup: Lookup) -> Tuple[str, List[ManifestChange]]:
    lines = text.splitlines(keepends=True)
    changes: List[ManifestChange] = []
    in_block = False
    for index, line in enumerate(lines):
        if in_block:
            if line.strip().startswith(')'):
                in_block = False
                continue
            match = REQUIRE_BLOCK_LINE.match(line)
        elif REQUIRE_BLOCK_START.match(line):
            in_block = True
            continue
        else:
            match = REQUIRE_SINGLE.match(line)
        if not match:
            continue
        spec = lookup(match.group("module"))
        if spec is None:
            continue
        current, target = match.group("version"), spec.render()
        if current == target:
            continue
        if not spec.rewritable:
            changes.append(ManifestChange(match.group("module"), "require", current, target,
                                          applied=False, reason=LOCKED))
            continue
        lines[index] = (f'{match.group("lead")}{match.group("module")}{match.group("sep")}{target}'
                        + line[match.end():])
        changes.append(ManifestChange(match.group("module"), "require", current, target))
    return "".join(lines), changes


class GoManifest:
    """Manage go.mod files. Module versions are carried by git tags."""

    ecosystem = Ecosystem.GO
    filenames = ("go.mod",)

    @staticmethod
    def plan(path: Path, text: str, specs: Dict[str, DependencySpec]) -> Tuple[str, List[ManifestChange]]:
        return rewrite_go_requires(text, _lookup_for(Ecosystem.GO, specs))

    @staticmethod
    def verify(path: Path, text: str) -> None:
        if not MODULE_DIRECTIVE.search(text):
            raise ValueError("go.mod has no module directive")
        if text.count('(') != text.count(')'):
            raise ValueError("go.mod has unbalanced parentheses")

    @staticmethod
    def get_version(repo_path) -> Optional[str]:
        return None

    @staticmethod
    def set_version(repo_path, new_version: str, runner=None) -> List[str]:
        return []


# Manifest handler registry
MANIFESTS = {
    Ecosystem.CARGO: CargoManifest,
    Ecosystem.NODE: NodeManifest,
    Ecosystem.PYTHON: PythonManifest,
    Ecosystem.GO: GoManifest,
}


def manifest_for(ecosystem: Ecosystem):
    """Handler class for an ecosystem, or None for ecosystems without manifests."""
    return MANIFESTS.get(ecosystem)


def get_version(repo_path, ecosystem: Ecosystem) -> Optional[str]:
    """Get the current version of a repository's manifest."""
    manager = manifest_for(ecosystem)
    if manager:
        return manager.get_version(repo_path)
    return None


def set_version(repo_path, ecosystem: Ecosystem, new_version: str, runner=None) -> List[str]:
    """Set the version of a repository's manifest; returns the files written."""
    manager = manifest_for(ecosystem)
    if manager:
        return manager.set_version(repo_path, new_version, runner=runner)
    return []
