"""
Registry loading for opshub.

Reads the three declarative registries of the ops repository into immutable
domain objects:

- repositories.toml -> RepositoryRegistry
- versions.toml     -> VersionRegistry (the only one written back, by release)
- dependencies.toml -> DependencyRegistry

Registries are loaded explicitly and handed to each service; nothing here
keeps module-level state.
"""

import re
import tomllib
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Any, Optional

import toml

from .config import logger, resolve_ops_dir, resolve_workspace_root
from .exit_codes import ConfigError
from .domain.repository import Ecosystem, Role, RepositoryEntry, RepositoryRegistry
from .domain.version import Channel, VersionRecord, VersionRegistry
from .domain.dependency import PinPolicy, DependencySpec, DependencyRegistry


@dataclass(frozen=True)
class Workspace:
    """Where the ops repository and its sibling repositories live."""
    ops_dir: Path
    root: Path
    registry_files: Dict[str, str] = field(default_factory=dict)

    def registry_path(self, name: str) -> Path:
        relative = self.registry_files.get(name, f"config/{name}.toml")
        return self.ops_dir / relative


def resolve_workspace(config: Dict[str, Any], ops_dir=None, workspace_root=None) -> Workspace:
    """Build the Workspace from settings and CLI overrides."""
    ops = resolve_ops_dir(config, ops_dir)
    root = resolve_workspace_root(config, ops, workspace_root)
    return Workspace(ops_dir=ops, root=root, registry_files=dict(config.get("registries", {})))


def _read_toml(path: Path) -> Dict[str, Any]:
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Registry file not found: {path}")
    try:
        with open(path, 'rb') as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e


def _parse_enum(enum_cls, value, path: Path, key: str):
    try:
        if enum_cls is Ecosystem:
            return Ecosystem.parse(value)
        return enum_cls(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(m.value for m in enum_cls)
        raise ConfigError(f"{path}: {key} has invalid value {value!r} (expected one of: {valid})") from None


# ============================================================================
# Repository Registry
# ============================================================================

def load_repository_registry(path) -> RepositoryRegistry:
    """Load repositories.toml.

    Each ``[repositories.<name>]`` table becomes one entry; table order is
    the processing order of every command.
    """
    path = Path(path)
    data = _read_toml(path)
    tables = data.get("repositories")
    if not isinstance(tables, dict):
        raise ConfigError(f"{path}: missing [repositories] table")

    entries = []
    for name, raw in tables.items():
        if not isinstance(raw, dict):
            raise ConfigError(f"{path}: repositories.{name} must be a table")
        key = f"repositories.{name}"
        ecosystem = _parse_enum(Ecosystem, raw.get("ecosystem", "none"), path, f"{key}.ecosystem")
        role = _parse_enum(Role, raw.get("role", "library"), path, f"{key}.role")

        extra = []
        for eco_name, manifest in (raw.get("extra_manifests") or {}).items():
            extra.append((_parse_enum(Ecosystem, eco_name, path, f"{key}.extra_manifests"), str(manifest)))

        entries.append(RepositoryEntry(
            name=name,
            ecosystem=ecosystem,
            role=role,
            path=str(raw.get("path", "")),
            expected_files=frozenset(str(p) for p in raw.get("expected_files", [])),
            language=raw.get("language"),
            sdk_source=raw.get("sdk_source"),
            extra_manifests=tuple(extra),
            release=bool(raw.get("release", True)),
        ))

    logger.debug(f"Loaded {len(entries)} repositories from {path}")
    return RepositoryRegistry(tuple(entries))


# ============================================================================
# Version Registry
# ============================================================================

def _parse_date(value, path: Path, key: str) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ConfigError(f"{path}: {key} is not a date: {value!r}") from None


def load_version_registry(path) -> VersionRegistry:
    """Load versions.toml (``[components.<name>]`` tables)."""
    path = Path(path)
    data = _read_toml(path)
    records = {}
    for component, raw in (data.get("components") or {}).items():
        key = f"components.{component}"
        if not isinstance(raw, dict) or "version" not in raw:
            raise ConfigError(f"{path}: {key} needs a version")
        records[component] = VersionRecord(
            component=component,
            version=str(raw["version"]),
            channel=_parse_enum(Channel, raw.get("channel", "stable"), path, f"{key}.channel"),
            release_date=_parse_date(raw.get("release_date"), path, f"{key}.release_date"),
        )
    return VersionRegistry(records)


TABLE_HEADER = re.compile(r'^\s*\[')
RECORD_FIELD = re.compile(
    r'^(?P<lead>\s*(?P<key>version|channel|release_date)\s*=\s*)(?P<value>[^#]*?)(?P<tail>\s*(?:#.*)?)$'
)


def _record_fields(record: VersionRecord) -> Dict[str, str]:
    fields = {"version": f'"{record.version}"', "channel": f'"{record.channel.value}"'}
    if record.release_date:
        fields["release_date"] = record.release_date.isoformat()
    return fields


def _rewrite_record(lines, record: VersionRecord) -> bool:
    """Rewrite one ``[components.<name>]`` table in place; False if not found."""
    name = re.escape(record.component)
    header = re.compile(r'^\s*\[\s*components\.(?:%s|"%s")\s*\]\s*(?:#.*)?$' % (name, name))
    start = next((i for i, line in enumerate(lines) if header.match(line.rstrip("\r\n"))), None)
    if start is None:
        return False
    end = next((i for i in range(start + 1, len(lines)) if TABLE_HEADER.match(lines[i])), len(lines))

    pending = _record_fields(record)
    for index in range(start + 1, end):
        body = lines[index].rstrip("\r\n")
        match = RECORD_FIELD.match(body)
        if match and match.group("key") in pending:
            value = pending.pop(match.group("key"))
            lines[index] = match.group("lead") + value + match.group("tail") + lines[index][len(body):]

    insert_at = end
    while insert_at > start + 1 and not lines[insert_at - 1].strip():
        insert_at -= 1
    if insert_at == len(lines) and lines and not lines[-1].endswith("\n"):
        lines[-1] += "\n"
    lines[insert_at:insert_at] = [f"{key} = {value}\n" for key, value in pending.items()]
    return True


def _matches(data: Dict[str, Any], registry: VersionRegistry) -> bool:
    components = data.get("components") or {}
    for record in registry:
        table = components.get(record.component)
        if not isinstance(table, dict):
            return False
        if table.get("version") != record.version or table.get("channel") != record.channel.value:
            return False
        if record.release_date and table.get("release_date") != record.release_date:
            return False
    return True


def save_version_registry(registry: VersionRegistry, path) -> None:
    """Write the records back into versions.toml.

    The version, channel and release_date lines of each component table are
    rewritten in place, so comments and other tables survive. A file whose
    layout the textual rewrite cannot reach (dotted keys, inline tables) is
    re-serialized with ``toml.dump`` instead, which drops its comments.
    """
    path = Path(path)
    text = path.read_text() if path.exists() else ""
    lines = text.splitlines(keepends=True)
    missing = [record for record in registry if not _rewrite_record(lines, record)]
    for record in missing:
        if lines and not lines[-1].endswith("\n"):
            lines[-1] += "\n"
        lines.append(f"\n[components.{record.component}]\n")
        lines.extend(f"{key} = {value}\n" for key, value in _record_fields(record).items())
    new_text = "".join(lines)

    try:
        rewritten = _matches(tomllib.loads(new_text), registry)
    except tomllib.TOMLDecodeError:
        rewritten = False

    if rewritten:
        path.write_text(new_text)
    else:
        logger.warning(f"Could not update {path} in place; rewriting it without comments")
        data = _read_toml(path) if path.exists() else {}
        components = data.setdefault("components", {})
        for record in registry:
            table = components.setdefault(record.component, {})
            table["version"] = record.version
            table["channel"] = record.channel.value
            if record.release_date:
                table["release_date"] = record.release_date
        with open(path, 'w') as f:
            toml.dump(data, f)
    logger.debug(f"Saved {len(registry)} version records to {path}")


# ============================================================================
# Dependency Registry
# ============================================================================

def _iter_dependency_sections(data: Dict[str, Any], prefix=()):
    """Yield (section path, {package: value}) for every leaf table."""
    packages = {}
    for key, value in data.items():
        if isinstance(value, dict) and "version" not in value:
            yield from _iter_dependency_sections(value, prefix + (key,))
        else:
            packages[key] = value
    if packages and prefix:
        yield prefix, packages


def load_dependency_registry(path) -> DependencyRegistry:
    """Load dependencies.toml.

    Sections are ``[<ecosystem>.<category>]``; values are a bare constraint
    string or ``{ version = "...", pin = "exact" }``.
    """
    path = Path(path)
    data = _read_toml(path)
    specs = []
    for section, packages in _iter_dependency_sections(data):
        ecosystem = _parse_enum(Ecosystem, section[0], path, ".".join(section))
        category = ".".join(section[1:]) or "default"
        for package, value in packages.items():
            key = f"{'.'.join(section)}.{package}"
            if isinstance(value, dict):
                constraint = value.get("version")
                pin = _parse_enum(PinPolicy, value.get("pin", "range"), path, f"{key}.pin")
            else:
                constraint = value
                pin = PinPolicy.RANGE
            if not isinstance(constraint, str) or not constraint.strip():
                raise ConfigError(f"{path}: {key} needs a version string")
            specs.append(DependencySpec(
                ecosystem=ecosystem,
                category=category,
                package=package,
                constraint=constraint.strip(),
                pin=pin,
            ))
    logger.debug(f"Loaded {len(specs)} dependency specs from {path}")
    return DependencyRegistry(tuple(specs))
