"""
SDK surface validator for opshub.

Checks that every SDK repository declares the organization's required client
methods. The check is a heuristic: each method name is converted to the SDK
language's naming convention and searched for as a textual declaration.
It does not parse code, so refactored signatures can be missed and similar
names can be matched.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Generator, Iterable, List, Optional

from ..config import logger
from ..domain.repository import RepositoryEntry, RepositoryRegistry, Role
from ..manifests import get_version

SKIP_DIRECTORIES = {".git", "node_modules", "target", "bin", "obj", "__pycache__", ".venv", "venv", "dist"}

LANGUAGE_EXTENSIONS = {
    "rust": (".rs",),
    "python": (".py",),
    "go": (".go",),
    "typescript": (".ts", ".tsx", ".js", ".mjs"),
    "javascript": (".js", ".mjs", ".ts"),
    "csharp": (".cs",),
}


def to_snake_case(name: str) -> str:
    """getBlockByHash -> get_block_by_hash"""
    return re.sub(r'(?<!^)([A-Z])', r'_\1', name).lower()


def to_pascal_case(name: str) -> str:
    """getBlockByHash -> GetBlockByHash"""
    return name[:1].upper() + name[1:]


NAMING = {
    "rust": to_snake_case,
    "python": to_snake_case,
    "go": to_pascal_case,
    "csharp": to_pascal_case,
}


def method_name(language: str, method: str) -> str:
    """Name of a required method in the given language's convention."""
    convert = NAMING.get(language)
    return convert(method) if convert else method


def declaration_pattern(language: str, name: str) -> "re.Pattern":
    """Regex matching a declaration of ``name`` in ``language``."""
    n = re.escape(name)
    if language == "rust":
        return re.compile(rf'\bfn\s+{n}\b')
    if language == "python":
        return re.compile(rf'\bdef\s+{n}\b')
    if language == "go":
        return re.compile(rf'\bfunc\b[^\n]*\b{n}\s*\(')
    if language == "csharp":
        return re.compile(rf'\b{n}(?:Async)?\s*(?:<[^>\n]*>)?\s*\(')
    return re.compile(rf'\b{n}(?:Async)?\s*(?:<[^>\n]*>)?\s*\(|\b{n}\s*[:=]\s*(?:async\s+)?(?:function\b|\()')


@dataclass
class SdkReport:
    """Method presence for one SDK."""
    repository: str
    language: str
    source: str
    found_source: bool = True
    present: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    version: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'repository': self.repository,
            'language': self.language,
            'source': self.source,
            'found_source': self.found_source,
            'present': self.present,
            'missing': self.missing,
            'version': self.version,
        }


class SdkValidator:
    """
    Validates the API surface of every SDK repository.

    Example:
        validator = SdkValidator(root, registry, ["getBalance", "connect"])
        for report in validator.validate():
            print(report.repository, report.missing)
    """

    def __init__(self, workspace_root: Path, registry: RepositoryRegistry, required_methods: Iterable[str]):
        self.workspace_root = Path(workspace_root)
        self.registry = registry
        self.required_methods = list(required_methods)

    def sdks(self) -> List[RepositoryEntry]:
        return list(self.registry.by_role(Role.SDK))

    @staticmethod
    def language_of(entry: RepositoryEntry) -> str:
        if entry.language:
            return entry.language.lower()
        return {"cargo": "rust", "node": "typescript", "python": "python", "go": "go"}.get(
            entry.ecosystem.value, "typescript")

    def _source_files(self, source: Path, language: str) -> Generator[Path, None, None]:
        extensions = LANGUAGE_EXTENSIONS.get(language)
        for path in sorted(source.rglob("*")):
            if any(part in SKIP_DIRECTORIES for part in path.relative_to(source).parts[:-1]):
                continue
            if path.is_file() and (extensions is None or path.suffix in extensions):
                yield path

    def validate_sdk(self, entry: RepositoryEntry) -> SdkReport:
        language = self.language_of(entry)
        repo = entry.location(self.workspace_root)
        source = repo / entry.sdk_source if entry.sdk_source else repo
        report = SdkReport(entry.name, language, str(source.relative_to(self.workspace_root)))
        if not source.is_dir():
            report.found_source = False
            return report

        report.version = get_version(repo, entry.ecosystem)
        texts = []
        for path in self._source_files(source, language):
            try:
                texts.append(path.read_text(errors="replace"))
            except OSError as e:
                logger.debug(f"Skipping unreadable {path}: {e}")
        corpus = "\n".join(texts)

        for method in self.required_methods:
            name = method_name(language, method)
            if declaration_pattern(language, name).search(corpus):
                report.present.append(name)
            else:
                report.missing.append(name)
        return report

    def validate(self) -> List[SdkReport]:
        return [self.validate_sdk(entry) for entry in self.sdks()]


def version_mismatch(reports: Iterable[SdkReport]) -> Dict[str, str]:
    """SDK versions keyed by repository, if they are not all equal."""
    versions = {r.repository: r.version for r in reports if r.version}
    if len(set(versions.values())) > 1:
        return versions
    return {}
