"""
opshub - Operations hub for a family of sibling repositories.

opshub keeps version numbers, dependency pins and CI configuration
consistent across repositories of several ecosystems (Cargo, npm, Python,
Go), driven by three TOML registries kept in an ops repository.

Quick Start:
    from opshub import ConsistencyChecker, load_repository_registry

    registry = load_repository_registry("config/repositories.toml")
    summary = ConsistencyChecker("/work", registry).run()
    print(summary.errors)

Registries:
    repositories.toml - one entry per sibling repository
    versions.toml     - released version of each component
    dependencies.toml - required dependency versions per ecosystem

Services:
    ConsistencyChecker - structural checks (check)
    SyncService        - dependency synchronization (sync)
    ReleaseCoordinator - coordinated version bump (release)
    SdkValidator       - SDK method coverage (sdk)
    DependabotService  - Dependabot config rollout (dependabot)
"""

__version__ = "0.3.0"

# Domain objects
from .domain import (
    Ecosystem,
    Role,
    RepositoryEntry,
    RepositoryRegistry,
    Channel,
    VersionRecord,
    VersionRegistry,
    PinPolicy,
    DependencySpec,
    DependencyRegistry,
    Severity,
    CheckResult,
    CheckSummary,
    OperationSummary,
)

# Registries
from .registries import (
    Workspace,
    resolve_workspace,
    load_repository_registry,
    load_version_registry,
    save_version_registry,
    load_dependency_registry,
)

# Services
from .services import (
    ConsistencyChecker,
    SyncService,
    SyncOptions,
    ReleaseCoordinator,
    ReleaseOptions,
    SdkValidator,
    DependabotService,
    DependabotOptions,
)

# Configuration
from .config import load_config, save_config

__all__ = [
    # Version
    "__version__",
    # Domain objects
    "Ecosystem",
    "Role",
    "RepositoryEntry",
    "RepositoryRegistry",
    "Channel",
    "VersionRecord",
    "VersionRegistry",
    "PinPolicy",
    "DependencySpec",
    "DependencyRegistry",
    "Severity",
    "CheckResult",
    "CheckSummary",
    "OperationSummary",
    # Registries
    "Workspace",
    "resolve_workspace",
    "load_repository_registry",
    "load_version_registry",
    "save_version_registry",
    "load_dependency_registry",
    # Services
    "ConsistencyChecker",
    "SyncService",
    "SyncOptions",
    "ReleaseCoordinator",
    "ReleaseOptions",
    "SdkValidator",
    "DependabotService",
    "DependabotOptions",
    # Configuration
    "load_config",
    "save_config",
]
