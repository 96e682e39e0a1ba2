"""
Domain layer for opshub.

Contains pure domain objects with no I/O or side effects:
- RepositoryEntry / RepositoryRegistry: the sibling repositories
- VersionRecord / VersionRegistry: released component versions
- DependencySpec / DependencyRegistry: required dependency versions
- CheckResult / CheckSummary: consistency check outcomes
- OperationDetail / OperationSummary: results of write operations
"""

from .repository import Ecosystem, Role, RepositoryEntry, RepositoryRegistry
from .version import (
    Channel,
    VersionRecord,
    VersionRegistry,
    validate_version,
    validate_channel,
)
from .dependency import PinPolicy, DependencySpec, DependencyRegistry
from .check import Severity, CheckResult, CheckSummary
from .operation import (
    OperationStatus,
    OperationDetail,
    OperationSummary,
    ManifestChange,
    SyncResult,
)

__all__ = [
    'Ecosystem',
    'Role',
    'RepositoryEntry',
    'RepositoryRegistry',
    'Channel',
    'VersionRecord',
    'VersionRegistry',
    'validate_version',
    'validate_channel',
    'PinPolicy',
    'DependencySpec',
    'DependencyRegistry',
    'Severity',
    'CheckResult',
    'CheckSummary',
    'OperationStatus',
    'OperationDetail',
    'OperationSummary',
    'ManifestChange',
    'SyncResult',
]
