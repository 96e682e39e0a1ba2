"""
Operation result domain objects for opshub.

Provides standardized result types for write operations (sync, release,
dependabot) that modify repositories.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional


class OperationStatus(Enum):
    """Status of an individual operation."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"
    DRY_RUN = "dry_run"


@dataclass
class ManifestChange:
    """One dependency entry whose constraint differs from the registry."""
    package: str
    table: str
    old: str
    new: str
    applied: bool = True
    reason: Optional[str] = None  # "locked" or "unsupported" when not applied

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'package': self.package,
            'table': self.table,
            'old': self.old,
            'new': self.new,
            'applied': self.applied,
        }
        if self.reason:
            result['reason'] = self.reason
        return result


@dataclass
class OperationDetail:
    """
    Details of a single operation on one repository.

    Used to track what happened to each repo during bulk operations.
    """
    repo_path: str
    repo_name: str
    status: OperationStatus
    action: str  # e.g., "synced", "rolled_back", "tagged", "would_sync"
    message: Optional[str] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'path': self.repo_path,
            'name': self.repo_name,
            'status': self.status.value,
            'action': self.action,
        }
        if self.message:
            result['message'] = self.message
        if self.error:
            result['error'] = self.error
        if self.metadata:
            result.update(self.metadata)
        return result


@dataclass
class SyncResult(OperationDetail):
    """Result of synchronizing one manifest."""
    manifest: Optional[str] = None
    changes: List[ManifestChange] = field(default_factory=list)

    @property
    def applied(self) -> List[ManifestChange]:
        return [c for c in self.changes if c.applied]

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.manifest:
            result['manifest'] = self.manifest
        result['changes'] = [c.to_dict() for c in self.changes]
        return result


@dataclass
class OperationSummary:
    """
    Summary of a bulk operation across multiple repositories.

    Collects statistics and details from operations performed
    by the sync, release and dependabot commands.
    """
    operation: str  # e.g., "sync", "release", "dependabot"
    total: int = 0
    successful: int = 0
    skipped: int = 0
    failed: int = 0
    dry_run: bool = False
    details: List[OperationDetail] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if no failures occurred."""
        return self.failed == 0

    def add_detail(self, detail: OperationDetail) -> None:
        """Add an operation detail and update counts."""
        self.details.append(detail)
        self.total += 1

        if detail.status == OperationStatus.SUCCESS:
            self.successful += 1
        elif detail.status == OperationStatus.SKIPPED:
            self.skipped += 1
        elif detail.status == OperationStatus.FAILED:
            self.failed += 1
            if detail.error:
                self.errors.append(f"{detail.repo_name}: {detail.error}")
        elif detail.status == OperationStatus.DRY_RUN:
            self.successful += 1  # Count dry-run as successful

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'type': 'summary',
            'operation': self.operation,
            'total': self.total,
            'successful': self.successful,
            'skipped': self.skipped,
            'failed': self.failed,
            'dry_run': self.dry_run,
            'errors': self.errors,
            'warnings': self.warnings,
        }
