"""
Consistency check results.

CheckResults are produced transiently by the checker and only aggregated into
a CheckSummary; they are never persisted.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List


class Severity(Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one rule for one repository."""
    repository: str
    rule: str
    severity: Severity
    message: str

    @property
    def ok(self) -> bool:
        return self.severity == Severity.OK

    def to_dict(self) -> Dict[str, Any]:
        return {
            'repository': self.repository,
            'rule': self.rule,
            'severity': self.severity.value,
            'message': self.message,
        }


@dataclass
class CheckSummary:
    """Counts of check results by severity."""
    ok: int = 0
    warnings: int = 0
    errors: int = 0
    results: List[CheckResult] = field(default_factory=list)

    def add(self, result: CheckResult) -> None:
        self.results.append(result)
        if result.severity == Severity.ERROR:
            self.errors += 1
        elif result.severity == Severity.WARNING:
            self.warnings += 1
        else:
            self.ok += 1

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> bool:
        return self.errors == 0

    def problems(self) -> List[CheckResult]:
        return [r for r in self.results if not r.ok]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'summary',
            'total': self.total,
            'ok': self.ok,
            'warnings': self.warnings,
            'errors': self.errors,
        }
