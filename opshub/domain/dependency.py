"""
Dependency registry domain objects.

A DependencySpec pins one package of one ecosystem to a required version.
Specs are read-only during a sync and edited out-of-band by maintainers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Iterator, Optional, Tuple

from packaging.utils import canonicalize_name

from .repository import Ecosystem

OPERATOR_PREFIXES = ('^', '~', '=', '<', '>', '!')


class PinPolicy(Enum):
    """How strictly a dependency version is constrained."""
    EXACT = "exact"
    RANGE = "range"
    LOCKED = "locked"


# Operator written in front of a bare version, per ecosystem and policy
_PIN_OPERATORS = {
    Ecosystem.CARGO: {PinPolicy.EXACT: "=", PinPolicy.RANGE: ""},
    Ecosystem.NODE: {PinPolicy.EXACT: "", PinPolicy.RANGE: "^"},
    Ecosystem.PYTHON: {PinPolicy.EXACT: "==", PinPolicy.RANGE: ">="},
    Ecosystem.GO: {PinPolicy.EXACT: "", PinPolicy.RANGE: ""},
}


def package_key(ecosystem: Ecosystem, package: str) -> str:
    """Lookup key for a package name; Python names are PEP 503 normalized."""
    if ecosystem == Ecosystem.PYTHON:
        return canonicalize_name(package)
    return package


@dataclass(frozen=True)
class DependencySpec:
    """Required version of one package."""
    ecosystem: Ecosystem
    category: str
    package: str
    constraint: str
    pin: PinPolicy = PinPolicy.RANGE

    @property
    def rewritable(self) -> bool:
        return self.pin != PinPolicy.LOCKED

    def render(self) -> str:
        """Constraint string as it should appear in this ecosystem's manifest."""
        constraint = self.constraint.strip()
        if self.ecosystem == Ecosystem.GO:
            return constraint if constraint.startswith('v') else f"v{constraint}"
        if constraint.startswith(OPERATOR_PREFIXES):
            return constraint
        policy = self.pin if self.pin != PinPolicy.LOCKED else PinPolicy.EXACT
        operator = _PIN_OPERATORS.get(self.ecosystem, {}).get(policy, "")
        return f"{operator}{constraint}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ecosystem': self.ecosystem.value,
            'category': self.category,
            'package': self.package,
            'constraint': self.constraint,
            'pin': self.pin.value,
        }


@dataclass(frozen=True)
class DependencyRegistry:
    """All dependency specs, in registry order."""
    specs: Tuple[DependencySpec, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[DependencySpec]:
        return iter(self.specs)

    def __len__(self) -> int:
        return len(self.specs)

    def for_ecosystem(self, ecosystem: Ecosystem) -> Dict[str, DependencySpec]:
        """Specs of one ecosystem keyed by (normalized) package name.

        A package declared in several categories resolves to the last one.
        """
        return {
            package_key(ecosystem, spec.package): spec
            for spec in self.specs
            if spec.ecosystem == ecosystem
        }

    def lookup(self, ecosystem: Ecosystem, package: str) -> Optional[DependencySpec]:
        return self.for_ecosystem(ecosystem).get(package_key(ecosystem, package))
