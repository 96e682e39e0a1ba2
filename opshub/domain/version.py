"""
Version registry domain objects.

The Version Registry is the single authoritative mapping from component name
to its released version, channel and release date. Records are the only
mutable registry objects: the release coordinator updates them once per
release.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, Any, Iterator, List, Optional

from ..exit_codes import ValidationError

SEMVER_PATTERN = re.compile(r'[0-9]+\.[0-9]+\.[0-9]+')


class Channel(Enum):
    """Release maturity label."""
    DEV = "dev"
    ALPHA = "alpha"
    BETA = "beta"
    STABLE = "stable"


def validate_version(version: str) -> str:
    """Accept only MAJOR.MINOR.PATCH."""
    if not isinstance(version, str) or not SEMVER_PATTERN.fullmatch(version):
        raise ValidationError(f"Invalid version format: {version!r}. Expected: X.Y.Z")
    return version


def validate_channel(channel: str) -> Channel:
    """Parse a channel name from the fixed enumeration."""
    try:
        return Channel(channel)
    except ValueError:
        valid = ", ".join(c.value for c in Channel)
        raise ValidationError(f"Invalid channel: {channel!r}. Expected one of: {valid}") from None


@dataclass
class VersionRecord:
    """Released version of one component."""
    component: str
    version: str
    channel: Channel = Channel.STABLE
    release_date: Optional[date] = None

    def bump(self, version: str, channel: Channel, when: date) -> None:
        self.version = version
        self.channel = channel
        self.release_date = when

    def to_dict(self) -> Dict[str, Any]:
        return {
            'component': self.component,
            'version': self.version,
            'channel': self.channel.value,
            'release_date': self.release_date.isoformat() if self.release_date else None,
        }


@dataclass
class VersionRegistry:
    """All version records, keyed by component name."""
    records: Dict[str, VersionRecord] = field(default_factory=dict)

    def __iter__(self) -> Iterator[VersionRecord]:
        return iter(self.records.values())

    def __len__(self) -> int:
        return len(self.records)

    def get(self, component: str) -> Optional[VersionRecord]:
        return self.records.get(component)

    def components(self) -> List[str]:
        return list(self.records)
