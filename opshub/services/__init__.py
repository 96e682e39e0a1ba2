"""
Service layer for opshub.

Services hold the business logic of each command. They take registries and
infrastructure clients as arguments, yield progress messages and return
structured results; they never print.
"""

from .checker_service import ConsistencyChecker
from .sync_service import SyncService, SyncOptions, VerificationError
from .release_service import ReleaseCoordinator, ReleaseOptions, ReleaseRepoResult, changelog_template
from .sdk_service import SdkValidator, SdkReport, version_mismatch
from .dependabot_service import DependabotService, DependabotOptions

__all__ = [
    'ConsistencyChecker',
    'SyncService',
    'SyncOptions',
    'VerificationError',
    'ReleaseCoordinator',
    'ReleaseOptions',
    'ReleaseRepoResult',
    'changelog_template',
    'SdkValidator',
    'SdkReport',
    'version_mismatch',
    'DependabotService',
    'DependabotOptions',
]
