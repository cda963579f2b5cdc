"""Map observed app package ids to canonical platforms."""

import logging
from typing import Optional

from order_autopilot.core.entities import PlatformId, PlatformProfile
from order_autopilot.core.platforms import (
    DEPRECATED_PACKAGES,
    LEGACY_PACKAGES,
    SHARED_PACKAGE_VARIANTS,
    primary_platform_for_package,
)

logger = logging.getLogger(__name__)


class PackageResolver:
    """Resolve package identifiers, surviving vendor renames.

    Every input resolves either to a supported platform or to
    `PlatformId.UNSUPPORTED`; unknown packages are never guessed.
    """

    def __init__(
        self,
        aliases: Optional[dict[str, str]] = None,
        deprecated: Optional[set[str]] = None,
    ) -> None:
        self.aliases = {**LEGACY_PACKAGES, **(aliases or {})}
        self.deprecated = set(DEPRECATED_PACKAGES) | set(deprecated or ())

    def migrate(self, package_id: str) -> str:
        """Return the current package id for a legacy one (unchanged otherwise)."""
        if not isinstance(package_id, str):
            return ""
        current = package_id.strip()
        seen = {current}
        # Follow chained renames, guarding against cycles in configured aliases
        while current in self.aliases:
            current = self.aliases[current]
            if current in seen:
                logger.warning("Alias cycle detected for package %s", package_id)
                break
            seen.add(current)
        return current

    def resolve(self, observed_package_id: str) -> PlatformId:
        if not isinstance(observed_package_id, str) or not observed_package_id.strip():
            return PlatformId.UNSUPPORTED

        package_id = observed_package_id.strip()
        if package_id in self.deprecated:
            return PlatformId.UNSUPPORTED

        current = self.migrate(package_id)
        if current in self.deprecated:
            return PlatformId.UNSUPPORTED

        platform_id = primary_platform_for_package(current)
        return platform_id if platform_id is not None else PlatformId.UNSUPPORTED

    def is_supported(self, package_id: str) -> bool:
        return self.resolve(package_id) != PlatformId.UNSUPPORTED

    def is_consistent(self, profile: PlatformProfile) -> bool:
        """True if at least one of the profile's packages maps to its platform."""
        for package_id in profile.package_identifiers:
            resolved = self.resolve(package_id)
            if resolved == profile.platform_id:
                return True
            # Variants share the primary platform's package
            if profile.platform_id in SHARED_PACKAGE_VARIANTS.get(resolved, ()):
                return True
        return False
