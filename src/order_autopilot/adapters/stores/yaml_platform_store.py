"""Platform settings read from a YAML file."""

import logging
import threading
from pathlib import Path
from typing import Optional

import yaml

from order_autopilot.core.entities import PlatformId, PlatformProfile, PriorityTier
from order_autopilot.core.interfaces import PlatformStore
from order_autopilot.core.platforms import PLATFORMS

logger = logging.getLogger(__name__)

# Short YAML keys accepted next to the profile's field names
_KEY_ALIASES = {
    "enabled": "is_enabled",
    "auto_accept": "auto_accept_enabled",
    "min_amount": "minimum_amount",
    "packages": "package_identifiers",
    "remove": "should_remove",
}


def default_profiles(enabled: bool = False) -> dict[PlatformId, PlatformProfile]:
    """One profile per known platform; platforms are opt-in unless `enabled`."""
    return {
        platform_id: PlatformProfile(
            platform_id=platform_id,
            is_enabled=enabled,
            auto_accept_enabled=enabled,
            package_identifiers=list(info.packages),
        )
        for platform_id, info in PLATFORMS.items()
    }


def _tier(value) -> PriorityTier:
    if isinstance(value, PriorityTier):
        return value
    return PriorityTier(str(value).strip().upper())


def profile_from_dict(platform_id: PlatformId, data: dict, base: PlatformProfile) -> PlatformProfile:
    """Overlay YAML values on a base profile."""
    values = {
        "is_enabled": base.is_enabled,
        "auto_accept_enabled": base.auto_accept_enabled,
        "minimum_amount": base.minimum_amount,
        "priority_weight": base.priority_weight,
        "package_identifiers": list(base.package_identifiers),
        "should_remove": base.should_remove,
        "minimum_priority": base.minimum_priority,
    }
    data = dict(data or {})
    # Shorthand for the usual choice between HIGH only and HIGH plus MEDIUM
    if "accept_medium_priority" in data:
        accept_medium = data.pop("accept_medium_priority")
        data.setdefault("minimum_priority", "MEDIUM" if accept_medium else "HIGH")

    for key, value in data.items():
        name = _KEY_ALIASES.get(key, key)
        if name not in values:
            raise ValueError(f"Unknown platform setting {platform_id.value}.{key}")
        values[name] = value

    return PlatformProfile(
        platform_id=platform_id,
        is_enabled=bool(values["is_enabled"]),
        auto_accept_enabled=bool(values["auto_accept_enabled"]),
        minimum_amount=float(values["minimum_amount"]),
        priority_weight=float(values["priority_weight"]),
        package_identifiers=[str(p) for p in values["package_identifiers"]],
        should_remove=bool(values["should_remove"]),
        minimum_priority=_tier(values["minimum_priority"]),
    )


class YamlPlatformStore(PlatformStore):
    """Profiles from a YAML file, re-read when the file changes.

    Expected layout::

        platforms:
          swiggy:
            enabled: true
            auto_accept: true
            min_amount: 80
            minimum_priority: MEDIUM

    Platforms missing from the file keep their (disabled) defaults. A file that
    fails to parse keeps the last good profiles.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._mtime: Optional[float] = None
        self._profiles = default_profiles()

    def get_profile(self, platform_id: PlatformId) -> Optional[PlatformProfile]:
        self._reload_if_changed()
        with self._lock:
            return self._profiles.get(platform_id)

    def profiles(self) -> dict[PlatformId, PlatformProfile]:
        self._reload_if_changed()
        with self._lock:
            return dict(self._profiles)

    def _reload_if_changed(self) -> None:
        try:
            mtime = self.path.stat().st_mtime
        except OSError:
            mtime = None

        with self._lock:
            if mtime == self._mtime:
                return
            self._mtime = mtime

        if mtime is None:
            profiles = default_profiles()
        else:
            profiles = self._load()
            if profiles is None:
                return

        with self._lock:
            self._profiles = profiles
        logger.info("Loaded %d platform profiles from %s", len(profiles), self.path)

    def _load(self) -> Optional[dict[PlatformId, PlatformProfile]]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not read platform settings %s: %s", self.path, e)
            return None

        profiles = default_profiles()
        try:
            for key, section in (data.get("platforms") or {}).items():
                platform_id = PlatformId(str(key).lower())
                if platform_id not in profiles:
                    raise ValueError(f"Unsupported platform {key}")
                profiles[platform_id] = profile_from_dict(platform_id, section, profiles[platform_id])
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("Invalid platform settings in %s: %s", self.path, e)
            return None
        return profiles
