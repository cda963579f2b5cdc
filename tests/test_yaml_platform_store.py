"""Tests for the YAML platform store."""

import os
from pathlib import Path
from tempfile import TemporaryDirectory

from order_autopilot.adapters.stores import YamlPlatformStore, default_profiles
from order_autopilot.core import PackageResolver, PlatformId, PriorityTier


def test_missing_file_gives_disabled_defaults() -> None:
    """Test that platforms are opt-in."""
    with TemporaryDirectory() as tmpdir:
        store = YamlPlatformStore(Path(tmpdir) / "platforms.yaml")
        profile = store.get_profile(PlatformId.ZOMATO)

    assert profile is not None
    assert not profile.is_enabled
    assert not profile.auto_accept_enabled
    assert profile.package_identifiers == ["com.zomato.delivery"]
    assert store.get_profile(PlatformId.UNSUPPORTED) is None


def test_default_profiles_are_consistent() -> None:
    """Test that every default profile maps back to its platform."""
    resolver = PackageResolver()
    for profile in default_profiles(enabled=True).values():
        assert resolver.is_consistent(profile), profile.platform_id


def test_profiles_loaded_from_yaml() -> None:
    """Test reading profiles, including short keys."""
    with TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "platforms.yaml"
        path.write_text(
            """
platforms:
  swiggy:
    enabled: true
    auto_accept: true
    min_amount: 80
    minimum_priority: medium
  ubereats:
    is_enabled: true
    package_identifiers: [com.ubercab.eats]
""",
            encoding="utf-8",
        )
        store = YamlPlatformStore(path)

        swiggy = store.get_profile(PlatformId.SWIGGY)
        uber = store.get_profile(PlatformId.UBER_EATS)
        zepto = store.get_profile(PlatformId.ZEPTO)

    assert swiggy.is_enabled and swiggy.auto_accept_enabled
    assert swiggy.minimum_amount == 80.0
    assert swiggy.minimum_priority == PriorityTier.MEDIUM
    assert uber.is_enabled and not uber.auto_accept_enabled
    assert uber.package_identifiers == ["com.ubercab.eats"]
    assert not zepto.is_enabled


def test_file_changes_are_picked_up() -> None:
    """Test reload when the file's mtime changes."""
    with TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "platforms.yaml"
        path.write_text("platforms:\n  zepto:\n    enabled: false\n", encoding="utf-8")
        store = YamlPlatformStore(path)
        assert not store.get_profile(PlatformId.ZEPTO).is_enabled

        path.write_text("platforms:\n  zepto:\n    enabled: true\n", encoding="utf-8")
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))

        assert store.get_profile(PlatformId.ZEPTO).is_enabled


def test_invalid_file_keeps_last_good_profiles() -> None:
    """Test that broken settings do not wipe loaded profiles."""
    with TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "platforms.yaml"
        path.write_text("platforms:\n  zepto:\n    enabled: true\n", encoding="utf-8")
        store = YamlPlatformStore(path)
        assert store.get_profile(PlatformId.ZEPTO).is_enabled

        for broken in ("platforms: [unclosed\n", "platforms:\n  dunzo:\n    enabled: true\n", "platforms:\n  zepto:\n    colour: red\n"):
            path.write_text(broken, encoding="utf-8")
            stat = path.stat()
            os.utime(path, (stat.st_atime, stat.st_mtime + 10))
            assert store.get_profile(PlatformId.ZEPTO).is_enabled


def test_priority_defaults_to_high_only() -> None:
    """Test that only HIGH orders are auto-accepted unless medium is opted into."""
    with TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "platforms.yaml"
        path.write_text(
            """
platforms:
  swiggy:
    enabled: true
    auto_accept: true
  zomato:
    enabled: true
    auto_accept: true
    accept_medium_priority: true
  zepto:
    accept_medium_priority: false
  blinkit:
    accept_medium_priority: true
    minimum_priority: low
""",
            encoding="utf-8",
        )
        store = YamlPlatformStore(path)

        assert store.get_profile(PlatformId.SWIGGY).minimum_priority == PriorityTier.HIGH
        assert store.get_profile(PlatformId.ZOMATO).minimum_priority == PriorityTier.MEDIUM
        assert store.get_profile(PlatformId.ZEPTO).minimum_priority == PriorityTier.HIGH
        assert store.get_profile(PlatformId.BLINKIT).minimum_priority == PriorityTier.LOW
        assert store.get_profile(PlatformId.UBER_EATS).minimum_priority == PriorityTier.HIGH
