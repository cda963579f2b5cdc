"""Platform settings stores."""

from order_autopilot.adapters.stores.yaml_platform_store import YamlPlatformStore, default_profiles

__all__ = ["YamlPlatformStore", "default_profiles"]
