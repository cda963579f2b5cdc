"""Device collaborators for running without a phone."""

from order_autopilot.adapters.device.dry_run import (
    DryRunActuator,
    DryRunLauncher,
    NullWakeLock,
    StaticBattery,
    StaticScreenReader,
)

__all__ = ["DryRunActuator", "DryRunLauncher", "NullWakeLock", "StaticBattery", "StaticScreenReader"]
