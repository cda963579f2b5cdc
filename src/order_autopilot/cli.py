"""CLI entry point for order autopilot."""

import asyncio
import time
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo

import typer
import yaml

from order_autopilot.adapters.analytics import WebhookAnalyticsSink
from order_autopilot.adapters.device import DryRunActuator, DryRunLauncher, NullWakeLock, StaticScreenReader
from order_autopilot.adapters.feedback import YamlFeedbackLog
from order_autopilot.adapters.stores import YamlPlatformStore
from order_autopilot.adapters.ui import load_tree, tree_from_dict
from order_autopilot.adapters.vision import ColorRegionMatcher
from order_autopilot.config import Settings, get_settings
from order_autopilot.core import (
    AcceptanceAttempt,
    AttemptOutcome,
    Classifier,
    NotificationExtractor,
    PackageResolver,
    PlatformId,
    PrioritizationEngine,
    ScreenEventKind,
    UiNode,
    UserWeights,
)
from order_autopilot.core.platforms import refine_platform
from order_autopilot.logging_setup import setup_logging
from order_autopilot.use_cases import OrderPipeline, build_pipeline

app = typer.Typer(help="Detect, rank and auto-accept delivery orders.", no_args_is_help=True)

OUTCOME_EMOJI = {
    AttemptOutcome.SUCCEEDED: "✅",
    AttemptOutcome.FAILED: "❌",
    AttemptOutcome.ABANDONED: "⏭️ ",
    AttemptOutcome.PENDING: "⏳",
}


def _weights(settings: Settings) -> UserWeights:
    return UserWeights(
        earnings=settings.prioritization.earnings_weight,
        distance=settings.prioritization.distance_weight,
        time=settings.prioritization.time_weight,
    )


@app.command()
def parse(
    package: str = typer.Argument(..., help="Package id that posted the notification"),
    title: str = typer.Option("", "--title", "-t"),
    body: str = typer.Option("", "--body", "-b"),
    timestamp: Optional[int] = typer.Option(None, help="Observation time (epoch millis)"),
    config: Path = typer.Option(Path("config.yaml"), "--config", "-c"),
) -> None:
    """Explain how a notification would be read, classified and ranked."""
    settings = get_settings(config)
    setup_logging(settings.log_level)

    resolver = PackageResolver(aliases=settings.packages.aliases, deprecated=settings.packages.deprecated)
    platform_id = resolver.resolve(package)
    print(f"\n📦 Package: {package}")
    if platform_id == PlatformId.UNSUPPORTED:
        print("  ✗ Not a supported delivery platform")
        raise typer.Exit(code=1)
    platform_id = refine_platform(platform_id, title, body)
    print(f"  ✓ Platform: {platform_id.value}")

    observed_at = timestamp if timestamp is not None else int(time.time() * 1000)
    signal = NotificationExtractor().extract(platform_id, title, body, observed_at_millis=observed_at)
    if signal is None:
        print("\n❌ Not an order (no amount found)")
        raise typer.Exit(code=1)

    print("\n🧾 Order:")
    print(f"  • Amount: {signal.amount:g}")
    print(f"  • Distance: {_or_dash(signal.estimated_distance_km, 'km')}")
    print(f"  • Time: {_or_dash(signal.estimated_time_minutes, 'min')}")

    tz = ZoneInfo(settings.timezone) if settings.timezone else None
    classification = Classifier(settings.classifier, tz=tz).classify(signal)
    print("\n🏷️  Classification:")
    for label, weight in sorted(classification.weights.items(), key=lambda kv: kv[0].value):
        print(f"  • {label.value}: {weight:.2f}")

    decision = PrioritizationEngine().score(classification, _weights(settings))
    marker = " (fallback)" if decision.is_fallback else ""
    print(f"\n🎯 Priority: {decision.tier.value}{marker} - score {decision.score:.3f} [{decision.policy_version}]")


@app.command()
def simulate(
    scenario: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML scenario file"),
    config: Path = typer.Option(Path("config.yaml"), "--config", "-c"),
    feedback: bool = typer.Option(False, "--feedback", help="Store priority feedback entries from the scenario"),
) -> None:
    """Replay notification and screen events through the full pipeline."""
    settings = get_settings(config)
    setup_logging(settings.log_level)
    asyncio.run(async_simulate(scenario, settings, feedback))


async def async_simulate(scenario: Path, settings: Settings, store_feedback: bool = False) -> list[AcceptanceAttempt]:
    """Run a scenario and print what happened to each event."""
    with open(scenario, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    base_dir = scenario.parent

    print("\n" + "=" * 70)
    print(f"🛵 ORDER AUTOPILOT - dry run of {scenario.name}")
    print("=" * 70)

    # A scenario with its own `platforms:` section doubles as the settings file
    platforms_file = scenario if data.get("platforms") else settings.paths.platforms_file
    store = YamlPlatformStore(platforms_file)
    screen_reader = StaticScreenReader()
    actuator = DryRunActuator(screen_reader)
    launcher = DryRunLauncher()
    feedback_log = YamlFeedbackLog(settings.paths.feedback_dir) if store_feedback else None
    analytics = WebhookAnalyticsSink(settings.analytics) if settings.analytics.webhook_url else None

    pipeline = build_pipeline(
        settings,
        store=store,
        actuator=actuator,
        screen_reader=screen_reader,
        launcher=launcher,
        analytics=analytics,
        feedback_log=feedback_log,
        visual_matcher=ColorRegionMatcher(),
        wake_lock=NullWakeLock(),
    )

    print(f"\n📡 Platforms ({platforms_file}):")
    for platform_id, profile in store.profiles().items():
        status = "✓" if profile.is_enabled and profile.auto_accept_enabled else "✗"
        print(f"  {status} {platform_id.value} (min {profile.minimum_amount:g}, {profile.minimum_priority.value}+)")

    events = data.get("events") or []
    await pipeline.start()
    attempts: list[AcceptanceAttempt] = []
    try:
        clock = int(time.time() * 1000)
        for i, event in enumerate(events, 1):
            clock = int(event.get("at", clock + 5000))
            screen_reader.load([_read_tree(s, base_dir) for s in event.get("screens") or []])
            seen = len(pipeline.history)

            kind = event.get("type", "notification")
            print(f"\n[{i}/{len(events)}] {kind} from {event.get('package', '?')}")
            _submit(pipeline, event, kind, clock, base_dir)
            await pipeline.drain()

            new = list(pipeline.history)[seen:]
            if not new:
                print("  └─ · ignored (not an order, duplicate or unsupported)")
            for attempt in new:
                _print_attempt(attempt)
                attempts.append(attempt)
                if store_feedback and event.get("feedback"):
                    await pipeline.record_feedback(attempt.signal.signal_id, str(event["feedback"]).upper())
    finally:
        await pipeline.stop()

    succeeded = sum(1 for a in attempts if a.outcome == AttemptOutcome.SUCCEEDED)
    print("\n" + "=" * 70)
    print(f"✅ DONE: {succeeded}/{len(attempts)} orders accepted, {len(actuator.clicks)} clicks")
    print("=" * 70)
    return attempts


def _submit(pipeline: OrderPipeline, event: dict, kind: str, clock: int, base_dir: Path) -> None:
    if kind == "notification":
        pipeline.on_notification_event(event.get("package", ""), event.get("title", ""), event.get("body", ""), clock)
    elif kind == "screen":
        screenshot = event.get("screenshot")
        pipeline.on_screen_event(
            event.get("package", ""),
            _read_tree(event.get("tree"), base_dir),
            clock,
            screenshot=base_dir / screenshot if screenshot else None,
            event_kind=ScreenEventKind(event.get("event_kind", ScreenEventKind.CONTENT_CHANGED.value)),
        )
    else:
        print(f"  └─ ⚠️  Unknown event type {kind!r}, skipped")


def _read_tree(source: Any, base_dir: Path) -> Optional[UiNode]:
    if source is None:
        return None
    if isinstance(source, dict):
        return tree_from_dict(source)
    return load_tree(base_dir / str(source))


def _print_attempt(attempt: AcceptanceAttempt) -> None:
    signal = attempt.signal
    emoji = OUTCOME_EMOJI.get(attempt.outcome, "•")
    priority = attempt.priority.tier.value if attempt.priority else "-"
    print(f"  └─ {emoji} {signal.platform_id.value} ₹{signal.amount:g} [{priority}]: {attempt.outcome.value}")
    if attempt.reason:
        print(f"     reason: {attempt.reason}")
    print(f"     path: {' → '.join(state.value for state in attempt.history)}")
    if attempt.retry_count:
        print(f"     retries: {attempt.retry_count}")


def _or_dash(value: Optional[float], unit: str) -> str:
    return "-" if value is None else f"{value:g} {unit}"


if __name__ == "__main__":
    app()
