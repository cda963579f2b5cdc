"""Priority feedback stored as individual YAML artifacts."""

import asyncio
import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import yaml

from order_autopilot.core.entities import PriorityTier
from order_autopilot.core.interfaces import FeedbackLog

logger = logging.getLogger(__name__)


class YamlFeedbackLog(FeedbackLog):
    """Durable log of user priority corrections, one YAML file per entry.

    Files are grouped by assigned priority so an offline learner can read a
    tier's examples without parsing the whole log.
    """

    def __init__(self, storage_dir: Path) -> None:
        self.storage_dir = Path(storage_dir)
        self._ensure_structure()

    def _ensure_structure(self) -> None:
        """Create directory structure for artifacts."""
        if not self.storage_dir.exists():
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            for tier in PriorityTier:
                (self.storage_dir / tier.value.lower()).mkdir(exist_ok=True)

    async def record(self, signal_id: str, assigned_priority: PriorityTier) -> None:
        await asyncio.to_thread(self._save_artifact, signal_id, PriorityTier(assigned_priority))

    def _save_artifact(self, signal_id: str, priority: PriorityTier) -> None:
        artifact_path = self._get_artifact_path(signal_id, priority)
        artifact_path.parent.mkdir(parents=True, exist_ok=True)

        artifact = {
            "signal_id": signal_id,
            "assigned_priority": priority.value,
            "recorded_at": datetime.now().isoformat(timespec="seconds"),
            "date_recorded": date.today().isoformat(),
        }

        try:
            with open(artifact_path, "w", encoding="utf-8") as f:
                yaml.dump(artifact, f, allow_unicode=True, default_flow_style=False, sort_keys=False)
        except OSError as e:
            logger.warning("Could not save feedback for %s: %s", signal_id, e)

    def _get_artifact_path(self, signal_id: str, priority: PriorityTier) -> Path:
        safe_id = re.sub(r"[^\w-]", "", signal_id)[:64] or "unknown"
        return self.storage_dir / priority.value.lower() / f"{safe_id}.yaml"

    def get_stats(self) -> dict:
        """Count recorded entries per priority."""
        by_priority = {}
        total = 0
        for tier_dir in self.storage_dir.iterdir():
            if tier_dir.is_dir():
                count = len(list(tier_dir.glob("*.yaml")))
                by_priority[tier_dir.name] = count
                total += count
        return {"total": total, "by_priority": by_priority}

    def list_entries(self, priority: Optional[PriorityTier] = None, limit: int = 20) -> list[dict]:
        """Most recent entries, optionally for a single priority."""
        if priority is not None:
            search_dirs = [self.storage_dir / PriorityTier(priority).value.lower()]
        else:
            search_dirs = [d for d in self.storage_dir.iterdir() if d.is_dir()]

        paths = [p for d in search_dirs if d.exists() for p in d.glob("*.yaml")]
        paths.sort(key=lambda p: p.stat().st_mtime, reverse=True)

        entries = []
        for artifact_path in paths[:limit]:
            try:
                with open(artifact_path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning("Skipping unreadable feedback file %s: %s", artifact_path, e)
                continue
            data["artifact_file"] = str(artifact_path.relative_to(self.storage_dir))
            entries.append(data)
        return entries

    def prune_old(self, days: int = 90) -> int:
        """Remove entries older than N days.

        Returns:
            Number of entries removed
        """
        today = date.today()
        removed = 0

        for tier_dir in self.storage_dir.iterdir():
            if not tier_dir.is_dir():
                continue
            for artifact_path in tier_dir.glob("*.yaml"):
                try:
                    with open(artifact_path, "r", encoding="utf-8") as f:
                        data = yaml.safe_load(f) or {}
                    recorded = data.get("date_recorded")
                    if not recorded:
                        continue
                    if (today - date.fromisoformat(str(recorded))).days > days:
                        artifact_path.unlink()
                        removed += 1
                except (OSError, yaml.YAMLError, ValueError) as e:
                    logger.warning("Could not prune %s: %s", artifact_path, e)

        return removed
