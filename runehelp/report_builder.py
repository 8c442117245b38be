# runehelp/report_builder.py

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from runehelp.comparator import BossDelta, SkillDelta, SnapshotComparator
from runehelp.exceptions import (
    PersistenceError,
    RuneHelpError,
    UpstreamError,
    ValidationError,
)
from runehelp.freshness import should_refetch
from runehelp.metrics import MetricSet, StoredSnapshot

logger = logging.getLogger(__name__)


@dataclass
class PlayerReport:
    username: str
    skills: Dict[str, SkillDelta] = field(default_factory=dict)
    bosses: Dict[str, BossDelta] = field(default_factory=dict)
    has_previous_snapshot: bool = False
    cached: bool = False
    snapshot_id: Optional[int] = None
    snapshot_created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "skills": {name: delta.to_dict() for name, delta in self.skills.items()},
            "bosses": {name: delta.to_dict() for name, delta in self.bosses.items()},
            "hasPreviousSnapshot": self.has_previous_snapshot,
            "cached": self.cached,
            "snapshotId": self.snapshot_id,
            "snapshotCreatedAt": (
                self.snapshot_created_at.isoformat() if self.snapshot_created_at else None
            ),
        }


class DeltaReportBuilder:
    """
    Build a player's report: current hiscores values plus deltas against the
    previous stored snapshot.

    A remote fetch only happens once the latest snapshot is outside the
    freshness window, and a new snapshot is only written when the fetched
    values differ from the latest one.
    """

    def __init__(self, db, client, comparator: SnapshotComparator = None,
                 clock: Callable[[], datetime] = None):
        self.db = db
        self.client = client
        self.comparator = comparator or SnapshotComparator()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def get_player_report(self, username: str, now: Optional[datetime] = None) -> PlayerReport:
        """
        Args:
            username: Hiscores name; surrounding whitespace is ignored
            now: Override for the current time (defaults to the clock)

        Raises:
            ValidationError: Blank username
            PlayerNotFoundError: Hiscores does not know the player
            UpstreamError: Hiscores unreachable or returned unusable data
            PersistenceError: A snapshot store operation failed
        """
        name = (username or "").strip()
        if not name:
            raise ValidationError("Username is blank")
        now = now or self.clock()

        player_id = self._store(f"upsert player '{name}'", self.db.upsert_player, name)
        latest = self._store(f"load latest snapshot for '{name}'", self.db.get_latest_snapshot, player_id)

        if latest is not None and not should_refetch(latest.created_at, now):
            logger.debug("Serving '%s' from snapshot %s (within freshness window)", name, latest.snapshot_id)
            return self._cached_report(name, latest)

        current = self._fetch(name).with_defaults()
        previous = latest.metrics if latest is not None else None

        if latest is not None and not self.comparator.has_changed(current, previous):
            logger.debug("No change for '%s' since snapshot %s; not persisting", name, latest.snapshot_id)
            return self._cached_report(name, latest)

        stored = self._store(f"save snapshot for '{name}'", self.db.save_snapshot, player_id, current)
        skills, bosses = self.comparator.compute_deltas(current, previous)
        logger.info(
            "Recorded snapshot %s for '%s' (previous=%s)",
            stored.snapshot_id, name, latest.snapshot_id if latest else None,
        )
        return PlayerReport(
            username=name,
            skills=skills,
            bosses=bosses,
            has_previous_snapshot=latest is not None,
            cached=False,
            snapshot_id=stored.snapshot_id,
            snapshot_created_at=stored.created_at,
        )

    def _cached_report(self, name: str, snapshot: StoredSnapshot) -> PlayerReport:
        metrics = snapshot.metrics.with_defaults()
        skills, bosses = self.comparator.compute_deltas(metrics, metrics)
        return PlayerReport(
            username=name,
            skills=skills,
            bosses=bosses,
            has_previous_snapshot=True,
            cached=True,
            snapshot_id=snapshot.snapshot_id,
            snapshot_created_at=snapshot.created_at,
        )

    def _fetch(self, name: str) -> MetricSet:
        try:
            return self.client.fetch_player_stats(name)
        except RuneHelpError:
            raise
        except Exception as e:
            raise UpstreamError(f"Unexpected failure fetching hiscores for '{name}': {e}") from e

    @staticmethod
    def _store(operation: str, func, *args):
        try:
            return func(*args)
        except RuneHelpError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to {operation}: {e}") from e
