# runehelp/comparator.py

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from runehelp.metrics import BossValue, MetricSet, SkillValue


@dataclass(frozen=True)
class SkillDelta:
    level: int
    xp: int
    level_diff: int = 0
    xp_diff: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "level": self.level,
            "xp": self.xp,
            "levelDiff": self.level_diff,
            "xpDiff": self.xp_diff,
        }


@dataclass(frozen=True)
class BossDelta:
    kills: int
    rank: int
    kills_diff: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"kills": self.kills, "rank": self.rank, "killsDiff": self.kills_diff}


class SnapshotComparator:
    """Compare a freshly fetched MetricSet against the last stored one."""

    def has_changed(self, current: MetricSet, previous: Optional[MetricSet]) -> bool:
        """
        Decide whether current differs meaningfully from previous.

        A skill changes on level or xp, a boss on kill count; rank moves
        alone are not a change. A key absent from previous is a change only
        when its current value is non-zero. No previous set at all is always
        a change.
        """
        if previous is None or previous.is_empty():
            return True

        for name, value in current.skills.items():
            if self._skill_changed(value, previous.skills.get(name)):
                return True

        for name, value in current.bosses.items():
            if self._boss_changed(value, previous.bosses.get(name)):
                return True

        return False

    def compute_deltas(
        self, current: MetricSet, previous: Optional[MetricSet]
    ) -> Tuple[Dict[str, SkillDelta], Dict[str, BossDelta]]:
        """Pair every current value with its diff from previous (0 where previous lacks the key)."""
        prev_skills = previous.skills if previous is not None else {}
        prev_bosses = previous.bosses if previous is not None else {}

        skills: Dict[str, SkillDelta] = {}
        for name, value in current.skills.items():
            before = prev_skills.get(name)
            skills[name] = SkillDelta(
                level=value.level,
                xp=value.xp,
                level_diff=value.level - before.level if before is not None else 0,
                xp_diff=value.xp - before.xp if before is not None else 0,
            )

        bosses: Dict[str, BossDelta] = {}
        for name, value in current.bosses.items():
            before = prev_bosses.get(name)
            bosses[name] = BossDelta(
                kills=value.kills,
                rank=value.rank,
                kills_diff=value.kills - before.kills if before is not None else 0,
            )

        return skills, bosses

    @staticmethod
    def _skill_changed(current: SkillValue, previous: Optional[SkillValue]) -> bool:
        if previous is None:
            return not current.is_zero()
        return current.level != previous.level or current.xp != previous.xp

    @staticmethod
    def _boss_changed(current: BossValue, previous: Optional[BossValue]) -> bool:
        if previous is None:
            return not current.is_zero()
        return current.kills != previous.kills


_COMPARATOR = SnapshotComparator()


def has_changed(current: MetricSet, previous: Optional[MetricSet]) -> bool:
    return _COMPARATOR.has_changed(current, previous)


def compute_deltas(current: MetricSet, previous: Optional[MetricSet]):
    return _COMPARATOR.compute_deltas(current, previous)
