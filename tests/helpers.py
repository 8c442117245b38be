# tests/helpers.py

import os
import tempfile
from typing import Dict, Optional

from runehelp.database import Database
from runehelp.metrics import BOSS_NAMES, SKILL_NAMES, BossValue, MetricSet, SkillValue


def create_test_db():
    """Create a fresh database in a temp file; returns (db, path)."""
    fd, db_path = tempfile.mkstemp(suffix='.db')
    os.close(fd)
    return Database(db_path), db_path


def remove_test_db(db: Database, db_path: str) -> None:
    db.close()
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(db_path + suffix):
            os.remove(db_path + suffix)


def make_metrics(skills: Optional[Dict[str, tuple]] = None,
                 bosses: Optional[Dict[str, tuple]] = None) -> MetricSet:
    """
    Build a full MetricSet. skills maps name -> (level, xp); bosses maps
    name -> (kills, rank). Anything not given gets a plausible baseline so
    the set is never all zeros.
    """
    skill_values = {name: SkillValue(level=1, xp=0) for name in SKILL_NAMES}
    skill_values["Hitpoints"] = SkillValue(level=10, xp=1154)
    skill_values["Overall"] = SkillValue(level=32, xp=1154)
    for name, (level, xp) in (skills or {}).items():
        skill_values[name] = SkillValue(level=level, xp=xp)

    boss_values = {name: BossValue() for name in BOSS_NAMES}
    for name, (kills, rank) in (bosses or {}).items():
        boss_values[name] = BossValue(kills=kills, rank=rank)

    return MetricSet(skills=skill_values, bosses=boss_values)


def text_body(skill_lines, boss_lines=()) -> str:
    return "\n".join(list(skill_lines) + list(boss_lines)) + "\n"


class FakeHiscoresClient:
    """Stands in for HiscoresAPIClient; returns queued results in order."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def queue(self, *results) -> None:
        self.results.extend(results)

    def fetch_player_stats(self, username: str) -> MetricSet:
        self.calls.append(username)
        if not self.results:
            raise AssertionError(f"Unexpected hiscores fetch for '{username}'")
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def rate_status(self) -> dict:
        return {"status": "safe", "calls_in_window": len(self.calls), "calls_made": len(self.calls),
                "max_calls": 30, "window_seconds": 600}
