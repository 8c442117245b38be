# runehelp/metrics.py
"""
Metric names and value types shared by the parser, store and comparator.

The orders of SKILL_NAMES, ACTIVITY_NAMES and BOSS_NAMES matter: the legacy
text hiscores format is positional and lists metrics in exactly this order.
The live service puts the ACTIVITY_NAMES block between skills and bosses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

UNRANKED = -1

SKILL_NAMES = (
    "Overall",
    "Attack",
    "Defence",
    "Strength",
    "Hitpoints",
    "Ranged",
    "Prayer",
    "Magic",
    "Cooking",
    "Woodcutting",
    "Fletching",
    "Fishing",
    "Firemaking",
    "Crafting",
    "Smithing",
    "Mining",
    "Herblore",
    "Agility",
    "Thieving",
    "Slayer",
    "Farming",
    "Runecraft",
    "Hunter",
    "Construction",
)

# Minigame and points rows; read past in the text format, never stored.
ACTIVITY_NAMES = (
    "Grid Points",
    "League Points",
    "Deadman Points",
    "Bounty Hunter - Hunter",
    "Bounty Hunter - Rogue",
    "Bounty Hunter (Legacy) - Hunter",
    "Bounty Hunter (Legacy) - Rogue",
    "Clue Scrolls (all)",
    "Clue Scrolls (beginner)",
    "Clue Scrolls (easy)",
    "Clue Scrolls (medium)",
    "Clue Scrolls (hard)",
    "Clue Scrolls (elite)",
    "Clue Scrolls (master)",
    "LMS - Rank",
    "PvP Arena - Rank",
    "Soul Wars Zeal",
    "Rifts closed",
    "Colosseum Glory",
    "Collections Logged",
)

BOSS_NAMES = (
    "Abyssal Sire",
    "Alchemical Hydra",
    "Barrows Chests",
    "Bryophyta",
    "Callisto",
    "Cerberus",
    "Chambers of Xeric",
    "Chambers of Xeric: Challenge Mode",
    "Chaos Elemental",
    "Chaos Fanatic",
    "Commander Zilyana",
    "Corporeal Beast",
    "Crazy Archaeologist",
    "Dagannoth Prime",
    "Dagannoth Rex",
    "Dagannoth Supreme",
    "Deranged Archaeologist",
    "General Graardor",
    "Giant Mole",
    "Grotesque Guardians",
    "Hespori",
    "Kalphite Queen",
    "King Black Dragon",
    "Kraken",
    "Kree'Arra",
    "K'ril Tsutsaroth",
    "Mimic",
    "Nex",
    "Nightmare",
    "Obor",
    "Sarachnis",
    "Scorpia",
    "Skotizo",
    "Tempoross",
    "The Gauntlet",
    "The Corrupted Gauntlet",
    "Theatre of Blood",
    "Thermonuclear Smoke Devil",
    "Tombs of Amascut",
    "TzTok-Jad",
    "Venenatis",
    "Vet'ion",
    "Vorkath",
    "Zulrah",
)


@dataclass(frozen=True)
class SkillValue:
    level: int = 0
    xp: int = 0
    rank: int = UNRANKED

    def is_zero(self) -> bool:
        return self.level == 0 and self.xp == 0


@dataclass(frozen=True)
class BossValue:
    kills: int = 0
    rank: int = UNRANKED

    def is_zero(self) -> bool:
        return self.kills == 0


@dataclass
class MetricSet:
    """Skill and boss values for one player at one point in time, keyed by name."""

    skills: Dict[str, SkillValue] = field(default_factory=dict)
    bosses: Dict[str, BossValue] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "MetricSet":
        return cls()

    def is_empty(self) -> bool:
        return not self.skills and not self.bosses

    def has_nonzero(self) -> bool:
        return any(not v.is_zero() for v in self.skills.values()) or any(
            not v.is_zero() for v in self.bosses.values()
        )

    def with_defaults(self) -> "MetricSet":
        """Return a copy holding every enumerated skill and boss, zero-filled where missing."""
        skills = {name: self.skills.get(name, SkillValue()) for name in SKILL_NAMES}
        bosses = {name: self.bosses.get(name, BossValue()) for name in BOSS_NAMES}
        return MetricSet(skills=skills, bosses=bosses)


@dataclass
class StoredSnapshot:
    snapshot_id: int
    player_id: int
    created_at: datetime
    metrics: MetricSet = field(default_factory=MetricSet)


def clamp_non_negative(value: Optional[int]) -> int:
    if value is None or value < 0:
        return 0
    return value
