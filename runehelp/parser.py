# runehelp/parser.py

import json
from typing import Any, Dict, List, Optional, Sequence

from runehelp.metrics import (
    ACTIVITY_NAMES,
    BOSS_NAMES,
    SKILL_NAMES,
    UNRANKED,
    BossValue,
    MetricSet,
    SkillValue,
    clamp_non_negative,
)


class HiscoresParser:
    """Base strategy: turn one raw hiscores response body into a MetricSet."""

    name = "base"

    def parse(self, body: str) -> MetricSet:
        raise NotImplementedError

    @staticmethod
    def _to_int(value: Any) -> Optional[int]:
        """Parse ints that may arrive as numbers or strings like '13,034,431'."""
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value)
        try:
            return int(str(value).strip().replace(",", ""))
        except ValueError:
            return None

    def _rank(self, value: Any) -> int:
        rank = self._to_int(value)
        if rank is None or rank <= 0:
            return UNRANKED
        return rank


class JsonHiscoresParser(HiscoresParser):
    """
    Parse the structured format:

        {"skills": [{"name", "level", "xp", "rank"?}, ...],
         "bosses": [{"name", "score", "rank"}, ...]}

    The live service names the boss array "activities"; it is read when
    "bosses" is absent. Names outside the enumerated sets are ignored.
    """

    name = "json"

    def parse(self, body: str) -> MetricSet:
        try:
            payload = json.loads(body)
        except ValueError as e:
            raise ValueError(f"Hiscores body is not valid JSON: {e}")

        if not isinstance(payload, dict):
            raise ValueError("Hiscores JSON must be an object")

        skills_raw = payload.get("skills")
        if not isinstance(skills_raw, list):
            raise ValueError("Hiscores JSON is missing the 'skills' array")
        bosses_raw = payload.get("bosses")
        if bosses_raw is None:
            bosses_raw = payload.get("activities", [])
        if not isinstance(bosses_raw, list):
            raise ValueError("Hiscores JSON 'bosses' must be an array")

        skills: Dict[str, SkillValue] = {}
        for entry in skills_raw:
            if not isinstance(entry, dict) or entry.get("name") not in SKILL_NAMES:
                continue
            skills[entry["name"]] = SkillValue(
                level=clamp_non_negative(self._to_int(entry.get("level"))),
                xp=clamp_non_negative(self._to_int(entry.get("xp"))),
                rank=self._rank(entry.get("rank")),
            )

        bosses: Dict[str, BossValue] = {}
        for entry in bosses_raw:
            if not isinstance(entry, dict) or entry.get("name") not in BOSS_NAMES:
                continue
            bosses[entry["name"]] = BossValue(
                kills=clamp_non_negative(self._to_int(entry.get("score"))),
                rank=self._rank(entry.get("rank")),
            )

        return MetricSet(skills=skills, bosses=bosses).with_defaults()


class TextHiscoresParser(HiscoresParser):
    """
    Parse the legacy positional format: one comma-separated line per metric.

    The first len(SKILL_NAMES) lines are skills as "rank,unused,level,xp"
    (the shorter "rank,level,xp" form is accepted too). Next come one line
    per entry in activity_names, which are read past, then bosses in
    BOSS_NAMES order as "rank,kills". Missing lines mean zeros.

    The default (no activity rows) is the compact layout; pass
    ACTIVITY_NAMES, or use TEXT_LAYOUTS["live"], for the live service.
    """

    name = "text"

    def __init__(self, activity_names: Sequence[str] = ()):
        self.activity_names = tuple(activity_names)

    def parse(self, body: str) -> MetricSet:
        lines = [line.strip() for line in body.strip().splitlines()]
        if not lines or not lines[0]:
            raise ValueError("Hiscores text body is empty")

        skills: Dict[str, SkillValue] = {}
        for index, name in enumerate(SKILL_NAMES):
            if index >= len(lines) or not lines[index]:
                continue
            skills[name] = self.parse_skill_line(lines[index])

        boss_lines = lines[len(SKILL_NAMES) + len(self.activity_names):]
        bosses: Dict[str, BossValue] = {}
        for index, name in enumerate(BOSS_NAMES):
            if index >= len(boss_lines) or not boss_lines[index]:
                continue
            bosses[name] = self.parse_boss_line(boss_lines[index])

        return MetricSet(skills=skills, bosses=bosses).with_defaults()

    def parse_skill_line(self, line: str) -> SkillValue:
        fields = self._split(line)
        if len(fields) >= 4:
            rank, level, xp = fields[0], fields[2], fields[3]
        elif len(fields) == 3:
            rank, level, xp = fields
        else:
            raise ValueError(f"Malformed skill line: '{line}'")
        return SkillValue(
            level=clamp_non_negative(level),
            xp=clamp_non_negative(xp),
            rank=self._rank(rank),
        )

    def parse_boss_line(self, line: str) -> BossValue:
        fields = self._split(line)
        if len(fields) < 2:
            raise ValueError(f"Malformed boss line: '{line}'")
        return BossValue(kills=clamp_non_negative(fields[1]), rank=self._rank(fields[0]))

    def _split(self, line: str) -> List[int]:
        values = [self._to_int(part) for part in line.split(",")]
        if any(v is None for v in values):
            raise ValueError(f"Non-numeric field in hiscores line: '{line}'")
        return values


_JSON_PARSER = JsonHiscoresParser()
_TEXT_PARSER = TextHiscoresParser()

TEXT_LAYOUTS = {
    "compact": _TEXT_PARSER,
    "live": TextHiscoresParser(activity_names=ACTIVITY_NAMES),
}


def select_parser(body: str, text_parser: Optional[HiscoresParser] = None) -> HiscoresParser:
    """Pick the strategy by looking at the body itself, not at headers."""
    if body.lstrip().startswith("{"):
        return _JSON_PARSER
    return text_parser or _TEXT_PARSER


def parse_hiscores(body: str, text_parser: Optional[HiscoresParser] = None) -> MetricSet:
    return select_parser(body, text_parser).parse(body)
