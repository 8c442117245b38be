# tests/test_comparator.py

import pytest

from runehelp.comparator import SnapshotComparator, compute_deltas, has_changed
from runehelp.metrics import BossValue, MetricSet, SkillValue
from tests.helpers import make_metrics


class TestSnapshotComparator:
    """Test suite for change detection and delta computation."""

    @pytest.fixture
    def comparator(self):
        return SnapshotComparator()

    def test_identical_sets_unchanged(self, comparator):
        metrics = make_metrics(skills={"Attack": (60, 273742)}, bosses={"Zulrah": (12, 5000)})
        assert comparator.has_changed(metrics, metrics) is False
        assert comparator.has_changed(metrics, make_metrics(
            skills={"Attack": (60, 273742)}, bosses={"Zulrah": (12, 5000)}
        )) is False

    def test_absent_previous_is_changed(self, comparator):
        metrics = make_metrics()
        assert comparator.has_changed(metrics, None) is True
        assert comparator.has_changed(metrics, MetricSet.empty()) is True

    def test_xp_gain_is_changed(self, comparator):
        before = make_metrics(skills={"Woodcutting": (40, 37224)})
        after = make_metrics(skills={"Woodcutting": (40, 38000)})
        assert comparator.has_changed(after, before) is True

    def test_boss_kill_is_changed(self, comparator):
        before = make_metrics(bosses={"Vorkath": (10, 900)})
        after = make_metrics(bosses={"Vorkath": (11, 900)})
        assert comparator.has_changed(after, before) is True

    def test_rank_only_move_is_not_changed(self, comparator):
        before = make_metrics(bosses={"Vorkath": (10, 900)})
        after = make_metrics(bosses={"Vorkath": (10, 850)})
        assert comparator.has_changed(after, before) is False

    def test_new_nonzero_key_is_changed(self, comparator):
        previous = MetricSet(skills={"Overall": SkillValue(level=32, xp=1154)})
        current = MetricSet(
            skills={"Overall": SkillValue(level=32, xp=1154)},
            bosses={"Obor": BossValue(kills=1, rank=20000)},
        )
        assert comparator.has_changed(current, previous) is True

    def test_new_zero_key_is_not_changed(self, comparator):
        previous = MetricSet(skills={"Overall": SkillValue(level=32, xp=1154)})
        current = MetricSet(
            skills={"Overall": SkillValue(level=32, xp=1154), "Sailing": SkillValue()},
            bosses={"Obor": BossValue()},
        )
        assert comparator.has_changed(current, previous) is False

    def test_deltas_are_current_minus_previous(self, comparator):
        before = make_metrics(skills={"Attack": (50, 100)}, bosses={"Zulrah": (4, 100)})
        after = make_metrics(skills={"Attack": (51, 150)}, bosses={"Zulrah": (7, 90)})

        skills, bosses = comparator.compute_deltas(after, before)

        assert skills["Attack"].xp_diff == 50
        assert skills["Attack"].level_diff == 1
        assert skills["Defence"].xp_diff == 0
        assert bosses["Zulrah"].kills_diff == 3
        assert bosses["Zulrah"].rank == 90

    def test_deltas_zero_without_previous(self, comparator):
        skills, bosses = comparator.compute_deltas(make_metrics(skills={"Attack": (50, 101333)}), None)
        assert skills["Attack"].level == 50
        assert skills["Attack"].level_diff == 0
        assert all(d.kills_diff == 0 for d in bosses.values())

    def test_deltas_zero_for_key_missing_from_previous(self, comparator):
        previous = MetricSet(skills={"Overall": SkillValue(level=32, xp=1154)})
        current = MetricSet(
            skills={"Overall": SkillValue(level=33, xp=1300), "Attack": SkillValue(level=5, xp=400)},
        )
        skills, _ = comparator.compute_deltas(current, previous)
        assert skills["Overall"].xp_diff == 146
        assert skills["Attack"].xp_diff == 0
        assert skills["Attack"].level_diff == 0

    def test_delta_dict_shape(self, comparator):
        skills, bosses = comparator.compute_deltas(
            make_metrics(skills={"Attack": (50, 101333)}, bosses={"Nex": (2, 77)}), None
        )
        assert skills["Attack"].to_dict() == {"level": 50, "xp": 101333, "levelDiff": 0, "xpDiff": 0}
        assert bosses["Nex"].to_dict() == {"kills": 2, "rank": 77, "killsDiff": 0}


def test_module_level_helpers():
    metrics = make_metrics()
    assert has_changed(metrics, metrics) is False
    skills, _ = compute_deltas(metrics, metrics)
    assert all(d.xp_diff == 0 and d.level_diff == 0 for d in skills.values())
