"""
Test the ranking engine.

Run with: pytest driver_reports/services/test_ranking.py -v
"""
import pytest

from driver_reports.core.models import CalculatedMetrics
from driver_reports.services.ranking import RankingEngine


def metrics(idle=0.0, cruise=0.0, engine=0.0, coasting=0.0, weight_adjusted=0.0):
    return CalculatedMetrics(
        idle_percentage=idle,
        cruise_control_share=cruise,
        engine_brake_share=engine,
        coasting_share=coasting,
        weight_adjusted_consumption=weight_adjusted,
    )


@pytest.fixture
def engine(settings):
    return RankingEngine(settings)


def test_per_metric_ranks(engine):
    """Test Idle [2, 8, 5] -> [1, 3, 2] and Cruise [70, 60, 65] -> [1, 3, 2]."""
    cohort = [
        ("A", metrics(idle=2, cruise=70)),
        ("B", metrics(idle=8, cruise=60)),
        ("C", metrics(idle=5, cruise=65)),
    ]
    entries = {entry.driver_name: entry for entry in engine.rank(cohort)}

    assert [entries[name].ranks["idle_percentage"] for name in "ABC"] == [1, 3, 2]
    assert [entries[name].ranks["cruise_control_share"] for name in "ABC"] == [1, 3, 2]
    for entry in entries.values():
        assert entry.total_score == sum(entry.ranks.values())


def test_lowest_total_first(engine):
    cohort = [
        ("B", metrics(idle=8, cruise=60, engine=40, coasting=5)),
        ("A", metrics(idle=2, cruise=70, engine=60, coasting=9)),
        ("C", metrics(idle=5, cruise=65, engine=50, coasting=7)),
    ]
    ranking = engine.rank(cohort)
    assert [entry.driver_name for entry in ranking] == ["A", "C", "B"]
    assert [entry.position for entry in ranking] == [1, 2, 3]
    assert ranking[0].total_score == 4


def test_equal_totals_break_on_weight_adjusted(engine):
    """Test that equal totals are ordered by ascending weight-adjusted consumption."""
    cohort = [
        ("A", metrics(idle=1, cruise=50, engine=50, coasting=10, weight_adjusted=0.9)),
        ("B", metrics(idle=2, cruise=60, engine=60, coasting=5, weight_adjusted=0.8)),
    ]
    ranking = engine.rank(cohort)
    assert ranking[0].total_score == ranking[1].total_score
    assert [entry.driver_name for entry in ranking] == ["B", "A"]


def test_full_ties_keep_input_order(engine):
    cohort = [("X", metrics()), ("Y", metrics()), ("Z", metrics())]
    assert [entry.driver_name for entry in engine.rank(cohort)] == ["X", "Y", "Z"]


def test_rank_is_deterministic(engine):
    cohort = [
        ("A", metrics(idle=3, cruise=70, engine=55, coasting=8, weight_adjusted=0.7)),
        ("B", metrics(idle=3, cruise=70, engine=55, coasting=8, weight_adjusted=0.7)),
        ("C", metrics(idle=1, cruise=40, engine=65, coasting=6, weight_adjusted=0.6)),
    ]
    assert engine.rank(cohort) == engine.rank(cohort)


def test_empty_cohort(engine):
    assert engine.rank([]) == []


def test_metric_ranking_best_first(engine):
    cohort = [("A", metrics(coasting=3)), ("B", metrics(coasting=9))]
    rows = engine.metric_ranking(cohort, "coasting_share")
    assert [(rank, name) for rank, name, _ in rows] == [(1, "B"), (2, "A")]
