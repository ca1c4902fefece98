"""Tests for the recency/engagement ranking function."""

import pytest

from src.feed.config import FeedConfig
from src.feed.ranking import age_hours, rank_items, score
from src.ingestion.schemas import SourceKind
from tests.factories import NOW, make_item


class TestScore:
    """Tests for score()."""

    def test_formula(self):
        """score = (points + comments * 0.5 + 1) / (age + 2) ** 1.4"""
        item = make_item("1", points=100, comments=20, age_hours=2.0)

        expected = (100 + 20 * 0.5 + 1) / (2.0 + 2) ** 1.4
        assert score(item, NOW) == pytest.approx(expected)

    def test_brand_new_item_without_engagement_is_positive(self):
        item = make_item("1", points=0, comments=0, age_hours=0.0)

        assert score(item, NOW) == pytest.approx(1 / 2**1.4)

    def test_future_timestamp_clamps_age(self):
        """Clock skew must not produce a negative age."""
        item = make_item("1", points=10, age_hours=-5.0)

        assert age_hours(item, NOW) == 0.0
        assert score(item, NOW) == score(make_item("2", points=10, age_hours=0.0), NOW)

    def test_negative_points_do_not_go_below_zero_engagement(self):
        item = make_item("1", points=-20, age_hours=1.0)

        assert score(item, NOW) > 0

    def test_non_increasing_in_age(self):
        ages = [0, 0.5, 1, 3, 12, 48, 24 * 30]
        scores = [score(make_item("1", points=50, comments=5, age_hours=a), NOW) for a in ages]

        assert all(a >= b for a, b in zip(scores, scores[1:]))

    def test_non_decreasing_in_engagement(self):
        points = [score(make_item("1", points=p, age_hours=3), NOW) for p in range(0, 200, 10)]
        comments = [
            score(make_item("1", comments=c, age_hours=3), NOW) for c in range(0, 200, 10)
        ]

        assert all(a <= b for a, b in zip(points, points[1:]))
        assert all(a <= b for a, b in zip(comments, comments[1:]))

    def test_custom_constants(self):
        config = FeedConfig(comment_weight=1.0, gravity=2.0)
        item = make_item("1", points=10, comments=10, age_hours=0.0)

        assert score(item, NOW, config) == pytest.approx(21 / 4)


class TestRankItems:
    """Tests for rank_items()."""

    def test_orders_by_score(self):
        items = [
            make_item("low", points=1),
            make_item("high", points=500),
            make_item("mid", points=50),
        ]

        ranked = rank_items(items, NOW)

        assert [e.item.id for e in ranked] == ["high", "mid", "low"]
        assert ranked[0].score > ranked[1].score > ranked[2].score

    def test_ties_broken_by_key(self):
        """Equal score and timestamp: (source_kind, id) ascending."""
        older = make_item("z", points=10, age_hours=5.0)
        a = make_item("a", kind=SourceKind.TABNEWS, points=10, age_hours=1.0)
        b = make_item("b", kind=SourceKind.TABNEWS, points=10, age_hours=1.0)
        hn = make_item("a", kind=SourceKind.HACKERNEWS, points=10, age_hours=1.0)

        ranked = rank_items([older, b, a, hn], NOW)

        assert [e.item.key for e in ranked] == [
            ("hackernews", "a"),
            ("tabnews", "a"),
            ("tabnews", "b"),
            ("hackernews", "z"),
        ]

    def test_equal_score_prefers_newer(self):
        """(1 + 1) / (0 + 2) == (3 + 1) / (2 + 2) exactly with gravity 1."""
        config = FeedConfig(gravity=1.0)
        older = make_item("older", points=3, age_hours=2.0)
        newer = make_item("newer", points=1, age_hours=0.0)

        ranked = rank_items([older, newer], NOW, config)

        assert ranked[0].score == ranked[1].score == 1.0
        assert [e.item.id for e in ranked] == ["newer", "older"]

    def test_deterministic(self):
        items = [make_item(str(i), points=i % 7, age_hours=i % 5) for i in range(50)]

        first = [e.item.key for e in rank_items(items, NOW)]
        second = [e.item.key for e in rank_items(list(reversed(items)), NOW)]

        assert first == second

    def test_empty(self):
        assert rank_items([], NOW) == []
