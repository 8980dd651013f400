import pytest

from interviews.models import TopicDescriptor
from interviews.planner import DEEP_MAX_TURNS, SECONDS_PER_TURN, build_topic_plan


def _topics(n: int, **overrides):
    return [TopicDescriptor(id=f"t{i}", label=f"Topic number {i}", order_index=i, **overrides) for i in range(n)]


def test_three_topics_in_three_minutes_get_one_scan_turn_each() -> None:
    plan = build_topic_plan(_topics(3), "en", 180)
    assert [t.scan_max_turns for t in plan] == [1, 1, 1]
    assert all(t.deep_max_turns == DEEP_MAX_TURNS == 2 for t in plan)


def test_short_per_topic_budget_forces_single_turn() -> None:
    topics = _topics(4, max_turns=5)
    plan = build_topic_plan(topics, "en", 200)
    assert [t.scan_max_turns for t in plan] == [1, 1, 1, 1]


def test_explicit_max_turns_can_only_lower_the_cap() -> None:
    topics = [
        TopicDescriptor(id="a", label="Automation", order_index=0, max_turns=2),
        TopicDescriptor(id="b", label="Governance", order_index=1, max_turns=10),
        TopicDescriptor(id="c", label="Training", order_index=2),
    ]
    plan = build_topic_plan(topics, "en", 600)
    assert [t.scan_max_turns for t in plan] == [2, 4, 4]


def test_plan_follows_order_index_and_carries_anchor_roots() -> None:
    topics = [
        TopicDescriptor(id="b", label="Data governance", order_index=1),
        TopicDescriptor(id="a", label="Process automation", order_index=0),
    ]
    plan = build_topic_plan(topics, "en", 600)
    assert [t.id for t in plan] == ["a", "b"]
    assert plan[0].anchor_roots == ["proces", "automa"]
    assert plan[1].anchor_roots == ["data", "govern"]


@pytest.mark.parametrize("count,duration", [(1, 60), (2, 125), (3, 180), (3, 600), (5, 900)])
def test_turn_budget_tracks_planned_duration(count: int, duration: int) -> None:
    plan = build_topic_plan(_topics(count), "en", duration)
    budget = sum(t.scan_max_turns for t in plan) * SECONDS_PER_TURN

    assert all(t.scan_max_turns >= 1 for t in plan)
    assert budget <= duration
    assert budget > duration - SECONDS_PER_TURN * count
