from __future__ import annotations

import logging
import math
from typing import List, Sequence

from .anchors import build_topic_anchors
from .models import TopicDescriptor, TopicPlan


logger = logging.getLogger(__name__)

SECONDS_PER_TURN = 45
DEEP_MAX_TURNS = 2
MIN_PROBING_SECONDS = 60


def build_topic_plan(
    topics: Sequence[TopicDescriptor],
    language: str,
    planned_duration_sec: float,
) -> List[TopicPlan]:
    """
    Split the planned duration evenly across topics and turn it into turn budgets.

    Topics with less than a minute each get exactly one SCAN turn. An explicit
    `max_turns` can only lower the time-derived cap, never raise it.
    """
    ordered = sorted(topics, key=lambda t: t.order_index)
    per_topic_sec = float(planned_duration_sec) / max(1, len(ordered))
    time_cap = max(1, math.floor(per_topic_sec / SECONDS_PER_TURN))

    plan: List[TopicPlan] = []
    for topic in ordered:
        if per_topic_sec < MIN_PROBING_SECONDS:
            scan_max_turns = 1
        else:
            configured = topic.max_turns or time_cap
            scan_max_turns = max(1, min(configured, time_cap))
        anchors = build_topic_anchors(topic.label, topic.sub_goals, language)
        plan.append(
            TopicPlan(
                id=topic.id,
                label=topic.label,
                order_index=topic.order_index,
                scan_max_turns=scan_max_turns,
                deep_max_turns=DEEP_MAX_TURNS,
                anchor_roots=anchors.anchor_roots,
            )
        )

    logger.debug(
        "Planned %d topics: %.0fs per topic, scan turns %s",
        len(plan),
        per_topic_sec,
        [p.scan_max_turns for p in plan],
    )
    return plan
