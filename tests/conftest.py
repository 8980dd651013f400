from pathlib import Path
from typing import List, Optional

import pytest

from interviews.models import BotConfig, Persona, TopicDescriptor


BOTS_DIR = Path(__file__).resolve().parents[1] / "data" / "bots"

TOPIC_LABELS = ("Process automation", "Data governance", "Team training")


def make_bot(
    *,
    language: str = "en",
    minutes: float = 3,
    collect_data: bool = True,
    fields: Optional[List[str]] = None,
    labels=TOPIC_LABELS,
) -> BotConfig:
    return BotConfig(
        id="test-bot",
        name="Test bot",
        language=language,
        max_duration_mins=minutes,
        collect_data=collect_data,
        data_fields=["name", "email"] if fields is None else fields,
        topics=[TopicDescriptor(id=f"t{i}", label=label, order_index=i) for i, label in enumerate(labels)],
    )


def make_persona(name: str = "tester", **overrides) -> Persona:
    data = dict(
        name=name,
        brevity=0.0,
        confusion_chance=0.0,
        refuse_deep_offer_chance=0.0,
        refuse_consent_chance=0.0,
        skip_field_chance=0.0,
        frustration_chance=0.0,
        values={
            "name": "Mario Rossi",
            "email": "mario.rossi@example.com",
            "company": "Acme",
            "role": "CTO",
            "phone": "+39 333 445 9988",
        },
    )
    data.update(overrides)
    return Persona(**data)


class FakeGenerator:
    """
    Stand-in TextGenerator: returns queued replies in order (the last one
    repeats), or raises when a reply is an exception instance.
    """

    def __init__(self, *replies):
        self.replies = list(replies) or [""]
        self.prompts: List[str] = []

    async def generate(self, prompt: str, temperature: float) -> str:
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def bot() -> BotConfig:
    return make_bot()


@pytest.fixture
def persona() -> Persona:
    return make_persona()
