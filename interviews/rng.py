from __future__ import annotations

import random
from typing import Optional, Sequence, TypeVar, Union


T = TypeVar("T")


class SimulationRandom:
    """
    Seedable randomness shared by persona sampling, respondent behaviour and
    timing jitter. `for_run` derives an independent stream per run so that a
    seed plus run index always replays the same conversation, whatever order
    runs execute in.
    """

    def __init__(self, seed: Union[int, str]) -> None:
        self.seed = seed
        self._random = random.Random(seed)

    @classmethod
    def for_run(cls, seed: int, run_index: int) -> "SimulationRandom":
        return cls(f"{seed}:{run_index}")

    def random(self) -> float:
        return self._random.random()

    def chance(self, probability: float) -> bool:
        return self._random.random() < probability

    def randint(self, low: int, high: int) -> int:
        return self._random.randint(low, high)

    def pick(self, values: Sequence[T], weights: Optional[Sequence[float]] = None) -> T:
        if not values:
            raise ValueError("Cannot pick from an empty sequence.")
        if weights is None:
            return values[min(len(values) - 1, int(self._random.random() * len(values)))]
        return self._random.choices(list(values), weights=list(weights), k=1)[0]
