from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from .config import get_max_tokens_for_agent, get_model_for_agent
from .json_utils import coerce_json_object
from .llm import achat_completion
from .models import JudgeReport, Turn
from .prompts import read_prompt


logger = logging.getLogger(__name__)


JUDGE_PROMPT = """
You evaluate a transcript of a qualitative interview run by an AI interviewer.
Return JSON with: score (integer 0-100), pass (boolean), strengths (up to 5
short strings), issues (up to 6 short strings). Only return JSON.
""".strip()


def _string_list(value: Any, limit: int) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()][:limit]


@dataclass
class TranscriptJudge:
    """
    Optional LLM judge giving a holistic 0-100 score to a finished transcript.
    Never raises on bad model output: empty or unparsable replies come back
    as a zeroed report with a note in `issues`.
    """

    model: Optional[str] = None
    max_tokens: Optional[int] = None

    def __post_init__(self) -> None:
        if self.model is None:
            self.model = get_model_for_agent("judge", "gpt-4o-mini")
        if self.max_tokens is None:
            self.max_tokens = get_max_tokens_for_agent("judge", 512)

    async def evaluate(self, transcript: Sequence[Turn], language: str) -> JudgeReport:
        if not transcript:
            return JudgeReport(issues=["Empty transcript."])

        convo_json = json.dumps(
            [turn.model_dump(mode="json", exclude_none=True) for turn in transcript],
            ensure_ascii=False,
            indent=2,
        )
        content = await achat_completion(
            model=self.model,
            messages=[
                {"role": "system", "content": read_prompt("judge", "system_prompt", JUDGE_PROMPT)},
                {"role": "user", "content": f"Language: {language}\nTranscript:\n{convo_json}"},
            ],
            response_format={"type": "json_object"},
            max_tokens=self.max_tokens,
            temperature=0.0,
        )
        return self.parse(content)

    def parse(self, content: str) -> JudgeReport:
        if not content or not content.strip():
            return JudgeReport(issues=["Judge model returned empty content."])
        try:
            data = coerce_json_object(content)
        except ValueError:
            logger.warning("Judge output could not be parsed as JSON")
            return JudgeReport(issues=["Judge model returned malformed JSON."])

        try:
            score = int(round(float(data.get("score", 0))))
        except (TypeError, ValueError):
            score = 0
        score = max(0, min(100, score))
        return JudgeReport(
            score=score,
            passed=bool(data.get("pass", data.get("passed", False))),
            strengths=_string_list(data.get("strengths"), 5),
            issues=_string_list(data.get("issues"), 6),
        )
