from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import litellm
from dotenv import load_dotenv

from .config import get_max_tokens_for_agent, get_model_for_agent

load_dotenv()


class TextGenerator(Protocol):
    """
    Opaque text-generation collaborator: prompt in, text out.
    """

    async def generate(self, prompt: str, temperature: float) -> str: ...


def _completion_kwargs(
    *,
    model: str,
    messages: List[Dict[str, str]],
    max_tokens: Optional[int],
    temperature: Optional[float],
    response_format: Optional[Dict[str, Any]],
    api_key: Optional[str],
) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {
        "model": model,
        "messages": messages,
    }
    if max_tokens is not None:
        kwargs["max_tokens"] = max_tokens
    if temperature is not None:
        kwargs["temperature"] = temperature
    if response_format is not None:
        # Top-level for OpenAI, extra_body for providers that read it there.
        kwargs["response_format"] = response_format
        kwargs.setdefault("extra_body", {})
        kwargs["extra_body"]["response_format"] = response_format

    gemini_key = api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
    openai_key = api_key or os.environ.get("OPENAI_API_KEY")
    if gemini_key and model.startswith("gemini"):
        kwargs["api_key"] = gemini_key
    if openai_key and (model.startswith("openai") or model.startswith("gpt-")):
        kwargs["api_key"] = openai_key
    return kwargs


def _without_response_format(kwargs: Dict[str, Any]) -> Dict[str, Any]:
    stripped = dict(kwargs)
    stripped.pop("response_format", None)
    stripped.pop("extra_body", None)
    return stripped


def _message_content(completion: Any) -> str:
    choice = completion.choices[0]
    message = getattr(choice, "message", None)
    if isinstance(message, dict):
        return message.get("content", "") or ""
    return getattr(message, "content", "") or ""


async def achat_completion(
    *,
    model: str,
    messages: List[Dict[str, str]],
    max_tokens: Optional[int] = None,
    temperature: Optional[float] = None,
    response_format: Optional[Dict[str, Any]] = None,
    api_key: Optional[str] = None,
) -> str:
    """
    Thin async wrapper around LiteLLM's completion API.

    Providers are swapped through the model name and environment variables,
    without touching the interview engine.
    """
    kwargs = _completion_kwargs(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
        response_format=response_format,
        api_key=api_key,
    )

    try:
        completion = await litellm.acompletion(**kwargs)
    except Exception:
        # Some providers reject response_format with a 400; retry once without it.
        if "response_format" not in kwargs:
            raise
        kwargs = _without_response_format(kwargs)
        completion = await litellm.acompletion(**kwargs)

    content = _message_content(completion)

    # JSON mode occasionally yields an empty string; ask again in plain mode.
    if not content and "response_format" in kwargs:
        completion = await litellm.acompletion(**_without_response_format(kwargs))
        content = _message_content(completion)

    return content


@dataclass
class LiteLLMGenerator:
    """
    Default TextGenerator backed by LiteLLM. `agent` selects the model and
    token budget from config.yaml (agents.<agent>).
    """

    agent: str = "question_generator"
    model: Optional[str] = None
    max_tokens: Optional[int] = None

    def __post_init__(self) -> None:
        if self.model is None:
            self.model = get_model_for_agent(self.agent, "gpt-4o-mini")
        if self.max_tokens is None:
            self.max_tokens = get_max_tokens_for_agent(self.agent, 256)

    async def generate(self, prompt: str, temperature: float) -> str:
        return await achat_completion(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self.max_tokens,
            temperature=temperature,
        )
