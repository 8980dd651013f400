from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import ValidationError

from .errors import InterviewConfigError
from .models import BotConfig


logger = logging.getLogger(__name__)

# Keys as exported by the web app, mapped onto BotConfig field names.
_KEY_ALIASES = {
    "collectCandidateData": "collect_data",
    "candidateDataFields": "data_fields",
}


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _normalize_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            _KEY_ALIASES.get(k, _snake_case(k)) if isinstance(k, str) else k: _normalize_keys(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_normalize_keys(v) for v in value]
    return value


def parse_bot_config(data: Dict[str, Any]) -> BotConfig:
    if not isinstance(data, dict):
        raise InterviewConfigError("Bot configuration must be a mapping.")
    normalized = _normalize_keys(data)
    try:
        return BotConfig.model_validate(normalized)
    except ValidationError as exc:
        raise InterviewConfigError(f"Invalid bot configuration: {exc}") from exc


def load_bot_config(path: Path | str) -> BotConfig:
    """
    Read a bot definition from YAML or JSON. Raises InterviewConfigError for a
    missing file, unparsable content or a bot that cannot drive an interview.
    """
    p = Path(path)
    if not p.exists():
        raise InterviewConfigError(f"Bot file not found: {p}")
    text = p.read_text(encoding="utf-8")
    try:
        if p.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise InterviewConfigError(f"Could not parse bot file {p}: {exc}") from exc

    bot = parse_bot_config(data or {})
    logger.debug("Loaded bot %s (%s, %d topics)", bot.id, bot.language, len(bot.topics))
    return bot
