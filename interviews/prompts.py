from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import yaml


DEFAULT_PROMPTS_PATH: Path = Path(__file__).with_name("prompts.yaml")


def _prompts_path() -> Path:
    """
    Resolve prompts.yaml path from env or default beside this module.
    """
    env_path = os.environ.get("INTERVIEW_PROMPTS_PATH")
    return Path(env_path) if env_path else DEFAULT_PROMPTS_PATH


def load_prompts(path: Path | None = None) -> Dict[str, Any]:
    """
    Load the YAML file containing prompts. Returns {} if missing/empty.
    """
    p = path or _prompts_path()
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    data = yaml.safe_load(text)
    return data or {}


def read_prompt(section: str, key: str, default: str = "") -> str:
    """
    Read a single prompt entry as text with a default.
    """
    data = load_prompts()
    sec = data.get(section, {}) or {}
    value = sec.get(key, default)
    return str(value) if value is not None else default


def render_prompt(section: str, key: str, default: str = "", **fields: Any) -> str:
    """
    Read a prompt template and fill its {placeholders}.

    Unknown placeholders are left as-is so a hand-edited prompts.yaml
    cannot crash a simulation run.
    """
    template = read_prompt(section, key, default)
    return template.format_map(_KeepMissing(fields))


class _KeepMissing(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"
