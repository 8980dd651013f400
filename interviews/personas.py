from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import ValidationError

from .errors import InterviewConfigError
from .models import Persona


DEFAULT_PERSONAS_PATH: Path = Path(__file__).with_name("personas.yaml")


def load_personas(path: Optional[Path] = None) -> List[Persona]:
    """
    Load the persona catalogue. Accepts either a top-level list or a mapping
    with a `personas` list.
    """
    p = Path(path) if path else DEFAULT_PERSONAS_PATH
    if not p.exists():
        raise InterviewConfigError(f"Persona file not found: {p}")
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise InterviewConfigError(f"Persona file {p} is not valid YAML: {exc}") from exc

    entries = data.get("personas", []) if isinstance(data, dict) else data
    if not isinstance(entries, list) or not entries:
        raise InterviewConfigError(f"Persona file {p} defines no personas.")
    try:
        return [Persona.model_validate(entry) for entry in entries]
    except ValidationError as exc:
        raise InterviewConfigError(f"Invalid persona in {p}: {exc}") from exc
