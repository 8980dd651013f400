from __future__ import annotations

import re
from typing import Iterable, List, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .lexicon import get_lexicon


TOKEN_REGEX = re.compile(r"[^\W_]+")
ACRONYM_REGEX = re.compile(r"^[A-Z]{2,3}$")

MAX_TOPIC_ANCHORS = 6
MAX_MESSAGE_ANCHORS = 4
ROOT_LENGTH = 6


class TopicAnchors(BaseModel):
    """
    Salient keywords of a topic or utterance plus their truncated roots.
    """

    model_config = ConfigDict(frozen=True)

    anchors: List[str] = Field(default_factory=list)
    anchor_roots: List[str] = Field(default_factory=list)


def _tokens(text: str) -> List[str]:
    if not text:
        return []
    return TOKEN_REGEX.findall(text)


def _finalize(candidates: Iterable[str], limit: int) -> TopicAnchors:
    unique = list(dict.fromkeys(candidates))[:limit]
    return TopicAnchors(anchors=unique, anchor_roots=[a[:ROOT_LENGTH] for a in unique])


def build_topic_anchors(label: str, sub_goals: Sequence[str] = (), language: str = "en") -> TopicAnchors:
    """
    Anchors for a topic: label and sub-goals, stop-words removed.

    Tokens shorter than 4 characters are kept only when they are written as an
    ASCII acronym ("AI", "HR", "KPI").
    """
    lexicon = get_lexicon(language)
    source = " ".join([label or "", *[g for g in sub_goals or () if g]])
    candidates: List[str] = []
    for token in _tokens(source):
        lower = token.lower()
        if len(lower) < 4:
            if ACRONYM_REGEX.match(token):
                candidates.append(lower)
            continue
        if lower in lexicon.stopwords:
            continue
        candidates.append(lower)
    return _finalize(candidates, MAX_TOPIC_ANCHORS)


def build_message_anchors(text: str, language: str = "en") -> TopicAnchors:
    """
    Anchors for an arbitrary utterance. No acronym whitelist; functional words
    of the language (Italian verbs, adverbs, gerunds) are dropped as well.
    """
    lexicon = get_lexicon(language)
    candidates: List[str] = []
    for token in _tokens(text):
        lower = token.lower()
        if len(lower) < 4 or lower in lexicon.stopwords or lexicon.is_functional(lower):
            continue
        candidates.append(lower)
    return _finalize(candidates, MAX_MESSAGE_ANCHORS)


def mentions_anchors(text: str, roots: Sequence[str]) -> bool:
    if not text or not roots:
        return False
    lower = text.lower()
    return any(root and root in lower for root in roots)


def anchor_overlap(source: str, target: str, language: str = "en") -> bool:
    """
    True when `target` mentions any message anchor of `source`.
    """
    roots = build_message_anchors(source, language).anchor_roots
    return mentions_anchors(target, roots)
