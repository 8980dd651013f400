from __future__ import annotations

from .lexicon import get_lexicon
from .models import Intent


def classify_intent(text: str, language: str) -> Intent:
    """
    Map a yes/no style reply to ACCEPT / REFUSE / NEUTRAL.

    Explicit refusals and negated acceptances ("no, I don't want to continue")
    are checked first; otherwise acceptance wins when a reply matches both
    tables ("ok, no problem").
    """
    lower = " ".join((text or "").lower().split())
    lexicon = get_lexicon(language)
    if lexicon.intent_negation.search(lower):
        return Intent.REFUSE
    if lexicon.intent_accept.search(lower):
        return Intent.ACCEPT
    if lexicon.intent_refuse.search(lower):
        return Intent.REFUSE
    return Intent.NEUTRAL


def is_confusion(text: str, language: str) -> bool:
    normalized = " ".join((text or "").lower().split())
    if not normalized:
        return False
    return bool(get_lexicon(language).confusion.search(normalized))


def is_skip_reply(text: str, language: str) -> bool:
    return bool(get_lexicon(language).skip.search((text or "").lower()))
