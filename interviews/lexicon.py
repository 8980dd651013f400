"""
Per-language keyword tables behind every text heuristic in the engine.

Each supported language is one `Lexicon` entry; classifiers and evaluators
look patterns up here instead of branching on the language code. Unknown
languages fall back to English.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Optional, Pattern


def _rx(pattern: str) -> Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


@dataclass(frozen=True)
class Lexicon:
    code: str

    # Turn-level checklist
    closure: Pattern[str]
    contact_request: Pattern[str]
    continuation: Pattern[str]
    specific_probe: Pattern[str]

    # Transcript-level checks
    bridge: Pattern[str]
    probe: Pattern[str]
    confusion: Pattern[str]
    echo_bridge: Pattern[str]
    generic_question: Pattern[str]
    natural_pivot: Pattern[str]
    consent_ask: Pattern[str]
    field_ask: Pattern[str]
    closing: Pattern[str]
    specificity: Pattern[str]

    # Reply intents, negations are checked first
    intent_negation: Pattern[str]
    intent_accept: Pattern[str]
    intent_refuse: Pattern[str]
    skip: Pattern[str]

    stopwords: FrozenSet[str]
    functional_words: FrozenSet[str] = frozenset()
    functional_suffix: Optional[Pattern[str]] = None

    issues: Mapping[str, str] = field(default_factory=dict)

    def is_functional(self, token: str) -> bool:
        if token in self.functional_words:
            return True
        return bool(self.functional_suffix and self.functional_suffix.search(token))

    def issue(self, check: str) -> str:
        return self.issues.get(check) or LEXICONS["en"].issues.get(check, check)


_ISSUES_EN = {
    "single_question": "Must ask exactly one question per turn.",
    "avoids_closure": "Closes the interview before its closing turn.",
    "avoids_premature_contact": "Requests contact data outside DATA_COLLECTION phase.",
    "references_context": "Does not clearly anchor to the user's response: missing reference to shared content.",
    "non_repetitive": "Question is near-identical to the previous one.",
    "probing_when_user_is_brief": "Brief user response requires specific probing, not a generic question.",
    "deep_offer_intent": "In DEEP_OFFER must offer to continue, not ask a topic question.",
    "semantic_understanding": "Does not seem to understand the user's answer before the follow-up.",
    "meaning_respect": "Forced rephrasing: echoes the answer instead of respecting its meaning.",
    "consent_interpretation": "Consent/refusal interpretation is inconsistent with the user's answer.",
    "non_generic": "Repetitive or too generic question.",
    "engagement_quality": "Low-engagement follow-up: no natural deepening.",
    "interesting_signal_capture": "Does not build on the interesting signals in the user's answer.",
    "transition_coherence": "Topic transition is not semantically coherent.",
    "confusion_echo": "Unnatural clarification handling: rephrase without echoing.",
}

_ISSUES_IT = {
    "single_question": "Deve porre una sola domanda per turno.",
    "avoids_closure": "Chiude l'intervista prima del turno di chiusura.",
    "avoids_premature_contact": "Richiede dati di contatto fuori dalla fase DATA_COLLECTION.",
    "references_context": "Non aggancia chiaramente alla risposta dell'utente: manca riferimento al contenuto condiviso.",
    "non_repetitive": "Domanda quasi identica a quella precedente.",
    "probing_when_user_is_brief": "Risposta breve dell'utente richiede probing specifico, non domanda generica.",
    "deep_offer_intent": "In DEEP_OFFER deve proporre continuazione, non porre una domanda topic.",
    "semantic_understanding": "Non sembra comprendere semanticamente la risposta utente prima del follow-up.",
    "meaning_respect": "Riformula in modo forzato: echo della risposta invece di rispettarne il significato.",
    "consent_interpretation": "Interpretazione consenso/non consenso non coerente con la risposta utente.",
    "non_generic": "Domanda ripetitiva o troppo generica.",
    "engagement_quality": "Follow-up poco ingaggiante: manca approfondimento naturale.",
    "interesting_signal_capture": "Non valorizza i segnali interessanti della risposta utente.",
    "transition_coherence": "Transizione topic non coerente semanticamente.",
    "confusion_echo": "Gestione chiarimento non naturale: serve riformulare senza echo.",
}


ENGLISH = Lexicon(
    code="en",
    closure=_rx(
        r"\b(goodbye|good-bye|have a great day|have a good day|farewell|see you soon|all the best|bye bye)\b"
        r"|INTERVIEW_COMPLETED"
    ),
    contact_request=_rx(r"\b(email|e-mail|phone number|telephone|mobile number|linkedin)\b"),
    continuation=_rx(
        r"\b(continu\w*|keep going|a few more|few extra|some more questions|bit longer|more minutes|a few questions)\b"
    ),
    specific_probe=_rx(
        r"\b(example|specific|concret\w*|tell me (more about|how)|in what way|walk me through|detail)\b"
    ),
    bridge=_rx(r"\b(interesting|i see|what you said|you mentioned|regarding|about this|on this point)\b"),
    probe=_rx(r"\b(could you|can you|in what way|what impact|example|tell me more)\b"),
    confusion=_rx(r"\b(i don't understand|i do not understand|not clear|can you clarify|can you explain)\b"),
    echo_bridge=_rx(r"\b(you said|you mentioned)\b[^?]*[\"“”'][^\"“”']+[\"“”']"),
    generic_question=_rx(r"\b(what do you think|any other thoughts|tell me more)\b"),
    natural_pivot=_rx(r"\b(regarding|about|in relation to|on this point)\b"),
    consent_ask=_rx(r"\b(may i ask.*contact|permission.*contact|collect.*contact(?: details)?)\b"),
    field_ask=_rx(r"\b(name|email|phone|company|role|linkedin)\b"),
    closing=_rx(r"\b(thank you|interview completed|goodbye|have a great day)\b"),
    specificity=_rx(r"\b(case|example|project|company|client|team|process|strategy|issue)\b"),
    intent_negation=_rx(
        r"^\W*no\b(?!\s+(problem|worries))|\bno thanks\b|\b(don'?t|do not) want\b|\b(prefer|rather) not\b"
        r"|\blet'?s stop\b|\blet us stop\b|\bnot (now|really|interested)\b|\bi (can'?t|cannot) continue\b"
    ),
    intent_accept=_rx(r"\b(yes|(?<!not )sure|ok|okay|go ahead|continue|i agree|agreed)\b"),
    intent_refuse=_rx(r"\b(no|prefer not|prefer to conclude|stop|let us stop|i do not want)\b"),
    skip=_rx(r"\b(prefer not|rather not|skip|i do not want|i can't|i cannot)\b"),
    stopwords=frozenset(
        {
            "the", "a", "an", "and", "or", "to", "of", "in", "on", "for", "with", "without",
            "by", "at", "from", "is", "are", "be", "this", "that", "these", "those",
            "what", "which", "who", "whom", "where", "when", "why", "how",
        }
    ),
    issues=_ISSUES_EN,
)


ITALIAN = Lexicon(
    code="it",
    closure=_rx(
        r"\b(arrivederci|buona giornata|buon lavoro|a presto|ci sentiamo|alla prossima|buona fortuna)\b"
        r"|INTERVIEW_COMPLETED"
    ),
    contact_request=_rx(r"\b(email|e-mail|telefono|cellulare|numero di (telefono|cellulare|contatto)|linkedin)\b"),
    continuation=_rx(
        r"\b(continu\w*|prosegu\w*|ancora qualche|ancora un po|altri minuti|pi[uù] minuti"
        r"|ulteriori domande|qualche domanda|qualche minuto|paio di minuti)\b"
    ),
    specific_probe=_rx(r"\b(esempio|concreto|raccont\w+|in che modo|entrare nel dettaglio|nello specifico)\b"),
    bridge=_rx(r"\b(interessante|capisco|quello che dici|hai menzionato|riguardo|in merito|su questo punto)\b"),
    probe=_rx(r"\b(puoi|potresti|in che modo|quale impatto|farmi un esempio|raccontarmi)\b"),
    confusion=_rx(r"\b(non capisco|non ho capito|non mi è chiaro|puoi chiarire|puoi spiegare meglio)\b"),
    echo_bridge=_rx(r"\b(hai detto|hai menzionato)\b[^?]*[\"“”'][^\"“”']+[\"“”']"),
    generic_question=_rx(r"\b(cosa ne pensi|come la vedi|mi racconti di pi[uù]|c'? ?e altro)\b"),
    natural_pivot=_rx(r"\b(riguardo|in merito|sul tema|su questo punto)\b"),
    consent_ask=_rx(r"\b(posso (chiederti|raccogliere).*(contatt\w*|dati?)|permesso.*(contatt\w*|dati?))\b"),
    field_ask=_rx(r"\b(nome|chiami|cognome|email|mail|telefono|numero|azienda|ruolo|linkedin)\b"),
    closing=_rx(r"\b(grazie|intervista conclusa|arrivederci|buona giornata|a presto)\b"),
    specificity=_rx(r"\b(caso|esempio|progetto|azienda|cliente|team|processo|strategia|problema)\b"),
    intent_negation=_rx(
        r"^\W*no\b(?!\s+problem)|\bno grazie\b|\b(direi|meglio|preferisco) di no\b|\banche no\b"
        r"|\bnon (voglio|ora|continu\w*|prosegu\w*|autorizzo|mi va|possiamo)\b"
        r"|\bpreferisco (non|chiudere)\b|\bchiudiamo qui\b|\bfermiamoci\b|\bbasta\b"
    ),
    intent_accept=_rx(
        r"\b(si|sì|ok|va bene|certo|procedi|continuiamo|proseguiamo|andiamo avanti|possiamo|volentieri|autorizzo)\b"
    ),
    intent_refuse=_rx(r"\b(no|preferisco|fermiamoci|basta|concludere|non voglio)\b"),
    skip=_rx(r"\b(preferisco non|non voglio|skip|non posso)\b"),
    stopwords=frozenset(
        {
            "il", "lo", "la", "i", "gli", "le", "un", "uno", "una",
            "di", "a", "da", "in", "su", "per", "con", "tra", "fra",
            "del", "dello", "della", "dei", "degli", "delle",
            "al", "allo", "alla", "ai", "agli", "alle",
            "che", "e", "o", "ma", "non", "piu", "meno", "come",
            "quale", "quali", "questa", "questo", "questi", "queste",
            "cosa", "chi", "dove", "quando", "perche", "cioe",
        }
    ),
    # Only words that are never domain nouns or adjectives.
    functional_words=frozenset(
        {
            "cerco", "cerca", "cerchi", "trovo", "trova", "voglio", "vuole", "vuoi",
            "posso", "puoi", "deve", "devo", "dobbiamo", "vado", "andiamo", "viene",
            "vengo", "resto", "rimane", "rimango", "sento", "vedo", "provo",
            "compro", "servo", "piace", "manca", "basta", "sembra", "succede",
            "stato", "stata", "fatto", "fatta", "detto", "detta",
            "vorrei", "dovrei", "potrei", "avrei", "sarei",
            "ancora", "anche", "bene", "male", "molto", "poco", "quasi", "sempre",
            "spesso", "magari", "forse", "sicuro", "proprio", "tipo", "tanto",
            "abbastanza", "addirittura", "comunque", "invece", "tuttavia", "quindi",
            "pero", "allora", "certo", "certa", "ovvio", "ovvia",
            "subito", "prima", "dopo", "ormai", "appena", "niente", "nulla",
        }
    ),
    functional_suffix=_rx(r"(?:ando|endo)$"),
    issues=_ISSUES_IT,
)


LEXICONS: Dict[str, Lexicon] = {"en": ENGLISH, "it": ITALIAN}


def register_lexicon(lexicon: Lexicon) -> None:
    """
    Add or replace the lexicon for `lexicon.code`.
    """
    LEXICONS[lexicon.code.lower()] = lexicon


def get_lexicon(language: Optional[str]) -> Lexicon:
    """
    Resolve a lexicon by language prefix ("it", "it-IT", "IT" all map to Italian).
    """
    code = (language or "").strip().lower()
    if code in LEXICONS:
        return LEXICONS[code]
    for key, lexicon in LEXICONS.items():
        if code.startswith(key):
            return lexicon
    return LEXICONS["en"]
