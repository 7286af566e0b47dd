"""
Canned answers for small talk and the most common company FAQs.

Small talk is classified strictly: more than five tokens, a question mark
or an interrogative word disqualifies it (a "how are you" phrase is the one
allowed question). FAQ triggers are checked afterwards and are not subject
to that filter. Nothing here produces a generic fallback reply.
"""

import re
from functools import lru_cache
from typing import Callable, List, Optional, Tuple

from agent.answers.result import NOT_FOUND, AnswerResult, AnswerSource, Found

MAX_SMALL_TALK_TOKENS = 5

INTERROGATIVES = ["where", "what", "which", "price", "cost", "how", "when", "why", "who"]

HOW_ARE_YOU = ["how are you", "how's it going", "how is it going", "how are u", "how r u"]

GREETINGS = [
    "good morning", "good afternoon", "good evening",
    "morning", "afternoon", "evening",
    "hi", "hello", "hey", "hiya",
    "muraho", "bonjour", "salut", "habari", "mambo", "yo", "sup",
    "just greeting", "just greetings",
]
THANKS = ["thank you", "thanks", "thx", "murakoze", "merci", "asante"]
GOODBYES = ["goodbye", "bye", "see you", "cheers", "ciao"]
ACKS = ["okay", "ok", "alright", "cool", "great", "nice"]
HUMOR = ["lol", "haha", "lmao", "\U0001F602", "\U0001F605", "\U0001F606"]


def _greeting_reply(text: str) -> str:
    if _contains_word(text, "morning"):
        return "\U0001F305 Good morning! How can I help today?"
    if _contains_word(text, "afternoon"):
        return "\U0001F324\ufe0f Good afternoon! What can I do for you?"
    if _contains_word(text, "evening"):
        return "\U0001F306 Good evening! How can I assist?"
    return "\U0001F44B Hello! How can I help today?"


# Checked in order; first category with a matching phrase wins
SMALL_TALK: List[Tuple[str, List[str], Callable[[str], str]]] = [
    ("greeting", GREETINGS, _greeting_reply),
    ("thanks", THANKS, lambda _: "You're welcome! Anything else I can help with? \U0001F64C"),
    ("goodbye", GOODBYES, lambda _: "Thanks for visiting Khisima! Have a great day. \U0001F44B"),
    ("ack", ACKS, lambda _: "Got it. What else would you like to know?"),
    ("humor", HUMOR, lambda _: "\U0001F604 Haha! Now, how can I help you today?"),
]

HOW_ARE_YOU_REPLY = "I'm doing great, thanks! How can I help with your project?"

FAQS: List[Tuple[str, List[str], str]] = [
    (
        "company",
        ["what is khisima", "about khisima", "about your company", "who is khisima"],
        "Khisima is a language services & data company focused on African languages: "
        "translation/localization, language data for NLP/LLM, AI language consulting, "
        "cultural adaptation, voice-over/dubbing, and multilingual SEO.",
    ),
    (
        "languages",
        [
            "languages you support", "languages do you support", "supported languages",
            "what languages", "which languages", "language coverage",
        ],
        "We support Kinyarwanda, Swahili, English, French, Amharic, Luganda, Chewa, Wolof, "
        "Oromo and more African languages. Tell me your target pair and I'll confirm coverage.",
    ),
    (
        "pricing",
        ["pricing", "how much", "rates", "cost"],
        "Pricing depends on scope, languages, and turnaround. Translation is usually per word; "
        "data services are per task/hour. Share your brief and we'll prepare a tailored quote.",
    ),
    (
        "turnaround",
        ["turnaround", "timeline", "delivery time", "deadline"],
        "Turnaround depends on volume and complexity. Standard documents may be 24-72 hours; "
        "larger/technical projects get a milestone plan.",
    ),
    (
        "confidentiality",
        ["nda", "confidential", "privacy", "security"],
        "We can sign an NDA and follow secure, least-privilege access. "
        "Isolated workflows are available on request.",
    ),
    (
        "voice_over",
        ["voice over", "voice-over", "voiceover", "dubbing"],
        "We provide voice-over & dubbing: script adaptation, casting, studio recording, "
        "and QC for broadcast/online.",
    ),
    (
        "seo",
        ["multilingual seo", "seo"],
        "We offer multilingual SEO: local keyword research, culturally adapted content, "
        "and on-page optimization.",
    ),
    (
        "careers",
        ["careers", "job", "hiring", "internship"],
        "We love meeting talented linguists, annotators, and engineers. "
        "Check the Careers page or send a short intro + CV.",
    ),
    (
        "quote",
        ["quote", "estimate", "proposal", "rfp"],
        "Share source/target languages, volume or dataset size, domain (e.g., legal/medical), "
        "and your deadline, and we'll prepare a quote.",
    ),
]


def normalize(text: str) -> str:
    """Lowercase, unify apostrophes and collapse whitespace."""
    text = (text or "").lower().replace("’", "'").replace("‘", "'")
    return re.sub(r"\s+", " ", text).strip()


@lru_cache(maxsize=512)
def _pattern(phrase: str, whole_word: bool) -> "re.Pattern[str]":
    tail = r"(?!\w)" if whole_word else ""
    return re.compile(r"(?<!\w)" + re.escape(phrase) + tail)


def _contains_word(text: str, phrase: str) -> bool:
    return _pattern(phrase, True).search(text) is not None


def _first_phrase(text: str, phrases: List[str], whole_word: bool = True) -> Optional[str]:
    for phrase in phrases:
        if _pattern(phrase, whole_word).search(text):
            return phrase
    return None


def _is_interrogative(text: str) -> bool:
    return "?" in text or _first_phrase(text, INTERROGATIVES) is not None


def small_talk_reply(text: str) -> Optional[str]:
    """Reply for pure small talk, or None if the text is (or might be) a real question."""
    t = normalize(text)
    if not t or len(t.split(" ")) > MAX_SMALL_TALK_TOKENS:
        return None

    phrase = _first_phrase(t, HOW_ARE_YOU)
    if phrase is not None:
        # The phrase itself may end in "?"; anything else interrogative disqualifies
        remainder = _pattern(phrase, True).sub(" ", t).strip().rstrip("?!., ")
        if _is_interrogative(remainder):
            return None
        return HOW_ARE_YOU_REPLY

    if _is_interrogative(t):
        return None

    for _, phrases, reply in SMALL_TALK:
        if _first_phrase(t, phrases) is not None:
            return reply(t)
    return None


def faq_reply(text: str) -> Optional[Tuple[str, str]]:
    """Return (topic, reply) for the first FAQ whose trigger occurs in the text."""
    t = normalize(text)
    for topic, triggers, reply in FAQS:
        # Leading boundary only, so "jobs" and "quotes" still match
        if _first_phrase(t, triggers, whole_word=False) is not None:
            return topic, reply
    return None


def quick_answer(text: str) -> AnswerResult:
    reply = small_talk_reply(text)
    if reply:
        return Found(reply, AnswerSource.QUICK)
    faq = faq_reply(text)
    if faq:
        return Found(faq[1], AnswerSource.QUICK)
    return NOT_FOUND

