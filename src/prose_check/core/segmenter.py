"""Sentence segmentation on top of an external boundary classifier.

RU: Разбиение текста на предложения поверх внешнего классификатора границ.
"""

from __future__ import annotations

import logging
import re
from typing import Iterator, List, Optional, Sequence

from prose_check.providers.nlp import SENTENCE, SentenceClassifier, SpacySentenceClassifier

logger = logging.getLogger(__name__)

# Common abbreviations; most of them may also end a sentence
ABBREVIATIONS = frozenset(
    {
        "Mr.", "Mrs.", "Ms.", "Dr.", "Prof.", "Sr.", "Jr.", "Ph.D.", "M.D.", "B.A.", "M.A.",
        "B.S.", "M.S.", "LL.B.", "LL.M.", "C.A.", "C.P.A.", "Ltd.", "Inc.", "Corp.", "Co.",
        "St.", "Ave.", "Rd.", "Blvd.", "vs.", "etc.", "i.e.", "e.g.", "cf.", "al.",
        "Jan.", "Feb.", "Mar.", "Apr.", "Jun.", "Jul.", "Aug.", "Sep.", "Sept.", "Oct.", "Nov.", "Dec.",
        "Mon.", "Tue.", "Wed.", "Thu.", "Fri.", "Sat.", "Sun.",
        "No.", "Vol.", "pp.", "ed.", "eds.", "trans.", "viz.", "ca.", "approx.",
        "U.S.", "U.K.", "U.N.", "E.U.", "N.Y.", "L.A.", "D.C.",
    }
)

# Titles and connectives that never end a sentence
NON_TERMINAL = frozenset({"Mr.", "Mrs.", "Ms.", "Dr.", "Prof.", "St.", "vs.", "i.e.", "e.g.", "cf.", "viz."})

_INITIAL = re.compile(r"^[A-Z]\.$")


def _last_words(sentence: str) -> List[str]:
    return [w.lstrip("(\"'") for w in sentence.split()[-2:]]


def _is_initial(words: List[str]) -> bool:
    """
    "J." или "John F." это инициал, а "plan B." нет:
    перед инициалом должно стоять слово с заглавной буквы или ничего.
    """
    if not words or not _INITIAL.match(words[-1]):
        return False
    return len(words) == 1 or words[-2][:1].isupper()


def _may_continue(sentence: str) -> bool:
    words = _last_words(sentence)
    if not words:
        return False
    return words[-1] in ABBREVIATIONS or bool(_INITIAL.match(words[-1]))


def _joins_next(sentence: str, following: str) -> bool:
    """
    Titles and initials always glue to the next sentence. Other abbreviations
    only when the next sentence does not start like a new one.
    """
    words = _last_words(sentence)
    if not words:
        return False
    if words[-1] in NON_TERMINAL or _is_initial(words):
        return True
    head = following.lstrip("(\"'")[:1]
    return head.islower() or head.isdigit()


def _rejoin_abbreviations(text: str, sentences: Sequence[str]) -> List[str]:
    """
    Склеивает предложение, оканчивающееся сокращением ("Mr."), со следующим,
    если следующее не похоже на начало нового предложения.
    Склейка берётся срезом исходного текста, чтобы не потерять пробелы.
    """
    out: List[str] = []
    cursor = 0
    pending_start: Optional[int] = None
    pending_tail = ""

    for sent in sentences:
        idx = text.find(sent, cursor)
        if idx == -1:
            # Cannot position it, so nothing may be glued across it
            if pending_start is not None:
                out.append(text[pending_start:cursor].strip())
                pending_start = None
            out.append(sent)
            continue

        if pending_start is not None and not _joins_next(pending_tail, sent):
            out.append(text[pending_start:cursor])
            pending_start = None

        end = idx + len(sent)
        start = pending_start if pending_start is not None else idx
        cursor = end
        if _may_continue(sent):
            pending_start = start
            pending_tail = sent
            continue
        out.append(text[start:end])
        pending_start = None

    if pending_start is not None:
        out.append(text[pending_start:cursor])
    return out


def _classify(text: str, classifier: SentenceClassifier) -> List[str]:
    try:
        nodes = list(classifier.classify(text))
    except Exception as exc:
        logger.warning("Sentence classifier failed, using whole text as one sentence: %s", exc)
        return [text.strip()]

    sentences = [node.raw.strip() for node in nodes if node.type == SENTENCE]
    sentences = [s for s in sentences if s]
    if not sentences:
        logger.warning("Sentence classifier returned no sentences, using whole text")
        return [text.strip()]
    return sentences


def iter_sentences(
    text: str,
    classifier: Optional[SentenceClassifier] = None,
) -> Iterator[str]:
    """
    Yield trimmed, non-empty sentences of ``text`` in document order.

    Each call runs the classifier again, so the sequence can be restarted.
    Empty or whitespace-only input yields nothing.
    """
    if not text or not text.strip():
        return

    clf = classifier or SpacySentenceClassifier()
    for sent in _rejoin_abbreviations(text, _classify(text, clf)):
        if sent:
            yield sent


def split_into_sentences(
    text: str,
    classifier: Optional[SentenceClassifier] = None,
) -> List[str]:
    return list(iter_sentences(text, classifier))
