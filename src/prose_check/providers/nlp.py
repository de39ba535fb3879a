"""spaCy-backed sentence boundary classifier and named-entity recognizer.

RU: Классификатор границ предложений и NER поверх spaCy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterator, List, Protocol

import spacy
from spacy.language import Language

logger = logging.getLogger(__name__)

SENTENCE = "Sentence"
WHITESPACE = "WhiteSpace"

_PLACE_LABELS = {"GPE", "LOC", "FAC"}


@dataclass
class SentenceNode:
    """Single node produced by a sentence classifier."""

    type: str
    raw: str


@dataclass
class EntityGroups:
    """Entity literals grouped by category, one entry per occurrence."""

    people: List[str] = field(default_factory=list)
    places: List[str] = field(default_factory=list)
    organizations: List[str] = field(default_factory=list)
    dates: List[str] = field(default_factory=list)
    urls: List[str] = field(default_factory=list)


class SentenceClassifier(Protocol):
    def classify(self, text: str) -> Iterator[SentenceNode]: ...


class EntityRecognizer(Protocol):
    def entities_of(self, text: str) -> EntityGroups: ...


@lru_cache(maxsize=4)
def load_spacy_model(name: str) -> Language:
    """
    Загружает модель spaCy один раз на процесс.
    """
    logger.info("Loading spaCy model %s", name)
    return spacy.load(name)


class SpacySentenceClassifier:
    """Sentence boundaries from the dependency parse of a spaCy pipeline."""

    def __init__(self, model: str = "en_core_web_sm") -> None:
        self.model = model

    def classify(self, text: str) -> Iterator[SentenceNode]:
        doc = load_spacy_model(self.model)(text)
        cursor = 0
        for sent in doc.sents:
            if sent.start_char > cursor:
                yield SentenceNode(type=WHITESPACE, raw=text[cursor : sent.start_char])
            yield SentenceNode(type=SENTENCE, raw=text[sent.start_char : sent.end_char])
            cursor = sent.end_char
        if cursor < len(text):
            yield SentenceNode(type=WHITESPACE, raw=text[cursor:])


class SpacyEntityRecognizer:
    """Maps spaCy entity labels onto the five masked categories."""

    def __init__(self, model: str = "en_core_web_sm") -> None:
        self.model = model

    def entities_of(self, text: str) -> EntityGroups:
        doc = load_spacy_model(self.model)(text)
        groups = EntityGroups()
        for ent in doc.ents:
            if ent.label_ == "PERSON":
                groups.people.append(ent.text)
            elif ent.label_ in _PLACE_LABELS:
                groups.places.append(ent.text)
            elif ent.label_ == "ORG":
                groups.organizations.append(ent.text)
            elif ent.label_ == "DATE":
                groups.dates.append(ent.text)
        # URLs are not an entity label in the English pipelines
        groups.urls.extend(tok.text for tok in doc if tok.like_url)
        return groups
