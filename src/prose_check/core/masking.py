"""Named-entity masking for text sent to the correction model.

Proper nouns, dates and URLs are swapped for placeholder tokens such as
``<ENTITY_PERSON_0>`` so the model does not "fix" them. The returned table
records where every token came from, which is what position reconciliation
uses to map findings back onto the unmasked text.

RU: Маскирование именованных сущностей перед отправкой текста модели.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from prose_check.providers.nlp import EntityGroups, EntityRecognizer, SpacyEntityRecognizer

logger = logging.getLogger(__name__)


class EntityType(str, Enum):
    PERSON = "person"
    PLACE = "place"
    ORGANIZATION = "organization"
    DATE = "date"
    URL = "url"


@dataclass
class MaskedEntity:
    """Entity replaced by a token; start/end are pre-mask chunk-local offsets."""

    text: str
    replacement: str
    start: int
    end: int
    type: EntityType


@dataclass
class MaskResult:
    masked_text: str
    original_text: str
    entities: List[MaskedEntity] = field(default_factory=list)


def _grouped_candidates(groups: EntityGroups) -> List[Tuple[str, EntityType]]:
    return (
        [(t, EntityType.PERSON) for t in groups.people]
        + [(t, EntityType.PLACE) for t in groups.places]
        + [(t, EntityType.ORGANIZATION) for t in groups.organizations]
        + [(t, EntityType.DATE) for t in groups.dates]
        + [(t, EntityType.URL) for t in groups.urls]
    )


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _on_word_boundary(text: str, start: int, end: int) -> bool:
    if start > 0 and _is_word_char(text[start - 1]) and _is_word_char(text[start]):
        return False
    if end < len(text) and _is_word_char(text[end - 1]) and _is_word_char(text[end]):
        return False
    return True


def _pick_occurrence(
    text: str,
    literal: str,
    start: int,
    claimed: List[Tuple[int, int, str, EntityType]],
) -> int:
    """
    Первое вхождение на границе слов, не задевающее уже найденные сущности.
    Иначе первое вхождение, не лежащее целиком внутри найденной сущности.
    """
    fallback = -1
    idx = text.find(literal, start)
    while idx != -1:
        end = idx + len(literal)
        overlaps = any(idx < c_end and c_start < end for c_start, c_end, _, _ in claimed)
        if not overlaps and _on_word_boundary(text, idx, end):
            return idx
        inside = any(c_start <= idx and end <= c_end for c_start, c_end, _, _ in claimed)
        if fallback == -1 and not inside:
            fallback = idx
        idx = text.find(literal, idx + 1)
    return fallback


def _locate(text: str, candidates: List[Tuple[str, EntityType]]) -> List[Tuple[int, int, str, EntityType]]:
    """
    Находит позиции кандидатов. Повторный литерал ищется после предыдущего
    совпадения того же литерала, поэтому дубликаты попадают на разные вхождения.
    """
    next_search: Dict[str, int] = {}
    located: List[Tuple[int, int, str, EntityType]] = []
    for literal, etype in candidates:
        if not literal or not literal.strip():
            continue
        idx = _pick_occurrence(text, literal, next_search.get(literal, 0), located)
        if idx == -1:
            continue
        next_search[literal] = idx + len(literal)
        located.append((idx, idx + len(literal), literal, etype))
    return located


def _drop_overlaps(located: List[Tuple[int, int, str, EntityType]]) -> List[Tuple[int, int, str, EntityType]]:
    # Earlier start wins, then the longer span
    kept: List[Tuple[int, int, str, EntityType]] = []
    for cand in sorted(located, key=lambda c: (c[0], -(c[1] - c[0]))):
        if kept and cand[0] < kept[-1][1]:
            continue
        kept.append(cand)
    return kept


def mask_entities(
    text: str,
    recognizer: Optional[EntityRecognizer] = None,
) -> MaskResult:
    """
    Replace detected entities in ``text`` with ``<ENTITY_<TYPE>_<n>>`` tokens.

    Replacement runs right to left so earlier offsets stay valid; ``n`` grows
    in that order and the stored table is reversed back to reading order.
    A recognizer failure leaves the text unmasked.
    """
    rec = recognizer or SpacyEntityRecognizer()
    try:
        groups = rec.entities_of(text)
    except Exception as exc:
        logger.warning("Entity recognizer failed, sending chunk unmasked: %s", exc)
        return MaskResult(masked_text=text, original_text=text)

    located = _drop_overlaps(_locate(text, _grouped_candidates(groups)))

    entities: List[MaskedEntity] = []
    masked = text
    index = 0
    for start, end, literal, etype in sorted(located, key=lambda c: c[0], reverse=True):
        token = f"<ENTITY_{etype.value.upper()}_{index}>"
        while token in text:
            index += 1
            token = f"<ENTITY_{etype.value.upper()}_{index}>"
        index += 1

        entities.append(MaskedEntity(text=literal, replacement=token, start=start, end=end, type=etype))
        masked = masked[:start] + token + masked[end:]

    entities.reverse()
    return MaskResult(masked_text=masked, original_text=text, entities=entities)


def unmask_entities(masked_text: str, entities: List[MaskedEntity]) -> str:
    """Put entity literals back in place of their tokens."""
    restored = masked_text
    for entity in sorted(entities, key=lambda e: e.start, reverse=True):
        restored = restored.replace(entity.replacement, entity.text, 1)
    return restored
