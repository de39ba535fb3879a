"""Position reconciliation for corrections returned by the model.

The model works on masked, chunked text and its character indices are often
wrong. Offsets are recovered in two stages:

* Stage A shifts the reported indices by the length difference of every mask
  token that sits before them in the masked text.
* Stage B ignores the indices whenever possible and looks the flagged
  substring up in the unmasked chunk, moving a cursor forward so repeated
  words map to successive occurrences. Reported indices are used only when
  the substring cannot be found, and only if they are in range.

RU: Восстановление позиций исправлений в исходном тексте.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .masking import MaskedEntity

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_WORDS = 4


class ErrorType(str, Enum):
    SPELLING = "spelling"
    GRAMMAR = "grammar"
    STYLE = "style"


class RawCorrection(BaseModel):
    """Correction as reported by the model. Nothing here is trusted."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    category: str = Field(default="grammar", validation_alias=AliasChoices("category", "type"))
    start_index: Optional[int] = Field(default=None, validation_alias=AliasChoices("start_index", "start"))
    end_index: Optional[int] = Field(default=None, validation_alias=AliasChoices("end_index", "end"))
    original_text: str = Field(validation_alias=AliasChoices("original_text", "original"))
    suggested_replacement: str = Field(
        validation_alias=AliasChoices("suggested_replacement", "suggestion")
    )
    explanation: str = ""

    @field_validator("explanation", "category", mode="before")
    @classmethod
    def _none_to_default(cls, value: Any) -> Any:
        return "" if value is None else value


@dataclass
class TextError:
    """Finding with offsets into the original document."""

    type: ErrorType
    word: str
    start: int
    end: int
    suggestion: str = ""
    explanation: str = ""
    context_before: str = ""
    context_after: str = ""
    source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "type": self.type.value,
            "word": self.word,
            "start": self.start,
            "end": self.end,
            "suggestion": self.suggestion,
            "explanation": self.explanation,
            "contextBefore": self.context_before,
            "contextAfter": self.context_after,
        }
        if self.source is not None:
            out["source"] = self.source
        return out


def normalize_category(raw: Optional[str]) -> ErrorType:
    """
    Map the model's free-form category onto ErrorType.

    Anything that is not spelling or a tone/style rewrite, including the
    older "punctuation" category, counts as grammar.
    """
    value = (raw or "").lower()
    if "spell" in value:
        return ErrorType.SPELLING
    if "style" in value or "tone" in value:
        return ErrorType.STYLE
    return ErrorType.GRAMMAR


def extract_context(
    text: str,
    start: int,
    end: int,
    words: int = DEFAULT_CONTEXT_WORDS,
) -> Tuple[str, str]:
    """Up to ``words`` whitespace-delimited words before ``start`` and after ``end``."""
    if words <= 0:
        return "", ""
    before = text[: max(0, start)].split()[-words:]
    after = text[max(0, end) :].split()[:words]
    return " ".join(before), " ".join(after)


def _restore_tokens(fragment: str, entities: Sequence[MaskedEntity]) -> str:
    for entity in entities:
        if entity.replacement in fragment:
            fragment = fragment.replace(entity.replacement, entity.text)
    return fragment


def adjust_for_masks(
    corrections: Sequence[RawCorrection],
    masked_text: str,
    entities: Sequence[MaskedEntity],
) -> List[RawCorrection]:
    """
    Stage A: shift reported indices from masked-text space to unmasked space.
    """
    mask_positions = [(masked_text.find(e.replacement), len(e.text) - len(e.replacement)) for e in entities]

    adjusted: List[RawCorrection] = []
    for corr in corrections:
        if corr.start_index is None:
            adjusted.append(corr)
            continue
        delta = sum(diff for pos, diff in mask_positions if pos != -1 and pos < corr.start_index)
        adjusted.append(
            corr.model_copy(
                update={
                    "start_index": corr.start_index + delta,
                    "end_index": corr.end_index + delta if corr.end_index is not None else None,
                }
            )
        )
    return adjusted


def _locate(
    corr: RawCorrection,
    flagged: str,
    chunk_text: str,
    cursor: int,
) -> Tuple[int, int, int]:
    """
    Stage B for one correction. Returns (start, end, new_cursor) in chunk-local offsets.
    """
    if flagged:
        idx = chunk_text.find(flagged, cursor)
        if idx == -1:
            # модель вернула исправления не по порядку
            idx = chunk_text.find(flagged)
        if idx != -1:
            end = idx + len(flagged)
            return idx, end, end

    start, end = corr.start_index, corr.end_index
    if start is not None and end is not None and 0 <= start < end <= len(chunk_text):
        return start, end, cursor

    logger.warning("Could not place correction %r, collapsing to offset %d", flagged[:60], cursor)
    return cursor, cursor, cursor


def resolve(
    raw_corrections: Sequence[RawCorrection],
    masked_text: str,
    original_text: str,
    entities: Sequence[MaskedEntity],
    chunk_start_offset: int,
    *,
    document_text: Optional[str] = None,
    source: Optional[str] = None,
    context_words: int = DEFAULT_CONTEXT_WORDS,
) -> List[TextError]:
    """
    Resolve model corrections for one chunk into TextErrors with document offsets.

    ``original_text`` is the chunk's unmasked text. Context words are taken
    from ``document_text`` when given, otherwise from the chunk itself.
    """
    adjusted = adjust_for_masks(raw_corrections, masked_text, entities)

    errors: List[TextError] = []
    cursor = 0
    for corr in adjusted:
        flagged = _restore_tokens(corr.original_text or "", entities)
        local_start, local_end, cursor = _locate(corr, flagged, original_text, cursor)

        start = local_start + chunk_start_offset
        end = local_end + chunk_start_offset
        if document_text is not None:
            before, after = extract_context(document_text, start, end, context_words)
        else:
            before, after = extract_context(original_text, local_start, local_end, context_words)

        errors.append(
            TextError(
                type=normalize_category(corr.category),
                word=flagged,
                start=start,
                end=end,
                suggestion=_restore_tokens(corr.suggested_replacement or "", entities),
                explanation=corr.explanation or "",
                context_before=before,
                context_after=after,
                source=source,
            )
        )
    return errors
