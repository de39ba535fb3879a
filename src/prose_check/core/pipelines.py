"""
================================================================================
EN: Text preparation and reconciliation pipelines for the proofreading model
RU: Конвейеры подготовки текста и сверки позиций для модели-корректора
================================================================================

EN: 1. prepare_for_correction: text → sentence chunks → fixed-width slices for
       oversized chunks → entity-masked ProcessedChunk list
RU: 1. prepare_for_correction: текст → чанки по предложениям → нарезка слишком
       длинных чанков → список ProcessedChunk с замаскированными сущностями

EN: 2. resolve_corrections: raw model corrections for one chunk → TextErrors
       with offsets into the original document
RU: 2. resolve_corrections: сырые исправления модели для чанка → TextError с
       позициями в исходном документе

EN: 3. merge_all: per-chunk results → one ordered, deduplicated list
RU: 3. merge_all: результаты по чанкам → один упорядоченный список без дублей
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from prose_check.providers.nlp import EntityRecognizer, SentenceClassifier

from .chunking import TextChunk, build_chunks, split_oversized
from .masking import MaskedEntity, mask_entities
from .merge import merge_all
from .reconcile import DEFAULT_CONTEXT_WORDS, RawCorrection, TextError, resolve

__all__ = [
    "ProcessedChunk",
    "prepare_for_correction",
    "resolve_corrections",
    "merge_all",
]


@dataclass
class ProcessedChunk:
    """Unit handed to the correction caller."""

    masked_text: str
    original_text: str
    start_offset: int
    end_offset: int
    entities: List[MaskedEntity] = field(default_factory=list)


def prepare_for_correction(
    text: str,
    sentences_per_chunk: int,
    *,
    max_chunk_chars: Optional[int] = None,
    classifier: Optional[SentenceClassifier] = None,
    recognizer: Optional[EntityRecognizer] = None,
) -> List[ProcessedChunk]:
    """
    EN: Chunk the text by sentences and mask entities in every chunk.
    RU: Делит текст на чанки по предложениям и маскирует сущности в каждом.

    Parameters / Параметры:
        sentences_per_chunk: sentences per chunk (> 0)
        max_chunk_chars: chunks longer than this are sliced to fixed width
                         before masking; None disables slicing
    """
    chunks: List[TextChunk] = build_chunks(text, sentences_per_chunk, classifier=classifier)

    if max_chunk_chars is not None:
        chunks = [piece for chunk in chunks for piece in split_oversized(chunk, max_chunk_chars)]

    processed: List[ProcessedChunk] = []
    for chunk in chunks:
        masked = mask_entities(chunk.text, recognizer)
        processed.append(
            ProcessedChunk(
                masked_text=masked.masked_text,
                original_text=masked.original_text,
                start_offset=chunk.start_offset,
                end_offset=chunk.end_offset,
                entities=masked.entities,
            )
        )
    return processed


def resolve_corrections(
    raw_corrections: Sequence[RawCorrection],
    processed_chunk: ProcessedChunk,
    *,
    document_text: Optional[str] = None,
    source: Optional[str] = None,
    context_words: int = DEFAULT_CONTEXT_WORDS,
) -> List[TextError]:
    """
    EN: Map one chunk's raw corrections onto the original document.
    RU: Переносит исправления одного чанка в координаты исходного документа.
    """
    return resolve(
        raw_corrections,
        processed_chunk.masked_text,
        processed_chunk.original_text,
        processed_chunk.entities,
        processed_chunk.start_offset,
        document_text=document_text,
        source=source,
        context_words=context_words,
    )
