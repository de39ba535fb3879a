"""Sentence-based chunking with offsets into the original text.

Chunk text is always a verbatim slice of the source, never a re-joined list
of sentences, so offsets reported against a chunk map straight back.

RU: Нарезка текста на чанки по предложениям с позициями в исходном тексте.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from langchain_text_splitters import RecursiveCharacterTextSplitter

from prose_check.providers.nlp import SentenceClassifier

from .segmenter import split_into_sentences

logger = logging.getLogger(__name__)


@dataclass
class TextChunk:
    """
    Группа подряд идущих предложений.
    text всегда равен original[start_offset:end_offset].
    """
    text: str
    start_offset: int
    end_offset: int
    sentence_count: int


def _find_sentence(text: str, sentence: str, start: int) -> Optional[Tuple[int, int]]:
    """
    Ищет предложение дословно, затем с допуском по пробелам.
    Возвращает (start, end) в координатах text или None.
    """
    idx = text.find(sentence, start)
    if idx != -1:
        return idx, idx + len(sentence)

    tokens = sentence.split()
    if not tokens:
        return None
    pattern = re.compile(r"\s+".join(re.escape(tok) for tok in tokens))
    m = pattern.search(text, start)
    if m is None:
        return None
    return m.start(), m.end()


def build_chunks(
    text: str,
    sentences_per_chunk: int,
    *,
    classifier: Optional[SentenceClassifier] = None,
) -> List[TextChunk]:
    """
    Делит текст на чанки по sentences_per_chunk предложений.
    Границы чанка находятся поиском в исходном тексте, текст чанка это срез,
    а не склейка предложений.
    """
    if sentences_per_chunk < 1:
        raise ValueError("sentences_per_chunk должен быть >= 1.")

    sentences = split_into_sentences(text, classifier)
    chunks: List[TextChunk] = []
    if not sentences:
        return chunks

    search_start = 0
    for i in range(0, len(sentences), sentences_per_chunk):
        batch = sentences[i : i + sentences_per_chunk]

        first = _find_sentence(text, batch[0], search_start)
        if first is None:
            logger.warning("Sentence not found, skipping batch %d: %r", i // sentences_per_chunk, batch[0][:60])
            continue
        start_offset = first[0]

        # Последнее предложение ищем от начала чанка, а не от глобального курсора
        last = _find_sentence(text, batch[-1], start_offset)
        if last is None:
            logger.warning("Sentence not found, skipping batch %d: %r", i // sentences_per_chunk, batch[-1][:60])
            continue
        end_offset = max(last[1], first[1])

        chunks.append(
            TextChunk(
                text=text[start_offset:end_offset],
                start_offset=start_offset,
                end_offset=end_offset,
                sentence_count=len(batch),
            )
        )
        search_start = end_offset

    return chunks


def _fixed_width_splitter(max_chars: int) -> RecursiveCharacterTextSplitter:
    """
    Режет по символам без перекрытия и без обрезки пробелов.
    """
    return RecursiveCharacterTextSplitter(
        chunk_size=max_chars,
        chunk_overlap=0,
        separators=[""],
        keep_separator=False,
        strip_whitespace=False,
        add_start_index=True,
    )


def split_oversized(chunk: TextChunk, max_chars: int) -> List[TextChunk]:
    """
    Safety fallback for chunks above the character ceiling: fixed-width slices,
    each keeping the slice invariant against the original document.
    """
    if max_chars < 1:
        raise ValueError("max_chars должен быть >= 1.")
    if len(chunk.text) <= max_chars:
        return [chunk]

    logger.warning(
        "Chunk at %d exceeds %d chars (%d chars), slicing",
        chunk.start_offset,
        max_chars,
        len(chunk.text),
    )
    docs = _fixed_width_splitter(max_chars).create_documents([chunk.text])

    out: List[TextChunk] = []
    for doc in docs:
        local = doc.metadata["start_index"]
        start = chunk.start_offset + local
        out.append(
            TextChunk(
                text=doc.page_content,
                start_offset=start,
                end_offset=start + len(doc.page_content),
                sentence_count=0,
            )
        )
    return out
