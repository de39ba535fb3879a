"""Document-level proofreading: chunk, call the model per chunk, reconcile, merge.

RU: Проверка документа целиком: чанки, вызов модели по каждому чанку,
сверка позиций и слияние результатов.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

from prose_check.providers.llm import Corrector
from prose_check.providers.nlp import (
    EntityRecognizer,
    SentenceClassifier,
    SpacyEntityRecognizer,
    SpacySentenceClassifier,
)

from .config import CheckConfig, load_check_config
from .diagnostics import ChunkDiagnostics, CheckDiagnostics, write_check_log
from .pipelines import ProcessedChunk, merge_all, prepare_for_correction, resolve_corrections
from .reconcile import TextError

logger = logging.getLogger(__name__)


class GenerationCounter:
    """
    Монотонный счётчик запросов: результат применяется, только если его
    поколение всё ещё последнее.
    """

    def __init__(self) -> None:
        self._latest = 0

    @property
    def latest(self) -> int:
        return self._latest

    def advance(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, generation: int) -> bool:
        return generation == self._latest


class DocumentChecker:
    """Runs the full correction pass for a document against one corrector."""

    def __init__(
        self,
        corrector: Corrector,
        *,
        config: Optional[CheckConfig] = None,
        classifier: Optional[SentenceClassifier] = None,
        recognizer: Optional[EntityRecognizer] = None,
        source: Optional[str] = "gpt",
    ) -> None:
        self.config = config or load_check_config()
        self.corrector = corrector
        self.classifier = classifier or SpacySentenceClassifier(self.config.spacy_model)
        self.recognizer = recognizer or SpacyEntityRecognizer(self.config.spacy_model)
        self.source = source
        self.generations = GenerationCounter()

    async def _check_chunk(
        self,
        chunk: ProcessedChunk,
        document_text: str,
        semaphore: asyncio.Semaphore,
        diag: ChunkDiagnostics,
    ) -> List[TextError]:
        async with semaphore:
            try:
                raw = await self.corrector.correct(chunk.masked_text)
            except Exception as exc:
                # Ошибка одного чанка не должна останавливать остальные
                logger.warning("Correction failed for chunk at %d: %s", chunk.start_offset, exc)
                diag.error = f"{type(exc).__name__}: {exc}"
                return []

        errors = resolve_corrections(
            raw,
            chunk,
            document_text=document_text,
            source=self.source,
            context_words=self.config.context_words,
        )
        diag.raw_corrections = len(raw)
        diag.resolved = len(errors)
        diag.collapsed = sum(1 for e in errors if e.start == e.end)
        return errors

    async def check(self, text: str) -> Optional[List[TextError]]:
        """
        Check ``text`` and return merged findings ordered by offset.

        Returns None when another check() started while this one was running;
        that pass's results are stale and must not be shown.
        """
        generation = self.generations.advance()
        started = time.perf_counter()

        text = text or ""
        truncated = len(text) > self.config.max_text_chars
        if truncated:
            logger.info("Text truncated from %d to %d chars", len(text), self.config.max_text_chars)
            text = text[: self.config.max_text_chars]

        diagnostics = CheckDiagnostics(
            generation=generation,
            text_chars=len(text),
            truncated=truncated,
            sentences_per_chunk=self.config.sentences_per_chunk,
            llm_model=getattr(self.corrector, "model", type(self.corrector).__name__),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
        )

        chunks = prepare_for_correction(
            text,
            self.config.sentences_per_chunk,
            max_chunk_chars=self.config.max_chunk_chars,
            classifier=self.classifier,
            recognizer=self.recognizer,
        )
        logger.debug("Check %d: %d chunks", generation, len(chunks))

        semaphore = asyncio.Semaphore(self.config.max_concurrent_requests)
        diagnostics.chunks = [ChunkDiagnostics.for_chunk(i, c) for i, c in enumerate(chunks)]
        results = await asyncio.gather(
            *(
                self._check_chunk(chunk, text, semaphore, diag)
                for chunk, diag in zip(chunks, diagnostics.chunks)
            )
        )

        merged = merge_all(results)
        diagnostics.duration_ms = (time.perf_counter() - started) * 1000
        diagnostics.final_errors = len(merged)
        diagnostics.stale = not self.generations.is_current(generation)

        if self.config.log_dir:
            write_check_log(diagnostics, self.config.log_dir)

        if diagnostics.stale:
            logger.info(
                "Discarding stale check %d (latest is %d)", generation, self.generations.latest
            )
            return None
        return merged
