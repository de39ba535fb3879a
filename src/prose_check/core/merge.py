"""Deduplication and merging of findings from several chunks or sources.

RU: Удаление дублей и слияние находок из разных чанков и источников.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

from .reconcile import ErrorType, TextError

_Key = Tuple[int, int, ErrorType, str, str]


def _key(err: TextError) -> _Key:
    return (err.start, err.end, err.type, err.word, err.suggestion)


def _overlaps(a: TextError, b: TextError) -> bool:
    return a.start < b.end and b.start < a.end


def is_noop(err: TextError) -> bool:
    """Suggestion equal to the flagged text, ignoring case and outer whitespace."""
    return (err.suggestion or "").strip().lower() == (err.word or "").strip().lower()


def merge_errors(errors: Iterable[TextError]) -> List[TextError]:
    """
    Слияние находок из разных чанков и источников.

    - no-op исправления отбрасываются;
    - одинаковый ключ (start, end, type, word, suggestion): оставляем одну,
      предпочитая запись с explanation;
    - пересечение с тем же suggestion: более позднюю отбрасываем;
    - пересечение с другим suggestion: остаётся самый длинный диапазон.

    Результат отсортирован по (start, end); повторное слияние ничего не меняет.
    """
    kept: Dict[_Key, TextError] = {}

    for err in errors:
        if is_noop(err):
            continue

        key = _key(err)
        existing = kept.get(key)
        if existing is not None:
            if not existing.explanation and err.explanation:
                kept[key] = err
            continue

        clashing = [k for k, other in kept.items() if _overlaps(err, other)]
        if any(kept[k].suggestion == err.suggestion for k in clashing):
            continue
        span = err.end - err.start
        if any(kept[k].end - kept[k].start >= span for k in clashing):
            continue
        for k in clashing:
            del kept[k]
        kept[key] = err

    return sorted(kept.values(), key=lambda e: (e.start, e.end))


def merge_all(error_lists: Sequence[Sequence[TextError]]) -> List[TextError]:
    """Flatten per-chunk (or per-source) results and merge them."""
    return merge_errors(err for errors in error_lists for err in errors)
