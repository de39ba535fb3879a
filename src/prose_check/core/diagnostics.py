from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from .pipelines import ProcessedChunk


def _safe_preview(text: str, limit: int = 120) -> str:
    value = (text or "").strip()
    if len(value) <= limit:
        return value
    return value[:limit].rstrip() + "…"


@dataclass
class ChunkDiagnostics:
    """
    Snapshot of one chunk's trip through masking, the model and reconciliation.
    """

    index: int
    start_offset: int
    end_offset: int
    masked_entities: int
    raw_corrections: int = 0
    resolved: int = 0
    collapsed: int = 0
    error: Optional[str] = None
    text_preview: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
            "masked_entities": self.masked_entities,
            "raw_corrections": self.raw_corrections,
            "resolved": self.resolved,
            "collapsed": self.collapsed,
            "error": self.error,
            "text_preview": self.text_preview,
        }

    @classmethod
    def for_chunk(cls, index: int, chunk: "ProcessedChunk") -> "ChunkDiagnostics":
        return cls(
            index=index,
            start_offset=chunk.start_offset,
            end_offset=chunk.end_offset,
            masked_entities=len(chunk.entities),
            text_preview=_safe_preview(chunk.masked_text),
        )


@dataclass
class CheckDiagnostics:
    """
    Aggregated diagnostics for a single document check.
    """

    generation: int
    text_chars: int
    truncated: bool
    sentences_per_chunk: int
    llm_model: str
    timestamp_utc: str
    duration_ms: Optional[float] = None
    stale: bool = False
    final_errors: int = 0
    chunks: List[ChunkDiagnostics] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generation": self.generation,
            "text_chars": self.text_chars,
            "truncated": self.truncated,
            "sentences_per_chunk": self.sentences_per_chunk,
            "llm_model": self.llm_model,
            "timestamp_utc": self.timestamp_utc,
            "duration_ms": self.duration_ms,
            "stale": self.stale,
            "final_errors": self.final_errors,
            "chunks": [c.to_dict() for c in self.chunks],
        }


def write_check_log(diagnostics: CheckDiagnostics, directory: str | Path) -> Path:
    """
    Append diagnostics as JSONL into <directory>/YYYY-MM-DD.jsonl.
    """

    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now(timezone.utc)
    log_path = out_dir / f"{ts:%Y-%m-%d}.jsonl"
    payload = diagnostics.to_dict()

    with log_path.open("a", encoding="utf-8") as fp:
        fp.write(json.dumps(payload, ensure_ascii=False) + "\n")

    return log_path
