from __future__ import annotations

import argparse
import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence

from prose_check.core.checker import DocumentChecker
from prose_check.core.config import DEFAULT_CONFIG_PATH, load_check_config
from prose_check.core.reconcile import TextError
from prose_check.providers.llm import OpenAICorrector


def load_dataset(path: Path) -> List[Dict[str, Any]]:
    """
    Строки формата {"id", "text", "expected": [{"word", "suggestion"}, ...]}.
    """
    if not path.exists():
        raise FileNotFoundError(f"Dataset not found: {path}")
    samples: List[Dict[str, Any]] = []
    with path.open("r", encoding="utf-8") as fp:
        for line in fp:
            line = line.strip()
            if not line:
                continue
            samples.append(json.loads(line))
    if not samples:
        raise ValueError(f"Dataset {path} is empty.")
    return samples


def _span_of(text: str, expected: Dict[str, Any]) -> tuple[int, int]:
    if "start" in expected and "end" in expected:
        return int(expected["start"]), int(expected["end"])
    word = expected.get("word") or ""
    idx = text.find(word)
    return (idx, idx + len(word)) if idx != -1 else (-1, -1)


def span_scores(text: str, expected: Sequence[Dict[str, Any]], predicted: Sequence[TextError]) -> Dict[str, float]:
    """
    Precision/recall по пересечению диапазонов: предсказание засчитывается,
    если оно пересекается с ещё не сопоставленной эталонной ошибкой.
    """
    gold = [_span_of(text, e) for e in expected]
    matched = [False] * len(gold)
    hits = 0
    for err in predicted:
        for i, (start, end) in enumerate(gold):
            if matched[i] or start < 0:
                continue
            if err.start < end and start < max(err.end, err.start + 1):
                matched[i] = True
                hits += 1
                break

    precision = hits / len(predicted) if predicted else (1.0 if not gold else 0.0)
    recall = hits / len(gold) if gold else 1.0
    f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
    return {"precision": precision, "recall": recall, "f1": f1}


async def evaluate_sample(sample: Dict[str, Any], checker: DocumentChecker) -> Dict[str, Any]:
    text = sample["text"]
    errors = await checker.check(text) or []
    scores = span_scores(text, sample.get("expected", []), errors)
    return {
        "sample_id": sample.get("id"),
        "expected": sample.get("expected", []),
        "predicted": [e.to_dict() for e in errors],
        **scores,
    }


def write_log(records: Iterable[Dict[str, Any]], out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    log_path = out_dir / f"eval_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}.jsonl"
    with log_path.open("w", encoding="utf-8") as fp:
        for record in records:
            fp.write(json.dumps(record, ensure_ascii=False) + "\n")
    return log_path


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Offline evaluation of the proofreading pipeline.")
    parser.add_argument("--dataset", type=Path, default=Path("data/eval/dataset.jsonl"), help="JSONL с размеченными текстами")
    parser.add_argument("--limit", type=int, default=None, help="Ограничить количество примеров")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Путь к check.yaml")
    parser.add_argument("--llm-model", default=None, help="Переопределить модель LLM")
    parser.add_argument("--log-dir", type=Path, default=Path("logs/eval"), help="Куда писать JSONL-отчёт")
    return parser


async def main_async(args: argparse.Namespace) -> None:
    samples = load_dataset(args.dataset)
    if args.limit is not None:
        samples = samples[: args.limit]

    cfg = load_check_config(args.config)
    corrector = OpenAICorrector(args.llm_model or cfg.llm_model_name, fallback_model=cfg.fallback_model_name)
    checker = DocumentChecker(corrector, config=cfg)

    records: List[Dict[str, Any]] = []
    for idx, sample in enumerate(samples, start=1):
        record = await evaluate_sample(sample, checker)
        records.append(record)
        print(
            f"[{idx}/{len(samples)}] precision={record['precision']:.2f} "
            f"recall={record['recall']:.2f} | {sample.get('id') or 'no-id'}"
        )

    if not records:
        print("Нет результатов для отчёта.")
        return

    avg_precision = sum(r["precision"] for r in records) / len(records)
    avg_recall = sum(r["recall"] for r in records) / len(records)
    avg_f1 = sum(r["f1"] for r in records) / len(records)

    log_path = write_log(records, args.log_dir)

    print("-" * 60)
    print(f"Samples: {len(records)}")
    print(f"Average precision: {avg_precision:.3f}")
    print(f"Average recall: {avg_recall:.3f}")
    print(f"Average F1: {avg_f1:.3f}")
    print(f"Log written to: {log_path}")


def main() -> None:
    parser = build_arg_parser()
    args = parser.parse_args()
    asyncio.run(main_async(args))


if __name__ == "__main__":
    main()
