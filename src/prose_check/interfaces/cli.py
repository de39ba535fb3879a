from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich import print
from rich.markup import escape
from rich.table import Table

from prose_check.core.checker import DocumentChecker
from prose_check.core.config import DEFAULT_CONFIG_PATH, load_check_config
from prose_check.core.pipelines import prepare_for_correction
from prose_check.core.reconcile import TextError
from prose_check.providers.llm import OpenAICorrector
from prose_check.providers.nlp import SpacyEntityRecognizer, SpacySentenceClassifier


app = typer.Typer(no_args_is_help=True, add_completion=False)


def _read_text(path: Path) -> str:
    # BOM в начале файла сдвинул бы все позиции на один символ
    return path.read_text(encoding="utf-8-sig")


def _preview(text: str, limit: int = 80) -> str:
    value = text.replace("\n", " ").strip()
    if len(value) > limit:
        value = value[:limit].rstrip() + "…"
    return escape(value) or "—"


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Подробный лог"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s [%(name)s] %(message)s",
    )


@app.command("chunks")
def chunks_cmd(
    in_path: Path = typer.Option(..., "--in", exists=True, dir_okay=False, help="Текстовый файл"),
    sentences: Optional[int] = typer.Option(None, "--sentences", "-n", help="Предложений на чанк"),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Путь к check.yaml"),
):
    cfg = load_check_config(config)
    text = _read_text(in_path)
    per_chunk = sentences or cfg.sentences_per_chunk
    chunks = prepare_for_correction(
        text,
        per_chunk,
        max_chunk_chars=cfg.max_chunk_chars,
        classifier=SpacySentenceClassifier(cfg.spacy_model),
        recognizer=SpacyEntityRecognizer(cfg.spacy_model),
    )

    table = Table(title=f"Чанки: {in_path.name} ({per_chunk} предл.)")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("start", justify="right")
    table.add_column("end", justify="right")
    table.add_column("entities", justify="right")
    table.add_column("preview")
    for idx, chunk in enumerate(chunks, start=1):
        table.add_row(
            str(idx),
            str(chunk.start_offset),
            str(chunk.end_offset),
            str(len(chunk.entities)),
            _preview(chunk.original_text),
        )
    print(table)


@app.command("mask")
def mask_cmd(
    in_path: Path = typer.Option(..., "--in", exists=True, dir_okay=False, help="Текстовый файл"),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Путь к check.yaml"),
):
    cfg = load_check_config(config)
    text = _read_text(in_path)
    chunks = prepare_for_correction(
        text,
        cfg.sentences_per_chunk,
        max_chunk_chars=cfg.max_chunk_chars,
        classifier=SpacySentenceClassifier(cfg.spacy_model),
        recognizer=SpacyEntityRecognizer(cfg.spacy_model),
    )

    for idx, chunk in enumerate(chunks, start=1):
        print(f"[bold cyan]Чанк {idx}[/bold cyan] [dim]{chunk.start_offset}-{chunk.end_offset}[/dim]")
        print(escape(chunk.masked_text))
        if chunk.entities:
            table = Table()
            table.add_column("token", style="magenta")
            table.add_column("text")
            table.add_column("type")
            table.add_column("span", justify="right")
            for ent in chunk.entities:
                table.add_row(escape(ent.replacement), escape(ent.text), ent.type.value, f"{ent.start}-{ent.end}")
            print(table)
        print()


def _print_errors(errors: List[TextError]) -> None:
    if not errors:
        print("[green]Ошибок не найдено[/green]")
        return

    table = Table(title="Найденные ошибки")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("type")
    table.add_column("span", justify="right")
    table.add_column("word", style="red")
    table.add_column("suggestion", style="green")
    table.add_column("context")
    for idx, err in enumerate(errors, start=1):
        context = f"{err.context_before} [{err.word}] {err.context_after}".strip()
        table.add_row(
            str(idx),
            err.type.value,
            f"{err.start}-{err.end}",
            escape(err.word) or "—",
            escape(err.suggestion) or "—",
            _preview(context, 60),
        )
    print(table)


@app.command("check")
def check_cmd(
    in_path: Path = typer.Option(..., "--in", exists=True, dir_okay=False, help="Текстовый файл"),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Путь к check.yaml"),
    llm_model: Optional[str] = typer.Option(None, "--llm-model", help="Переопределить модель LLM"),
    as_json: bool = typer.Option(False, "--json", help="Вывести JSON вместо таблицы"),
):
    cfg = load_check_config(config)
    text = _read_text(in_path)
    if not text.strip():
        typer.secho("Файл пуст.", fg=typer.colors.YELLOW)
        raise typer.Exit(code=0)

    corrector = OpenAICorrector(
        llm_model or cfg.llm_model_name,
        fallback_model=cfg.fallback_model_name,
    )
    checker = DocumentChecker(corrector, config=cfg)
    errors = asyncio.run(checker.check(text)) or []

    if as_json:
        typer.echo(json.dumps([e.to_dict() for e in errors], ensure_ascii=False, indent=2))
    else:
        _print_errors(errors)


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
