from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


def _resolve_default_prompts_path() -> Path:
    start = Path(__file__).resolve()
    for p in [start] + list(start.parents):
        cand = p / "configs" / "prompts.yaml"
        if cand.exists():
            return cand
    try:
        root = Path(__file__).resolve().parents[3]
        return root / "configs" / "prompts.yaml"
    except Exception:
        return Path("configs/prompts.yaml")


DEFAULT_PROMPTS_PATH = _resolve_default_prompts_path()

_FALLBACK_SYSTEM_PROMPT = """You are a proofreader who identifies clear grammatical and punctuation errors.

IMPORTANT: The text may contain masked entities like <ENTITY_PERSON_0>, <ENTITY_PLACE_1>, etc. These are placeholders and should be treated as correct.

Flag these types of errors:
- Spelling mistakes: "grammer" -> "grammar"
- Wrong verb forms: "He go" -> "He goes"
- Incorrect punctuation: "Can you help me." -> "Can you help me?"
- Missing apostrophes: "dont" -> "don't"
- Duplicate words: "the the" -> "the"

Do NOT flag:
- Style preferences
- Optional commas
- British vs American spelling
- Adding articles unless grammatically required

Return ONLY corrections for actual errors. For each error, include a 4-6 word span containing the mistake, copied exactly from the text."""

_FALLBACK_USER_PROMPT = (
    "Check this text for grammatical and punctuation errors.\n\n"
    'Text to check:\n"""{text}"""\n\n'
    "Return ONLY the JSON via the grammar_corrections function."
)


@lru_cache(maxsize=8)
def _load_prompt_data(path: Optional[str | Path]) -> Dict[str, Any]:
    target = Path(path) if path is not None else DEFAULT_PROMPTS_PATH
    if not target.exists():
        return {}
    with target.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return data if isinstance(data, dict) else {}


def get_system_prompt(path: Optional[str | Path] = None) -> str:
    data = _load_prompt_data(path)
    if "system_prompt" in data:
        return str(data["system_prompt"])
    prompts = data.get("prompts")
    if isinstance(prompts, dict) and "system" in prompts:
        return str(prompts["system"])
    return _FALLBACK_SYSTEM_PROMPT


def get_user_prompt(text: str, path: Optional[str | Path] = None) -> str:
    """
    Шаблон запроса пользователя; {text} подставляется через str.replace,
    чтобы фигурные скобки в тексте документа не ломали форматирование.
    """
    data = _load_prompt_data(path)
    template = str(data.get("user_prompt") or _FALLBACK_USER_PROMPT)
    return template.replace("{text}", text)
