# ==============================================================================
# Configuration module for the proofreading pipeline
# Модуль конфигурации для конвейера проверки текста
# ==============================================================================
# Settings are loaded from configs/check.yaml; environment variables override them.
#
# Настройки загружаются из configs/check.yaml, переменные окружения их переопределяют.
# ==============================================================================

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


# ==============================================================================
# Main configuration class for a document check
# Основной класс конфигурации проверки документа
# ==============================================================================
class CheckConfig(BaseModel):
    """
    Configuration parameters for chunking, masking and correction calls.
    Параметры конфигурации для нарезки, маскирования и вызовов модели.
    """

    # How many sentences are sent to the model per request
    # Сколько предложений отправляется модели за один запрос
    sentences_per_chunk: int = Field(default=2, gt=0)

    # Character ceiling per chunk; longer chunks are sliced to fixed width
    # Предел символов на чанк; более длинные чанки режутся на куски фиксированной ширины
    max_chunk_chars: int = Field(default=2000, gt=0)

    # Documents are truncated to this many characters before checking
    # Документ обрезается до этого количества символов перед проверкой
    max_text_chars: int = Field(default=65536, gt=0)

    # Words of context shown before and after each finding
    # Количество слов контекста до и после найденной ошибки
    context_words: int = Field(default=4, ge=0)

    # Maximum number of correction requests in flight
    # Максимум одновременных запросов к модели
    max_concurrent_requests: int = Field(default=4, gt=0)

    llm_model_name: str = "gpt-4o-mini"
    fallback_model_name: Optional[str] = "gpt-3.5-turbo-1106"
    spacy_model: str = "en_core_web_sm"

    # Directory for JSONL check diagnostics (None = disabled)
    # Папка для JSONL-диагностики проверок (None = выключено)
    log_dir: Optional[str] = None


# ==============================================================================
# Environment variable overrides class
# Класс переопределений через переменные окружения
# ==============================================================================
class EnvCheckOverrides(BaseSettings):
    """
    Allows overriding configuration using environment variables.
    Позволяет переопределять конфигурацию через переменные окружения.

    Example: GPT_CHECK_SENTENCES_PER_CHUNK=3.
    Older names GPT_CHECK_CHUNK_SIZE and GPT_MODEL_NAME are still honoured.
    """

    model_config = SettingsConfigDict(
        env_prefix="GPT_CHECK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    sentences_per_chunk: Optional[int] = None
    max_chunk_chars: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("GPT_CHECK_MAX_CHUNK_CHARS", "GPT_CHECK_CHUNK_SIZE"),
    )
    max_text_chars: Optional[int] = None
    context_words: Optional[int] = None
    max_concurrent_requests: Optional[int] = None
    llm_model_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GPT_CHECK_LLM_MODEL_NAME", "GPT_MODEL_NAME"),
    )
    fallback_model_name: Optional[str] = None
    spacy_model: Optional[str] = None
    log_dir: Optional[str] = None


def _resolve_default_check_path() -> Path:
    """
    Find configs/check.yaml by searching upward from this file.
    Ищет configs/check.yaml, поднимаясь вверх от текущего файла.
    """
    start = Path(__file__).resolve()
    for p in [start] + list(start.parents):
        cand = p / "configs" / "check.yaml"
        if cand.exists():
            return cand

    try:
        root = Path(__file__).resolve().parents[3]
        return root / "configs" / "check.yaml"
    except Exception:
        return Path("configs/check.yaml")


DEFAULT_CONFIG_PATH = _resolve_default_check_path()


# ==============================================================================
# Main function to load and merge configuration
# Основная функция для загрузки и объединения конфигурации
# ==============================================================================
def load_check_config(path: Optional[str | Path] = None) -> CheckConfig:
    """
    Load configuration from YAML and apply environment variable overrides.
    Загрузить конфигурацию из YAML и применить переопределения из окружения.

    Priority / Приоритет (highest to lowest / от высшего к низшему):
        1. Environment variables (GPT_CHECK_*) / Переменные окружения
        2. YAML file settings / Настройки из YAML-файла
        3. Defaults in CheckConfig / Значения по умолчанию
    """
    file_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH

    # Relative paths are resolved against the nearest parent that has them
    # Относительный путь ищем от ближайшего родителя, где он существует
    if not file_path.is_absolute():
        for p in [Path(__file__).resolve()] + list(Path(__file__).resolve().parents):
            cand = p / file_path
            if cand.exists():
                file_path = cand
                break

    if not file_path.exists():
        logger.info("check.yaml not found at %s, using defaults", file_path)
        data = {}
    else:
        logger.debug("check.yaml: %s", file_path)
        with file_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    # The 'check' section is optional; a flat file works too
    # Секция 'check' необязательна, плоский файл тоже подходит
    params = data.get("check", data) if isinstance(data, dict) else {}
    cfg = CheckConfig(**params)

    override_dict = EnvCheckOverrides().model_dump(exclude_none=True)
    if override_dict:
        # model_validate re-runs the field constraints on the merged values
        cfg = CheckConfig.model_validate({**cfg.model_dump(), **override_dict})

    return cfg
