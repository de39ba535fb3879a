"""Exceptions raised by correction providers.

RU: Исключения, которые выбрасывают провайдеры исправлений. Конвейер ловит их
на уровне отдельного чанка, наружу они не выходят.
"""

from __future__ import annotations


class CorrectionError(RuntimeError):
    """Base class for failures of the external correction call."""


class ExternalCallFailure(CorrectionError):
    """The correction model could not be reached or rejected the request."""


class MalformedModelOutput(CorrectionError):
    """The model answered, but without a usable corrections payload."""
