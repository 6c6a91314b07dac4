# SPDX-License-Identifier: AGPL-3.0-only

"""
Failure taxonomy for document analysis.

Every extraction-time failure is converted into one of these typed errors at the
orchestrator boundary. Parse failures are not represented here: the normalizer
absorbs them into a default record.
"""

from typing import Optional


class AnalysisError(Exception):
    """Base class for typed analysis failures surfaced to the caller."""

    kind = "analysis-error"
    default_message = "Не удалось проанализировать документ."

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.detail = detail

    def to_dict(self) -> dict:
        """Serialize for job status and HTTP responses."""
        return {"kind": self.kind, "message": self.message, "detail": self.detail}


class MalformedInputError(AnalysisError):
    """Input rejected before the reasoning service was called."""

    kind = "malformed-input"
    default_message = "Некорректные входные данные: загрузите документ заново."


class RateLimitedError(AnalysisError):
    """The reasoning service rate-limited the request. Never retried."""

    kind = "rate-limited"
    default_message = "Превышен лимит запросов. Попробуйте позже."


class QuotaExhaustedError(AnalysisError):
    """The reasoning service requires payment or the quota is exhausted. Never retried."""

    kind = "quota-exhausted"
    default_message = "Сервис анализа временно недоступен."


class UnprocessableInputError(AnalysisError):
    """The reasoning service repeatedly refused to interpret the payload."""

    kind = "unprocessable-input"
    default_message = (
        "Не удалось обработать изображение. Загрузите документ в другом формате "
        "(например, JPEG или PNG с лучшим качеством) или введите текст документа вручную."
    )


class ExtractionFailedError(AnalysisError):
    """Generic transport or response failure after the retry budget was spent."""

    kind = "extraction-failed"
    default_message = "Ошибка анализа документа. Попробуйте ещё раз."


class DocumentNotFoundError(Exception):
    """Raised when a document id is unknown to the repository."""


class ArticleNotFoundError(Exception):
    """Raised when an article id is not in the reference catalog."""


class LinkStoreError(Exception):
    """Raised when the link store cannot persist or read links."""
