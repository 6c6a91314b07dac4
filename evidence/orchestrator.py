# SPDX-License-Identifier: AGPL-3.0-only

"""
Evidence extraction orchestrator.

This module validates the input, assembles the task-specific prompt, and invokes
the reasoning service under an injected retry policy, classifying each failed
attempt into the analysis failure taxonomy. It is stateless and safe to call
concurrently for different documents.
"""

import base64
import binascii
import logging
import re
from typing import Optional, Tuple

from common.llm_client import ReasoningClient, ReasoningServiceError
from common.metrics import AnalysisMetrics
from common.retry import RetryPolicy

from .config import config
from .errors import (
    ExtractionFailedError,
    MalformedInputError,
    QuotaExhaustedError,
    RateLimitedError,
    UnprocessableInputError,
)
from .prompt_pack import SYSTEM_PROMPT, build_image_prompt, build_text_prompt
from .reference_data import ReferenceSnapshot

logger = logging.getLogger(__name__)

# Failure classes of a single attempt
FAILURE_RATE_LIMITED = "rate-limited"
FAILURE_QUOTA = "quota-exhausted"
FAILURE_IMAGE = "image-processing"
FAILURE_TIMEOUT = "timeout"
FAILURE_TRANSIENT = "transient"

_IMAGE_REFUSAL_STATUSES = {400, 415, 422}
_IMAGE_REFUSAL_PATTERN = re.compile(
    r"image|изображени|unable to process|could not process|unsupported (?:mime|media)|invalid (?:mime|media)",
    re.IGNORECASE,
)
_DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?;base64,", re.IGNORECASE)


def classify_failure(exc: ReasoningServiceError) -> str:
    """Classify one failed reasoning attempt."""
    if exc.timed_out:
        return FAILURE_TIMEOUT
    if exc.status_code == 429:
        return FAILURE_RATE_LIMITED
    if exc.status_code == 402:
        return FAILURE_QUOTA
    if exc.status_code in _IMAGE_REFUSAL_STATUSES and _IMAGE_REFUSAL_PATTERN.search(exc.body or ""):
        return FAILURE_IMAGE
    return FAILURE_TRANSIENT


def is_retriable_failure(exc: Exception) -> bool:
    """Default retry predicate: quota failures and timeouts are terminal, the rest is retried."""
    if not isinstance(exc, ReasoningServiceError):
        return False
    return classify_failure(exc) in (FAILURE_IMAGE, FAILURE_TRANSIENT)


def prepare_image_payload(image_base64: str, min_length: int) -> Tuple[str, str]:
    """
    Validate an image payload and return (base64 body, mime type).

    Raises:
        MalformedInputError: if the body is not valid base64 of non-trivial length
    """
    if not isinstance(image_base64, str) or not image_base64.strip():
        raise MalformedInputError(detail="empty image payload")

    payload = image_base64.strip()
    mime_type = "image/jpeg"
    match = _DATA_URL_PATTERN.match(payload)
    if match:
        mime_type = match.group("mime") or mime_type
        payload = payload[match.end():]
    elif "base64," in payload:
        payload = payload.split("base64,", 1)[1]
    payload = re.sub(r"\s+", "", payload)

    if len(payload) < min_length:
        raise MalformedInputError(detail=f"image payload too short ({len(payload)} characters)")
    try:
        base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedInputError(detail=f"image payload is not valid base64: {e}") from e

    return payload, mime_type


class EvidenceExtractionOrchestrator:
    """Builds prompts and calls the reasoning service with bounded retries."""

    def __init__(self, client: ReasoningClient, retry_policy: Optional[RetryPolicy] = None,
                 min_image_base64_length: Optional[int] = None):
        """
        Initialize the orchestrator.

        Args:
            client: Reasoning service client
            retry_policy: Retry strategy; defaults to the configured attempts and backoff
            min_image_base64_length: Shortest accepted base64 image body
        """
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy.from_config(
            config.get_retry_config(), retry_on=is_retriable_failure
        )
        self.min_image_base64_length = (
            min_image_base64_length if min_image_base64_length is not None else config.min_image_base64_length
        )

    def analyze_image(self, document_id: str, image_base64: str, reference: ReferenceSnapshot,
                      document_kind: Optional[str] = None,
                      metrics: Optional[AnalysisMetrics] = None) -> str:
        """
        Run OCR plus classification on an image payload.

        Returns:
            Raw textual response of the reasoning service
        """
        payload, mime_type = prepare_image_payload(image_base64, self.min_image_base64_length)
        prompt = build_image_prompt(reference.document_types, reference.articles, document_kind)
        return self._invoke(document_id, prompt, payload, mime_type, metrics)

    def analyze_text(self, document_id: str, text: str, reference: ReferenceSnapshot,
                     metrics: Optional[AnalysisMetrics] = None) -> str:
        """
        Run differential-diagnosis reasoning plus classification on free text.

        Returns:
            Raw textual response of the reasoning service
        """
        if not isinstance(text, str) or not text.strip():
            raise MalformedInputError(detail="empty text")
        prompt = build_text_prompt(text.strip(), reference.document_types, reference.articles)
        return self._invoke(document_id, prompt, None, "text/plain", metrics)

    def _invoke(self, document_id: str, prompt: str, image_base64: Optional[str], mime_type: str,
                metrics: Optional[AnalysisMetrics]) -> str:
        policy = self.retry_policy
        last_kind = FAILURE_TRANSIENT
        last_error: Optional[ReasoningServiceError] = None

        for attempt in range(1, policy.max_attempts + 1):
            try:
                response = self.client.call(prompt, SYSTEM_PROMPT, image_base64=image_base64, mime_type=mime_type)
            except ReasoningServiceError as e:
                kind = classify_failure(e)
                last_kind, last_error = kind, e
                logger.warning(
                    "Reasoning call for document %s failed (attempt %d/%d, %s): %s",
                    document_id, attempt, policy.max_attempts, kind, e,
                )

                if kind == FAILURE_RATE_LIMITED:
                    self._record(metrics, kind, e)
                    raise RateLimitedError(detail=str(e)) from e
                if kind == FAILURE_QUOTA:
                    self._record(metrics, kind, e)
                    raise QuotaExhaustedError(detail=str(e)) from e
                if kind == FAILURE_TIMEOUT:
                    self._record(metrics, kind, e)
                    raise ExtractionFailedError(detail=str(e)) from e

                if policy.should_retry(e, attempt):
                    delay = policy.backoff(attempt)
                    self._record(metrics, kind, e, delay)
                    continue
                self._record(metrics, kind, e)
                break

            if metrics is not None:
                metrics.add_attempt(response.get("tokens", 0))
            logger.info("Reasoning call for document %s succeeded on attempt %d", document_id, attempt)
            return response.get("text") or ""

        detail = str(last_error) if last_error else None
        if last_kind == FAILURE_IMAGE:
            raise UnprocessableInputError(detail=detail) from last_error
        raise ExtractionFailedError(detail=detail) from last_error

    @staticmethod
    def _record(metrics: Optional[AnalysisMetrics], kind: str, exc: Exception, backoff: float = 0.0) -> None:
        if metrics is not None:
            metrics.add_failure(kind, str(exc), backoff)
