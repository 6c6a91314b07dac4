# SPDX-License-Identifier: AGPL-3.0-only

"""
Response normalization for reasoning outputs.

The reasoning service is an untrusted, partially structured data source: every
field is validated and coerced on its own, and a response that cannot be parsed
at all is replaced by a safe default record instead of raising.
"""

import json
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from .models import ExtractedLink, ExtractionRecord, FitnessCategory
from .reference_data import ReferenceSnapshot

logger = logging.getLogger(__name__)

DEFAULT_EXPLANATION = (
    "Не удалось автоматически проанализировать документ: ответ сервиса анализа не распознан."
)
DEFAULT_RECOMMENDATION = "Загрузите более чёткое изображение документа и повторите анализ"
DEFAULT_TITLE = "Медицинский документ"

_DATE_FORMATS = ("%d.%m.%Y", "%d/%m/%Y", "%Y-%m-%d")
_DATE_PATTERNS = (
    re.compile(r"^\d{2}\.\d{2}\.\d{4}$"),
    re.compile(r"^\d{2}/\d{2}/\d{4}$"),
    re.compile(r"^\d{4}-\d{2}-\d{2}$"),
)

# Latin look-alikes the service sometimes returns instead of Cyrillic grades
_CATEGORY_HOMOGLYPHS = {"A": "А", "B": "В"}
_VALID_CATEGORIES = {c.value for c in FitnessCategory}


def _first_balanced_object(text: str) -> Optional[str]:
    """Return the first balanced {...} span, ignoring braces inside JSON strings."""
    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def parse_llm_response(text: Any) -> Optional[Dict[str, Any]]:
    """Parse a response as a single JSON object; None when it cannot be parsed."""
    if not isinstance(text, str):
        return None

    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```(?:json)?\s*", "", cleaned)
        cleaned = re.sub(r"\s*```$", "", cleaned)

    try:
        parsed = json.loads(cleaned)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    candidate = _first_balanced_object(cleaned)
    if candidate:
        try:
            parsed = json.loads(candidate)
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    return None


def normalize_date(value: Any) -> Optional[date]:
    """Accept DD.MM.YYYY, DD/MM/YYYY or YYYY-MM-DD; anything else is absent."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    for pattern, fmt in zip(_DATE_PATTERNS, _DATE_FORMATS):
        if pattern.match(value):
            try:
                return datetime.strptime(value, fmt).date()
            except ValueError:
                return None
    return None


def coerce_confidence(value: Any) -> int:
    """Coerce into [0, 100]; missing or non-numeric values become 0."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, str):
        match = re.search(r"-?\d+(?:[.,]\d+)?", value)
        if not match:
            return 0
        value = match.group(0).replace(",", ".")
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if number != number:  # NaN
        return 0
    return int(round(max(0.0, min(100.0, number))))


def coerce_recommendations(value: Any) -> List[str]:
    """Coerce into a list of non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    result = []
    for item in value:
        if isinstance(item, (str, int, float)) and not isinstance(item, bool):
            text = str(item).strip()
            if text:
                result.append(text)
    return result


def normalize_category(value: Any) -> Optional[str]:
    """Map a returned grade to one of А/Б/В/Г/Д, or None."""
    if not isinstance(value, str):
        return None
    letter = value.strip()[:1].upper()
    letter = _CATEGORY_HOMOGLYPHS.get(letter, letter)
    return letter if letter in _VALID_CATEGORIES else None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _article_number(value: Any) -> str:
    if isinstance(value, bool):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return _as_text(value)


class ResultNormalizer:
    """Turns a raw reasoning response into a validated ExtractionRecord."""

    def default_record(self) -> ExtractionRecord:
        """Safe record used when the response cannot be parsed."""
        return ExtractionRecord(
            extracted_text="",
            confidence=0,
            explanation=DEFAULT_EXPLANATION,
            recommendations=[DEFAULT_RECOMMENDATION],
            suggested_title=DEFAULT_TITLE,
            is_default=True,
        )

    def normalize(self, raw_response: Any, reference: ReferenceSnapshot) -> ExtractionRecord:
        """
        Normalize one response against the reference catalog.

        Args:
            raw_response: Raw textual response of the reasoning service
            reference: Catalog snapshot fetched for this run

        Returns:
            Validated record; the default record when the response is unusable
        """
        data = parse_llm_response(raw_response)
        if data is None:
            snippet = raw_response[:200] if isinstance(raw_response, str) else repr(raw_response)
            logger.warning("Could not parse reasoning response, using default record. Raw[:200]: %s", snippet)
            return self.default_record()

        document_date = normalize_date(data.get("documentDate"))

        type_code = _as_text(data.get("documentTypeCode")) or None
        document_type = reference.type_by_code(type_code) if type_code else None
        if type_code and document_type is None:
            logger.info("Unknown document type code %r left unset", type_code)

        links = self._resolve_links(data, reference)

        primary_number = _article_number(data.get("primaryArticleNumber")) or None
        primary = next((l for l in links if l.article_number == primary_number), None)
        if primary is None and links:
            primary = max(links, key=lambda l: l.confidence)

        category = normalize_category(data.get("category") or data.get("fitnessCategory"))
        if category is None and primary is not None:
            category = primary.category

        confidence_raw = data.get("confidence")
        confidence = coerce_confidence(confidence_raw)
        if confidence_raw is None and primary is not None:
            confidence = primary.confidence

        recommendations = coerce_recommendations(data.get("recommendations"))
        if not recommendations and primary is not None:
            recommendations = list(primary.recommendations)

        return ExtractionRecord(
            extracted_text=_as_text(data.get("extractedText")),
            document_date=document_date,
            document_type_code=document_type.code if document_type else None,
            document_type_id=document_type.id if document_type else None,
            links=links,
            primary_article_number=primary.article_number if primary else None,
            primary_article_id=primary.article_id if primary else None,
            category=category,
            confidence=confidence,
            explanation=_as_text(data.get("explanation")) or (primary.explanation if primary else ""),
            recommendations=recommendations,
            suggested_title=self._suggested_title(data, document_date),
        )

    def _resolve_links(self, data: Dict[str, Any], reference: ReferenceSnapshot) -> List[ExtractedLink]:
        raw_links = data.get("links")
        if not isinstance(raw_links, list):
            raw_links = []
            # Single-article response shape
            legacy_number = _article_number(data.get("article") or data.get("articleNumber"))
            if legacy_number:
                raw_links = [{
                    "articleNumber": legacy_number,
                    "category": data.get("category") or data.get("fitnessCategory"),
                    "confidence": data.get("confidence"),
                    "explanation": data.get("explanation"),
                    "recommendations": data.get("recommendations"),
                }]

        resolved: Dict[str, ExtractedLink] = {}
        for raw in raw_links:
            if not isinstance(raw, dict):
                continue
            number = _article_number(raw.get("articleNumber"))
            article = reference.article_by_number(number) if number else None
            if article is None:
                logger.info("Dropping link to unknown article number %r", number)
                continue

            link = ExtractedLink(
                article_id=article.id,
                article_number=article.number,
                category=normalize_category(raw.get("category")),
                confidence=coerce_confidence(raw.get("confidence")),
                explanation=_as_text(raw.get("explanation")),
                recommendations=coerce_recommendations(raw.get("recommendations")),
            )
            existing = resolved.get(article.id)
            if existing is None or link.confidence > existing.confidence:
                resolved[article.id] = link

        return list(resolved.values())

    @staticmethod
    def _suggested_title(data: Dict[str, Any], document_date: Optional[date]) -> str:
        title = _as_text(data.get("suggestedTitle"))
        if title:
            return title[:200]
        if document_date:
            return f"{DEFAULT_TITLE} от {document_date.strftime('%d.%m.%Y')}"
        return DEFAULT_TITLE
