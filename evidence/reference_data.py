# SPDX-License-Identifier: AGPL-3.0-only

"""
Reference data providers.

The document type list and the statutory article catalog are read-only lookup
data owned by the surrounding system. They ground the reasoning prompt and are
used to resolve the reasoning service's codes and numbers to canonical ids.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .models import Article, DocumentType

logger = logging.getLogger(__name__)


class ReferenceDataProvider(ABC):
    """Read-only access to document types and articles."""

    @abstractmethod
    def document_types(self) -> List[DocumentType]:
        """Return all canonical document types."""
        pass

    @abstractmethod
    def articles(self) -> List[Article]:
        """Return the full article catalog, including inactive entries."""
        pass

    def snapshot(self) -> "ReferenceSnapshot":
        """Fetch both collections once for a single analysis run."""
        return ReferenceSnapshot(self.document_types(), self.articles())


class ReferenceSnapshot:
    """Both catalogs as fetched for one analysis run, indexed for exact lookups."""

    def __init__(self, document_types: List[DocumentType], articles: List[Article]):
        self.document_types = list(document_types)
        self.articles = list(articles)
        self._types_by_code: Dict[str, DocumentType] = {t.code: t for t in self.document_types}
        self._articles_by_number: Dict[str, Article] = {a.number: a for a in self.articles}
        self._articles_by_id: Dict[str, Article] = {a.id: a for a in self.articles}

    @property
    def active_articles(self) -> List[Article]:
        return [a for a in self.articles if a.active]

    def type_by_code(self, code: str) -> Optional[DocumentType]:
        return self._types_by_code.get(code)

    def article_by_number(self, number: str) -> Optional[Article]:
        return self._articles_by_number.get(number)

    def article_by_id(self, article_id: str) -> Optional[Article]:
        return self._articles_by_id.get(article_id)


class StaticReferenceData(ReferenceDataProvider):
    """Reference data held in memory."""

    def __init__(self, document_types: List[DocumentType], articles: List[Article]):
        self._document_types = list(document_types)
        self._articles = list(articles)

    def document_types(self) -> List[DocumentType]:
        return list(self._document_types)

    def articles(self) -> List[Article]:
        return list(self._articles)


class JsonReferenceData(ReferenceDataProvider):
    """
    Reference data loaded from a JSON catalog file.

    Expected shape: {"document_types": [{id, code, name}], "articles": [{id, number, title, category, active}]}
    The file is read on every fetch so catalog updates are picked up by the next run.
    """

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> dict:
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def document_types(self) -> List[DocumentType]:
        return [DocumentType(**item) for item in self._load().get("document_types", [])]

    def articles(self) -> List[Article]:
        articles = []
        for item in self._load().get("articles", []):
            item = dict(item)
            item["number"] = str(item.get("number", "")).strip()
            articles.append(Article(**item))
        logger.debug("Loaded %d articles from %s", len(articles), self.path)
        return articles
