# SPDX-License-Identifier: AGPL-3.0-only

"""
Pydantic models for the evidence engine.

This module defines the core data structures shared by the extraction,
normalization, persistence and aggregation stages: reference catalog entries,
documents and their article links, manual assessments, the normalized
extraction record and the derived per-article views.
"""

from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class ClassificationStatus(str, Enum):
    """Lifecycle of a document with respect to analysis."""
    UNCLASSIFIED = "unclassified"
    ANALYZING = "analyzing"
    CLASSIFIED = "classified"


class FitnessCategory(str, Enum):
    """Ordinal fitness grades assigned per article."""
    A = "А"  # fit
    B = "Б"  # fit with minor restrictions
    V = "В"  # limited fitness
    G = "Г"  # temporarily unfit
    D = "Д"  # unfit


FITNESS_CATEGORY_LABELS: Dict[str, str] = {
    "А": "годен к военной службе",
    "Б": "годен к военной службе с незначительными ограничениями",
    "В": "ограниченно годен к военной службе",
    "Г": "временно не годен к военной службе",
    "Д": "не годен к военной службе",
}


class DocumentType(BaseModel):
    """Canonical document type from the reference catalog."""
    id: str = Field(description="Canonical identifier")
    code: str = Field(description="Short code the reasoning service returns")
    name: str = Field(description="Human readable name")


class Article(BaseModel):
    """Statutory article from the reference catalog (read-only)."""
    id: str = Field(description="Canonical identifier")
    number: str = Field(description="Article number as printed in the schedule")
    title: str = Field(description="Article title")
    category: Optional[str] = Field(None, description="Catalog grouping of the article")
    active: bool = Field(True, description="Whether the article may be linked")


class Document(BaseModel):
    """One submitted piece of evidence."""
    id: str
    owner_id: str
    title: str = ""
    source_ref: str = Field("", description="Opaque handle to stored bytes")
    document_date: Optional[date] = None
    document_type_id: Optional[str] = None
    status: ClassificationStatus = ClassificationStatus.UNCLASSIFIED
    raw_text: Optional[str] = None
    is_questionnaire: bool = False
    analysis_version: int = Field(0, ge=0, description="Incremented each time an analysis run starts")
    last_error: Optional[str] = None

    # Denormalized primary link for single-article display
    primary_article_id: Optional[str] = None
    category: Optional[str] = None
    confidence: int = Field(0, ge=0, le=100)
    explanation: Optional[str] = None
    recommendations: List[str] = Field(default_factory=list)


class DocumentArticleLink(BaseModel):
    """Confidence and explanation scoped to one (document, article) pair."""
    document_id: str
    article_id: str
    category: Optional[str] = None
    confidence: int = Field(0, ge=0, le=100, description="Chance this article is the operative one")
    explanation: str = ""
    recommendations: List[str] = Field(default_factory=list)

    @field_validator("recommendations", mode="before")
    @classmethod
    def coerce_recommendations(cls, v):
        """Accept a single string or None where a list is expected."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        return v


class Assessment(BaseModel):
    """Manual override of the confidence for a (person, article) pair."""
    owner_id: str
    article_id: str
    value: int = Field(ge=0, le=100)


class ExtractedLink(BaseModel):
    """A link as reported by the reasoning service, resolved against the catalog."""
    article_id: str
    article_number: str
    category: Optional[str] = None
    confidence: int = Field(0, ge=0, le=100)
    explanation: str = ""
    recommendations: List[str] = Field(default_factory=list)

    def to_link(self, document_id: str) -> DocumentArticleLink:
        """Bind this extracted link to a document."""
        return DocumentArticleLink(
            document_id=document_id,
            article_id=self.article_id,
            category=self.category,
            confidence=self.confidence,
            explanation=self.explanation,
            recommendations=list(self.recommendations),
        )


class ExtractionRecord(BaseModel):
    """Validated structured record produced from one reasoning response."""
    extracted_text: str = ""
    document_date: Optional[date] = None
    document_type_code: Optional[str] = None
    document_type_id: Optional[str] = None
    links: List[ExtractedLink] = Field(default_factory=list)
    primary_article_number: Optional[str] = None
    primary_article_id: Optional[str] = None
    category: Optional[str] = None
    confidence: int = Field(0, ge=0, le=100)
    explanation: str = ""
    recommendations: List[str] = Field(default_factory=list)
    suggested_title: str = ""
    is_default: bool = Field(False, description="True when the response could not be parsed")

    def to_output(self) -> Dict[str, Any]:
        """Render the external output shape of a completed analysis."""
        return {
            "extractedText": self.extracted_text,
            "documentDate": self.document_date.isoformat() if self.document_date else None,
            "documentTypeCode": self.document_type_code,
            "links": [
                {
                    "articleNumber": link.article_number,
                    "category": link.category,
                    "confidence": link.confidence,
                    "explanation": link.explanation,
                    "recommendations": list(link.recommendations),
                }
                for link in self.links
            ],
            "primaryArticleNumber": self.primary_article_number,
            "category": self.category,
            "confidence": self.confidence,
            "explanation": self.explanation,
            "recommendations": list(self.recommendations),
            "suggestedTitle": self.suggested_title,
        }


class ArticleScore(BaseModel):
    """Three-way probability split for one article. Derived, never persisted."""
    article_id: str
    applies: int = Field(0, ge=0, le=100)
    does_not_apply: int = Field(0, ge=0, le=100)
    insufficient_data: int = Field(0, ge=0, le=100)
    relevant_count: int = Field(0, ge=0)
    overridden: bool = Field(False, description="True when a manual assessment decided the score")


class RecommendationEvidence(BaseModel):
    """Recommendations of one link together with the evidence date of its document."""
    recommendations: List[str] = Field(default_factory=list)
    document_date: Optional[date] = None


class PlanBucket(BaseModel):
    """Deduplicated recommendations that fell into one bucket."""
    name: str
    items: List[str] = Field(default_factory=list)
    oldest_date: Optional[date] = None
    stale: bool = False
    months_old: Optional[int] = None
    sentence: str = ""


class ActionPlan(BaseModel):
    """Categorized, deduplicated action plan for one article."""
    buckets: List[PlanBucket] = Field(default_factory=list)
    mostly_outdated: bool = False
    text: str = ""

    def bucket(self, name: str) -> Optional[PlanBucket]:
        """Return the bucket with the given name, if it has any items."""
        for b in self.buckets:
            if b.name == name:
                return b
        return None


class ArticleSummary(BaseModel):
    """Score and action plan for one article of one person."""
    article: Article
    score: ArticleScore
    plan: ActionPlan
