# SPDX-License-Identifier: AGPL-3.0-only

"""
Medical fitness evidence engine.

Extracts structured evidence from medical documents with a reasoning service,
links it to statutory articles, and aggregates it into per-article scores and
action plans.
"""

from .aggregator import EvidenceAggregator
from .errors import (
    AnalysisError,
    ExtractionFailedError,
    MalformedInputError,
    QuotaExhaustedError,
    RateLimitedError,
    UnprocessableInputError,
)
from .link_store import EvidenceLinkStore, InMemoryEvidenceLinkStore, JsonFileEvidenceLinkStore
from .models import ActionPlan, ArticleScore, DocumentArticleLink, ExtractionRecord
from .normalizer import ResultNormalizer
from .orchestrator import EvidenceExtractionOrchestrator
from .recommendations import RecommendationSynthesizer
from .service import DocumentAnalysisService, build_service

__version__ = "1.0.0"

__all__ = [
    "EvidenceAggregator",
    "AnalysisError",
    "ExtractionFailedError",
    "MalformedInputError",
    "QuotaExhaustedError",
    "RateLimitedError",
    "UnprocessableInputError",
    "EvidenceLinkStore",
    "InMemoryEvidenceLinkStore",
    "JsonFileEvidenceLinkStore",
    "ActionPlan",
    "ArticleScore",
    "DocumentArticleLink",
    "ExtractionRecord",
    "ResultNormalizer",
    "EvidenceExtractionOrchestrator",
    "RecommendationSynthesizer",
    "DocumentAnalysisService",
    "build_service",
]
