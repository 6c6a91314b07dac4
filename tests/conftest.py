# SPDX-License-Identifier: AGPL-3.0-only

"""
Pytest configuration and fixtures.

This module provides shared fixtures and configuration for all tests.
"""

import base64

import pytest

from common.caching import SimpleCache
from common.retry import RetryPolicy
from evidence import jobs
from evidence.documents import DocumentRepository
from evidence.link_store import InMemoryEvidenceLinkStore
from evidence.models import Article, DocumentType
from evidence.orchestrator import EvidenceExtractionOrchestrator, is_retriable_failure
from evidence.recommendations import RecommendationSynthesizer
from evidence.reference_data import StaticReferenceData
from evidence.service import DocumentAnalysisService

from tests.helpers import ScriptedClient


@pytest.fixture
def document_types():
    return [
        DocumentType(id="type-analysis", code="analysis", name="Анализ"),
        DocumentType(id="type-examination", code="examination", name="Обследование"),
        DocumentType(id="type-consultation", code="consultation", name="Консультация врача"),
    ]


@pytest.fixture
def articles():
    return [
        Article(id="art-43", number="43", title="Гипертоническая болезнь"),
        Article(id="art-66", number="66", title="Болезни позвоночника и их последствия"),
        Article(id="art-68", number="68", title="Плоскостопие и другие деформации стопы"),
        Article(id="art-99", number="99", title="Исключённая статья", active=False),
    ]


@pytest.fixture
def reference_data(document_types, articles):
    return StaticReferenceData(document_types, articles)


@pytest.fixture
def reference(reference_data):
    """Reference snapshot as fetched for one run."""
    return reference_data.snapshot()


@pytest.fixture
def sleeps():
    """Records backoff delays instead of sleeping."""
    return []


@pytest.fixture
def retry_policy(sleeps):
    return RetryPolicy(max_attempts=3, base_delay=1.0, retry_on=is_retriable_failure, sleep=sleeps.append)


@pytest.fixture
def valid_image_base64():
    """Base64 body well above the minimum length."""
    return base64.b64encode(b"\xff\xd8\xff\xe0" + b"jpeg-bytes" * 30).decode("ascii")


@pytest.fixture
def classified_response():
    """Well-formed response linking a document to article 68."""
    return {
        "extractedText": "Заключение ортопеда: продольное плоскостопие II степени.",
        "documentDate": "15.03.2026",
        "documentTypeCode": "consultation",
        "suggestedTitle": "Заключение ортопеда",
        "links": [
            {
                "articleNumber": "68",
                "category": "В",
                "confidence": 85,
                "explanation": "Плоскостопие II степени с артрозом.",
                "recommendations": ["Рентгенография стоп под нагрузкой"],
            },
            {
                "articleNumber": "66",
                "category": "Б",
                "confidence": 20,
                "explanation": "Возможен сопутствующий сколиоз.",
                "recommendations": ["Консультация невролога"],
            },
        ],
        "primaryArticleNumber": "68",
        "category": "В",
        "confidence": 85,
        "explanation": "Плоскостопие II степени.",
        "recommendations": ["Рентгенография стоп под нагрузкой"],
    }


@pytest.fixture(autouse=True)
def clear_job_table():
    jobs.clear_jobs()
    yield
    jobs.clear_jobs()


@pytest.fixture
def make_service(reference_data, retry_policy):
    """Factory building a service around a scripted client."""

    def _make(script=None, link_store=None):
        client = ScriptedClient(script)
        service = DocumentAnalysisService(
            documents=DocumentRepository(),
            reference_data=reference_data,
            orchestrator=EvidenceExtractionOrchestrator(client, retry_policy=retry_policy, min_image_base64_length=100),
            link_store=link_store or InMemoryEvidenceLinkStore(),
            synthesizer=RecommendationSynthesizer(staleness_months=6, prefix_length=30),
            summary_cache=SimpleCache(max_size=20),
        )
        return service, client

    return _make
