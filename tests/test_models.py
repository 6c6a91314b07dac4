# SPDX-License-Identifier: AGPL-3.0-only

"""
Tests for evidence models, reference data and configuration.

This module tests the Pydantic models used throughout the evidence engine.
"""

import json
import os

import pytest
from pydantic import ValidationError

from evidence.config import AnalysisConfig
from evidence.errors import MalformedInputError, UnprocessableInputError
from evidence.models import (
    ActionPlan,
    ClassificationStatus,
    DocumentArticleLink,
    ExtractedLink,
    FitnessCategory,
    PlanBucket,
)
from evidence.reference_data import JsonReferenceData


class TestEnums:
    """Test enum values."""

    def test_categories_are_cyrillic(self):
        assert [c.value for c in FitnessCategory] == ["А", "Б", "В", "Г", "Д"]

    def test_statuses(self):
        assert ClassificationStatus("analyzing") == ClassificationStatus.ANALYZING


class TestDocumentArticleLink:
    """Test link validation."""

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            DocumentArticleLink(document_id="d", article_id="a", confidence=101)

    def test_recommendations_coerced(self):
        assert DocumentArticleLink(document_id="d", article_id="a", recommendations="МРТ").recommendations == ["МРТ"]
        assert DocumentArticleLink(document_id="d", article_id="a", recommendations=None).recommendations == []

    def test_extracted_link_binds_document(self):
        extracted = ExtractedLink(article_id="art-68", article_number="68", confidence=85, recommendations=["МРТ"])
        bound = extracted.to_link("doc-1")
        assert bound.document_id == "doc-1"
        assert bound.confidence == 85


class TestActionPlan:
    """Test plan lookup."""

    def test_bucket_lookup(self):
        plan = ActionPlan(buckets=[PlanBucket(name="imaging", items=["МРТ"])])
        assert plan.bucket("imaging").items == ["МРТ"]
        assert plan.bucket("analyses") is None


class TestErrors:
    """Test the failure taxonomy payload."""

    def test_default_messages(self):
        error = UnprocessableInputError(detail="status 400")
        assert error.to_dict() == {
            "kind": "unprocessable-input",
            "message": UnprocessableInputError.default_message,
            "detail": "status 400",
        }

    def test_custom_message(self):
        error = MalformedInputError("Пустой файл")
        assert str(error) == "Пустой файл"
        assert error.kind == "malformed-input"


class TestReferenceData:
    """Test the JSON catalog provider."""

    def test_loads_catalog(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({
            "document_types": [{"id": "t1", "code": "analysis", "name": "Анализ"}],
            "articles": [
                {"id": "a1", "number": 68, "title": "Плоскостопие"},
                {"id": "a2", "number": " 12 ", "title": "Старая", "active": False},
            ],
        }, ensure_ascii=False), encoding="utf-8")

        snapshot = JsonReferenceData(str(path)).snapshot()

        assert snapshot.type_by_code("analysis").id == "t1"
        assert snapshot.article_by_number("68").id == "a1"
        assert snapshot.article_by_number("12").active is False
        assert [a.id for a in snapshot.active_articles] == ["a1"]

    def test_bundled_catalog_is_valid(self):
        path = os.path.join(os.path.dirname(__file__), "..", "data", "reference_catalog.json")
        snapshot = JsonReferenceData(path).snapshot()
        assert snapshot.article_by_number("68") is not None


class TestAnalysisConfig:
    """Test configuration loading."""

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("EVIDENCE_RETRY_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("EVIDENCE_AI_SERVICE", "ollama")

        settings = AnalysisConfig()

        assert settings.get_retry_config()["max_attempts"] == 5
        assert settings.get_ai_config()["service"] == "ollama"
        assert settings.validate_ai_config() is True

    def test_gateway_requires_key(self, monkeypatch):
        monkeypatch.delenv("EVIDENCE_GATEWAY_API_KEY", raising=False)
        assert AnalysisConfig(ai_service="gateway").validate_ai_config() is False
