# SPDX-License-Identifier: AGPL-3.0-only

"""
Tests for the document analysis service.

End-to-end flows through orchestration, normalization, link replacement and
per-article summaries, with the reasoning service scripted.
"""

import time
from datetime import date

import pytest

from evidence.errors import (
    ArticleNotFoundError,
    MalformedInputError,
    RateLimitedError,
    UnprocessableInputError,
)
from evidence.jobs import get_job
from evidence.models import ClassificationStatus

from tests.helpers import http_error

TODAY = date(2026, 10, 17)


def wait_for_job(job_id, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        job = get_job(job_id)
        if job and job["status"] in ("completed", "failed"):
            return job
        time.sleep(0.01)
    raise AssertionError(f"job {job_id} did not finish")


class TestAnalyzeDocument:
    """Test synchronous analysis runs."""

    def test_image_run_classifies_document(self, make_service, classified_response, valid_image_base64):
        service, client = make_service([classified_response])
        document = service.documents.create_document("user-1")

        record = service.analyze_document(document.id, image_base64=valid_image_base64)

        stored = service.documents.get(document.id)
        assert stored.status == ClassificationStatus.CLASSIFIED
        assert stored.analysis_version == 1
        assert stored.primary_article_id == "art-68"
        assert stored.document_date == date(2026, 3, 15)
        assert stored.title == "Заключение ортопеда"
        assert record.primary_article_number == "68"
        assert {l.article_id for l in service.document_links(document.id)} == {"art-68", "art-66"}

    def test_text_run_uses_stored_raw_text(self, make_service, classified_response):
        service, client = make_service([classified_response])
        document = service.documents.create_document("user-1", raw_text="Жалобы на боли в стопах")

        service.analyze_document(document.id)

        assert "Жалобы на боли в стопах" in client.calls[0]["prompt"]
        assert client.calls[0]["image_base64"] is None

    def test_unparseable_response_still_classifies(self, make_service):
        service, _ = make_service(["not json at all"])
        document = service.documents.create_document("user-1", raw_text="текст")

        record = service.analyze_document(document.id)

        assert record.is_default is True
        assert service.documents.get(document.id).status == ClassificationStatus.CLASSIFIED
        assert service.document_links(document.id) == []

    def test_failure_reverts_status(self, make_service, classified_response):
        service, _ = make_service([classified_response, http_error(429)])
        document = service.documents.create_document("user-1", raw_text="текст")
        service.analyze_document(document.id)

        with pytest.raises(RateLimitedError):
            service.analyze_document(document.id)

        stored = service.documents.get(document.id)
        assert stored.status == ClassificationStatus.CLASSIFIED
        assert stored.last_error
        assert len(service.document_links(document.id)) == 2

    def test_failure_of_first_run_returns_to_unclassified(self, make_service):
        service, _ = make_service([http_error(400, "unable to process image")] * 3)
        document = service.documents.create_document("user-1")

        with pytest.raises(UnprocessableInputError):
            service.analyze_document(document.id, image_base64="QUJD" * 40)

        stored = service.documents.get(document.id)
        assert stored.status == ClassificationStatus.UNCLASSIFIED
        assert stored.analysis_version == 1

    def test_missing_input_is_malformed(self, make_service):
        service, client = make_service([])
        document = service.documents.create_document("user-1")

        with pytest.raises(MalformedInputError):
            service.analyze_document(document.id)

        assert client.calls == []
        assert service.documents.get(document.id).status == ClassificationStatus.UNCLASSIFIED

    def test_reanalysis_replaces_links(self, make_service, classified_response):
        second = {"links": [{"articleNumber": "43", "confidence": 55, "category": "В"}]}
        service, _ = make_service([classified_response, second])
        document = service.documents.create_document("user-1", raw_text="текст")

        service.analyze_document(document.id)
        service.analyze_document(document.id)

        assert [l.article_id for l in service.document_links(document.id)] == ["art-43"]
        assert service.documents.get(document.id).analysis_version == 2


class TestOverlappingRuns:
    """Links and primary fields always come from the same run."""

    def test_older_run_finishing_after_newer_failure_is_discarded(self, make_service, classified_response):
        service, _ = make_service([http_error(429), classified_response])
        document = service.documents.create_document("user-1", raw_text="текст")
        older = service.documents.start_run(document.id)
        newer = service.documents.start_run(document.id)

        with pytest.raises(RateLimitedError):
            service._run(document.id, newer, None, None, None, None)
        service._run(document.id, older, None, None, None, None)

        stored = service.documents.get(document.id)
        assert stored.status == ClassificationStatus.UNCLASSIFIED
        assert stored.primary_article_id is None
        assert service.document_links(document.id) == []

    def test_older_run_finishing_first_leaves_newer_to_write(self, make_service, classified_response):
        second = {"links": [{"articleNumber": "43", "confidence": 55, "category": "В"}]}
        service, _ = make_service([classified_response, second])
        document = service.documents.create_document("user-1", raw_text="текст")
        older = service.documents.start_run(document.id)
        newer = service.documents.start_run(document.id)

        service._run(document.id, older, None, None, None, None)
        assert service.document_links(document.id) == []
        assert service.documents.get(document.id).status == ClassificationStatus.ANALYZING

        service._run(document.id, newer, None, None, None, None)
        stored = service.documents.get(document.id)
        assert stored.status == ClassificationStatus.CLASSIFIED
        assert stored.primary_article_id == "art-43"
        assert [l.article_id for l in service.document_links(document.id)] == ["art-43"]


class TestBackgroundJobs:
    """Test fire-and-forget submission."""

    def test_submit_analysis_completes(self, make_service, classified_response):
        service, _ = make_service([classified_response])
        document = service.documents.create_document("user-1", raw_text="текст")

        job = wait_for_job(service.submit_analysis(document.id))

        assert job["status"] == "completed"
        assert job["result"]["primaryArticleNumber"] == "68"
        assert job["metrics"]["attempts"] == 1

    def test_submit_analysis_records_typed_error(self, make_service):
        service, _ = make_service([http_error(402)])
        document = service.documents.create_document("user-1", raw_text="текст")

        job = wait_for_job(service.submit_analysis(document.id))

        assert job["status"] == "failed"
        assert job["error"]["kind"] == "quota-exhausted"

    def test_submit_questionnaire(self, make_service, classified_response):
        service, client = make_service([classified_response])

        document, job_id = service.submit_questionnaire(
            "user-1", {"13.1": "Да, обувь стаптывается внутрь"}, filled_on=TODAY
        )
        job = wait_for_job(job_id)

        assert document.is_questionnaire is True
        assert document.title == "Медицинский опросник от 17.10.2026"
        assert job["status"] == "completed"
        assert "обувь стаптывается внутрь" in client.calls[0]["prompt"]

    def test_empty_questionnaire_rejected(self, make_service):
        service, _ = make_service([])

        with pytest.raises(MalformedInputError):
            service.submit_questionnaire("user-1", {"1.1": "   "})

        assert service.documents.list_for_owner("user-1") == []


class TestArticleSummary:
    """Test per-article score and plan derivation."""

    def test_summary_across_documents(self, make_service, classified_response):
        weaker = {
            "documentDate": "01.01.2026",
            "links": [{
                "articleNumber": "68", "category": "Б", "confidence": 20,
                "recommendations": ["Консультация ортопеда"],
            }],
        }
        service, _ = make_service([classified_response, weaker])
        for _ in range(2):
            document = service.documents.create_document("user-1", raw_text="текст")
            service.analyze_document(document.id)

        summary = service.article_summary("user-1", "art-68", today=TODAY)

        assert summary.score.applies == 85
        assert summary.score.relevant_count == 2
        assert summary.plan.bucket("consultations").stale is True
        assert "ортопед" in summary.plan.text

    def test_assessment_overrides_and_invalidates_cache(self, make_service, classified_response):
        service, _ = make_service([classified_response])
        document = service.documents.create_document("user-1", raw_text="текст")
        service.analyze_document(document.id)

        before = service.article_summary("user-1", "art-68", today=TODAY)
        service.set_assessment("user-1", "art-68", 40)
        after = service.article_summary("user-1", "art-68", today=TODAY)

        assert before.score.applies == 85
        assert after.score.applies == 40
        assert after.score.overridden is True

    def test_summary_is_memoized(self, make_service):
        service, _ = make_service([])

        first = service.article_summary("user-1", "art-43", today=TODAY)
        second = service.article_summary("user-1", "art-43", today=TODAY)
        forced = service.article_summary("user-1", "art-43", today=TODAY, force=True)

        assert first is second
        assert forced is not first
        assert forced == first
        assert first.score.insufficient_data == 100

    def test_other_owners_links_ignored(self, make_service, classified_response):
        service, _ = make_service([classified_response])
        document = service.documents.create_document("user-2", raw_text="текст")
        service.analyze_document(document.id)

        summary = service.article_summary("user-1", "art-68", today=TODAY)

        assert summary.score.relevant_count == 0

    def test_unknown_article(self, make_service):
        service, _ = make_service([])

        with pytest.raises(ArticleNotFoundError):
            service.article_summary("user-1", "art-404", today=TODAY)
