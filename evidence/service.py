# SPDX-License-Identifier: AGPL-3.0-only

"""
Document analysis service.

This module ties the evidence engine together: it moves documents through
their classification lifecycle, runs extraction and normalization, replaces the
document's links, and derives per-article scores and action plans on demand.
"""

import logging
import threading
import uuid
from datetime import date
from typing import Any, Dict, Optional, Tuple

from common.caching import SimpleCache
from common.hashing import compute_snapshot_hash
from common.llm_client import ReasoningClient
from common.metrics import AnalysisMetrics
from common.retry import RetryPolicy

from .aggregator import EvidenceAggregator
from .config import AnalysisConfig, config
from .documents import DocumentRepository
from .errors import AnalysisError, ArticleNotFoundError, MalformedInputError
from .jobs import create_job, set_job_error, set_job_result, update_job
from .link_store import EvidenceLinkStore, InMemoryEvidenceLinkStore, JsonFileEvidenceLinkStore
from .models import ArticleSummary, Document, ExtractionRecord, RecommendationEvidence
from .normalizer import ResultNormalizer
from .orchestrator import EvidenceExtractionOrchestrator, is_retriable_failure
from .questionnaire import filled_answers, questionnaire_title, render_questionnaire
from .recommendations import RecommendationSynthesizer
from .reference_data import JsonReferenceData, ReferenceDataProvider

logger = logging.getLogger(__name__)


class DocumentAnalysisService:
    """Entry point for analyzing documents and reading per-article summaries."""

    def __init__(
        self,
        documents: DocumentRepository,
        reference_data: ReferenceDataProvider,
        orchestrator: EvidenceExtractionOrchestrator,
        link_store: EvidenceLinkStore,
        normalizer: Optional[ResultNormalizer] = None,
        aggregator: Optional[EvidenceAggregator] = None,
        synthesizer: Optional[RecommendationSynthesizer] = None,
        summary_cache: Optional[SimpleCache] = None,
    ):
        """
        Initialize the analysis service.

        Args:
            documents: Repository of documents and assessments
            reference_data: Provider of document types and articles
            orchestrator: Reasoning call orchestrator
            link_store: Persistence for document-article links
            normalizer: Response normalizer
            aggregator: Article scorer
            synthesizer: Action plan builder
            summary_cache: Memo for article summaries
        """
        self.documents = documents
        self.reference_data = reference_data
        self.orchestrator = orchestrator
        self.link_store = link_store
        self.normalizer = normalizer or ResultNormalizer()
        self.aggregator = aggregator or EvidenceAggregator()
        self.synthesizer = synthesizer or RecommendationSynthesizer()
        if summary_cache is None:
            summary_cache = SimpleCache(max_size=config.summary_cache_size)
        self.summary_cache = summary_cache

    def analyze_document(self, document_id: str, image_base64: Optional[str] = None,
                         text: Optional[str] = None, document_kind: Optional[str] = None,
                         metrics: Optional[AnalysisMetrics] = None) -> ExtractionRecord:
        """
        Analyze a document synchronously.

        Args:
            document_id: Document to analyze
            image_base64: Base64 image payload (image path)
            text: Free text (text path); defaults to the stored raw text when no image is given
            document_kind: Optional caller hint for the image prompt
            metrics: Run metrics collector

        Returns:
            Normalized extraction record

        Raises:
            AnalysisError: typed failure; the document keeps its previous status
        """
        run_version = self.documents.start_run(document_id)
        return self._run(document_id, run_version, image_base64, text, document_kind, metrics)

    def submit_analysis(self, document_id: str, image_base64: Optional[str] = None,
                        text: Optional[str] = None, document_kind: Optional[str] = None) -> str:
        """Start a background analysis run and return its job id."""
        document = self.documents.get(document_id)
        run_version = self.documents.start_run(document.id)

        job_id = str(uuid.uuid4())
        create_job(job_id, document_id, {
            "document_kind": document_kind,
            "input": "image" if image_base64 else "text",
            "run_version": run_version,
        })

        def process():
            metrics = AnalysisMetrics()
            try:
                update_job(job_id, {"status": "processing", "progress": 10})
                record = self._run(document_id, run_version, image_base64, text, document_kind, metrics)
                set_job_result(job_id, record.to_output(), metrics.to_dict())
            except AnalysisError as e:
                set_job_error(job_id, e.to_dict(), metrics.to_dict())
            except Exception as e:
                logger.exception("Background analysis %s for document %s crashed", job_id, document_id)
                set_job_error(job_id, {"kind": "internal-error", "message": str(e), "detail": None})

        thread = threading.Thread(target=process, daemon=True)
        thread.start()
        logger.info("Submitted analysis job %s for document %s (run %d)", job_id, document_id, run_version)
        return job_id

    def submit_questionnaire(self, owner_id: str, answers: Dict[str, str],
                             filled_on: Optional[date] = None) -> Tuple[Document, str]:
        """Render questionnaire answers into a document and analyze it in the background."""
        filled_on = filled_on or date.today()
        text = render_questionnaire(answers, filled_on)
        document = self.documents.create_document(
            owner_id,
            title=questionnaire_title(filled_on),
            raw_text=text,
            document_date=filled_on,
            is_questionnaire=True,
        )
        logger.info("Questionnaire document %s created with %d answers", document.id, len(filled_answers(answers)))
        job_id = self.submit_analysis(document.id, text=text)
        return document, job_id

    def _run(self, document_id: str, run_version: int, image_base64: Optional[str], text: Optional[str],
             document_kind: Optional[str], metrics: Optional[AnalysisMetrics]) -> ExtractionRecord:
        metrics = metrics or AnalysisMetrics()
        try:
            document = self.documents.get(document_id)
            reference = self.reference_data.snapshot()
            metrics.mark_stage("reference_data")

            if image_base64:
                raw = self.orchestrator.analyze_image(document_id, image_base64, reference, document_kind, metrics)
            else:
                source_text = text if text and text.strip() else document.raw_text
                if not source_text or not source_text.strip():
                    raise MalformedInputError(detail="neither an image nor text was provided")
                raw = self.orchestrator.analyze_text(document_id, source_text, reference, metrics)
            metrics.mark_stage("reasoning")

            record = self.normalizer.normalize(raw, reference)
            metrics.mark_stage("normalize")

            links = [link.to_link(document_id) for link in record.links]
            stored = self.documents.complete_run(
                document_id, run_version, record,
                persist=lambda: self.link_store.replace_links(
                    document_id, links, document.owner_id, run_version=run_version),
            )
            metrics.mark_stage("persist")
            if stored is None:
                logger.info("Discarded result of superseded run %d for document %s", run_version, document_id)
                return record
        except AnalysisError as e:
            self.documents.fail_run(document_id, run_version, e.message)
            raise
        except Exception as e:
            self.documents.fail_run(document_id, run_version, str(e))
            raise
        finally:
            metrics.finish()

        logger.info(
            "Document %s classified: %d links, primary %s, default=%s (%.2fs)",
            document_id, len(record.links), record.primary_article_number, record.is_default, metrics.duration(),
        )
        return record

    def set_assessment(self, owner_id: str, article_id: str, value: int):
        """Store a manual assessment; it overrides link-derived scoring for the article."""
        return self.documents.set_assessment(owner_id, article_id, value)

    def article_summary(self, owner_id: str, article_id: str, today: Optional[date] = None,
                        force: bool = False) -> ArticleSummary:
        """
        Score one article and build its action plan.

        Results are memoized on a hash of every input; force=True recomputes.
        """
        today = today or date.today()
        article = self.reference_data.snapshot().article_by_id(article_id)
        if article is None:
            raise ArticleNotFoundError(f"Article {article_id} not found")

        links = self.link_store.links_for_article(article_id, owner_id)
        assessment = self.documents.get_assessment(owner_id, article_id)
        dates = self.documents.dates_for(link.document_id for link in links)

        key = compute_snapshot_hash({
            "owner_id": owner_id,
            "article": article.model_dump(),
            "links": sorted((link.model_dump() for link in links), key=lambda l: (l["document_id"], l["article_id"])),
            "dates": dates,
            "assessment": assessment.value if assessment else None,
            "today": today,
        })
        if not force:
            cached = self.summary_cache.get(key)
            if cached is not None:
                return cached

        score = self.aggregator.score(article_id, links, assessment)
        evidence = [
            RecommendationEvidence(recommendations=link.recommendations, document_date=dates.get(link.document_id))
            for link in links
        ]
        plan = self.synthesizer.synthesize(evidence, today)

        summary = ArticleSummary(article=article, score=score, plan=plan)
        self.summary_cache.set(key, summary)
        return summary

    def document_links(self, document_id: str):
        """Return the current links of a document."""
        self.documents.get(document_id)
        return self.link_store.links_for_document(document_id)


def build_service(settings: Optional[AnalysisConfig] = None,
                  client: Optional[Any] = None) -> DocumentAnalysisService:
    """Assemble a service from configuration."""
    settings = settings or config
    client = client or ReasoningClient(settings.get_ai_config())
    if settings.link_store_path:
        link_store = JsonFileEvidenceLinkStore(settings.link_store_path)
    else:
        link_store = InMemoryEvidenceLinkStore()

    return DocumentAnalysisService(
        documents=DocumentRepository(),
        reference_data=JsonReferenceData(settings.get_effective_reference_data_path()),
        orchestrator=EvidenceExtractionOrchestrator(
            client,
            retry_policy=RetryPolicy.from_config(settings.get_retry_config(), retry_on=is_retriable_failure),
            min_image_base64_length=settings.min_image_base64_length,
        ),
        link_store=link_store,
        synthesizer=RecommendationSynthesizer(
            staleness_months=settings.staleness_months,
            prefix_length=settings.dedup_prefix_length,
        ),
        summary_cache=SimpleCache(max_size=settings.summary_cache_size),
    )
