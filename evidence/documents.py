# SPDX-License-Identifier: AGPL-3.0-only

"""
Document and assessment repository.

Holds each person's documents together with their classification status and
the manual assessments they entered. A document moves unclassified -> analyzing
-> classified; a failed run puts back the status it had before the run.
"""

import logging
import threading
import uuid
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple

from .errors import DocumentNotFoundError
from .models import Assessment, ClassificationStatus, Document, ExtractionRecord

logger = logging.getLogger(__name__)


class DocumentRepository:
    """Thread-safe in-memory store of documents and assessments."""

    def __init__(self):
        self._documents: Dict[str, Document] = {}
        self._assessments: Dict[Tuple[str, str], Assessment] = {}
        # status held before the run, keyed by (document id, run version)
        self._prior_status: Dict[Tuple[str, int], ClassificationStatus] = {}
        self._lock = threading.Lock()

    def create_document(self, owner_id: str, title: str = "", source_ref: str = "",
                        raw_text: Optional[str] = None, document_date: Optional[date] = None,
                        is_questionnaire: bool = False, document_type_id: Optional[str] = None) -> Document:
        """Create an unclassified document for the owner."""
        document = Document(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            title=title,
            source_ref=source_ref,
            raw_text=raw_text,
            document_date=document_date,
            is_questionnaire=is_questionnaire,
            document_type_id=document_type_id,
        )
        with self._lock:
            self._documents[document.id] = document
        logger.info("Created document %s for owner %s", document.id, owner_id)
        return document.model_copy()

    def get(self, document_id: str) -> Document:
        """Return a copy of the document or raise DocumentNotFoundError."""
        with self._lock:
            return self._get_locked(document_id).model_copy()

    def list_for_owner(self, owner_id: str) -> List[Document]:
        with self._lock:
            return [d.model_copy() for d in self._documents.values() if d.owner_id == owner_id]

    def dates_for(self, document_ids) -> Dict[str, Optional[date]]:
        """Return the evidence date of each known document."""
        with self._lock:
            return {
                doc_id: self._documents[doc_id].document_date
                for doc_id in document_ids if doc_id in self._documents
            }

    def start_run(self, document_id: str) -> int:
        """Move the document to analyzing and return the new run version."""
        with self._lock:
            document = self._get_locked(document_id)
            version = document.analysis_version + 1
            prior = document.status
            if prior == ClassificationStatus.ANALYZING:
                # a concurrent run is in flight; restore what that run would restore
                prior = self._prior_status.get((document_id, document.analysis_version), prior)
            self._prior_status[(document_id, version)] = prior
            self._documents[document_id] = document.model_copy(update={
                "status": ClassificationStatus.ANALYZING,
                "analysis_version": version,
                "last_error": None,
            })
        logger.info("Started analysis run %d for document %s", version, document_id)
        return version

    def complete_run(self, document_id: str, run_version: int, record: ExtractionRecord,
                     persist: Optional[Callable[[], object]] = None) -> Optional[Document]:
        """
        Store the primary classification of a finished run.

        ``persist`` writes the run's links. It is called under the repository
        lock and only while the run is still the latest started one, so links
        and primary fields always come from the same run.

        Returns None when a newer run has started since, leaving the document
        and its links untouched.
        """
        with self._lock:
            document = self._get_locked(document_id)
            if run_version < document.analysis_version:
                self._prior_status.pop((document_id, run_version), None)
                logger.info("Skipping stale run %d for document %s", run_version, document_id)
                return None

            if persist is not None:
                persist()
            self._prior_status.pop((document_id, run_version), None)

            update = {
                "status": ClassificationStatus.CLASSIFIED,
                "primary_article_id": record.primary_article_id,
                "category": record.category,
                "confidence": record.confidence,
                "explanation": record.explanation,
                "recommendations": list(record.recommendations),
                "last_error": None,
            }
            if record.extracted_text:
                update["raw_text"] = record.extracted_text
            if record.document_date is not None:
                update["document_date"] = record.document_date
            if record.document_type_id is not None:
                update["document_type_id"] = record.document_type_id
            if not document.title and record.suggested_title:
                update["title"] = record.suggested_title

            document = document.model_copy(update=update)
            self._documents[document_id] = document
            return document.model_copy()

    def fail_run(self, document_id: str, run_version: int, message: str) -> None:
        """Revert the document to the status held before the run and record the error."""
        with self._lock:
            document = self._get_locked(document_id)
            prior = self._prior_status.pop((document_id, run_version), ClassificationStatus.UNCLASSIFIED)
            if run_version < document.analysis_version:
                logger.info("Failure of stale run %d for document %s ignored", run_version, document_id)
                return
            self._documents[document_id] = document.model_copy(update={
                "status": prior,
                "last_error": message,
            })
        logger.warning("Analysis run %d for document %s failed: %s", run_version, document_id, message)

    def set_assessment(self, owner_id: str, article_id: str, value: int) -> Assessment:
        assessment = Assessment(owner_id=owner_id, article_id=article_id, value=value)
        with self._lock:
            self._assessments[(owner_id, article_id)] = assessment
        return assessment

    def get_assessment(self, owner_id: str, article_id: str) -> Optional[Assessment]:
        with self._lock:
            return self._assessments.get((owner_id, article_id))

    def clear_assessment(self, owner_id: str, article_id: str) -> None:
        with self._lock:
            self._assessments.pop((owner_id, article_id), None)

    def _get_locked(self, document_id: str) -> Document:
        document = self._documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return document
