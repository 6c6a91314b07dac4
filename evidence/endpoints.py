# SPDX-License-Identifier: AGPL-3.0-only

"""
Flask endpoints for document analysis and article summaries.
"""
import logging

from flask import jsonify, request
from marshmallow import ValidationError

from validators import (
    AnalyzeRequestSchema,
    AssessmentSchema,
    DocumentCreateSchema,
    QuestionnaireSchema,
    SummaryQuerySchema,
)

from .errors import AnalysisError, ArticleNotFoundError, DocumentNotFoundError, LinkStoreError
from .jobs import get_job
from .service import DocumentAnalysisService

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "malformed-input": 400,
    "unprocessable-input": 422,
    "rate-limited": 429,
    "quota-exhausted": 503,
    "extraction-failed": 502,
}


def _owner_id():
    owner = (request.headers.get("X-User-Id") or "").strip()
    return owner or None


def _unauthorized():
    return jsonify({"error": "X-User-Id header is required"}), 401


def register_analysis_endpoints(app, service: DocumentAnalysisService):
    """Register analysis endpoints with Flask app."""

    @app.errorhandler(AnalysisError)
    def handle_analysis_error(e: AnalysisError):
        return jsonify({"error": e.to_dict()}), ERROR_STATUS.get(e.kind, 500)

    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        return jsonify({"error": "Invalid request", "details": e.messages}), 400

    @app.errorhandler(DocumentNotFoundError)
    def handle_document_not_found(e):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(ArticleNotFoundError)
    def handle_article_not_found(e):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(LinkStoreError)
    def handle_link_store_error(e):
        logger.error("Link store failure: %s", e)
        return jsonify({"error": "Storage failure"}), 500

    @app.post("/api/documents")
    def create_document():
        """Create an unclassified document for the caller."""
        owner = _owner_id()
        if not owner:
            return _unauthorized()

        data = DocumentCreateSchema().load(request.get_json(silent=True) or {})
        document = service.documents.create_document(
            owner,
            title=data["title"],
            source_ref=data["source_ref"],
            raw_text=data.get("raw_text"),
            document_date=data.get("document_date"),
        )
        return jsonify(document.model_dump(mode="json")), 201

    @app.post("/api/documents/<document_id>/analyze")
    def analyze_document(document_id: str):
        """Async analysis endpoint - returns job_id immediately."""
        owner = _owner_id()
        if not owner:
            return _unauthorized()

        document = service.documents.get(document_id)
        if document.owner_id != owner:
            return jsonify({"error": f"Document {document_id} not found"}), 404

        data = AnalyzeRequestSchema().load(request.get_json(silent=True) or {})
        if not data.get("image_base64") and not data.get("text") and not document.raw_text:
            return jsonify({"error": "Provide image_base64 or text"}), 400

        job_id = service.submit_analysis(
            document_id,
            image_base64=data.get("image_base64"),
            text=data.get("text"),
            document_kind=data.get("document_kind"),
        )
        return jsonify({"job_id": job_id, "document_id": document_id}), 202

    @app.get("/api/analysis/status/<job_id>")
    def analysis_status(job_id: str):
        """Get status of analysis job."""
        owner = _owner_id()
        if not owner:
            return _unauthorized()

        job = get_job(job_id)
        if not job or service.documents.get(job["document_id"]).owner_id != owner:
            return jsonify({"error": "Job not found"}), 404

        return jsonify({
            "job_id": job_id,
            "document_id": job["document_id"],
            "status": job["status"],
            "progress": job["progress"],
            "result": job.get("result"),
            "error": job.get("error"),
            "done": job["status"] in ("completed", "failed")
        })

    @app.get("/api/documents/<document_id>/links")
    def document_links(document_id: str):
        """Current links of a document."""
        owner = _owner_id()
        if not owner:
            return _unauthorized()

        document = service.documents.get(document_id)
        if document.owner_id != owner:
            return jsonify({"error": f"Document {document_id} not found"}), 404

        links = service.document_links(document_id)
        return jsonify({
            "document": document.model_dump(mode="json"),
            "links": [link.model_dump(mode="json") for link in links],
        })

    @app.get("/api/articles/<article_id>/summary")
    def article_summary(article_id: str):
        """Score and action plan for one article."""
        owner = _owner_id()
        if not owner:
            return _unauthorized()

        query = SummaryQuerySchema().load(request.args.to_dict())
        summary = service.article_summary(owner, article_id, today=query.get("today"), force=query["force"])
        return jsonify(summary.model_dump(mode="json"))

    @app.put("/api/articles/<article_id>/assessment")
    def set_assessment(article_id: str):
        """Store a manual assessment for an article."""
        owner = _owner_id()
        if not owner:
            return _unauthorized()

        data = AssessmentSchema().load(request.get_json(silent=True) or {})
        assessment = service.set_assessment(owner, article_id, data["value"])
        return jsonify(assessment.model_dump(mode="json"))

    @app.post("/api/questionnaire")
    def submit_questionnaire():
        """Render questionnaire answers into a document and start its analysis."""
        owner = _owner_id()
        if not owner:
            return _unauthorized()

        data = QuestionnaireSchema().load(request.get_json(silent=True) or {})
        document, job_id = service.submit_questionnaire(owner, data["answers"], filled_on=data.get("filled_on"))
        return jsonify({"document": document.model_dump(mode="json"), "job_id": job_id}), 202
