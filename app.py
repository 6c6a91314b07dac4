"""
Medical fitness evidence engine – pure API back-end

Endpoints
─────────
GET  /health                                  → {"status": "ok"}
POST /api/documents                           → create a document
POST /api/documents/<id>/analyze              → 202 + job_id (background analysis)
GET  /api/analysis/status/<job_id>            → job status and result
GET  /api/documents/<id>/links                → document links
GET  /api/articles/<article_id>/summary       → score + action plan
PUT  /api/articles/<article_id>/assessment    → manual assessment
POST /api/questionnaire                       → questionnaire document + job_id
(no HTML rendered; UI lives in a separate front-end)
"""

# SPDX-License-Identifier: AGPL-3.0-only

# ── imports ──────────────────────────────────────────────────────
import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_cors import CORS                 # allow front-end origin

load_dotenv()

from evidence.config import config          # noqa: E402  (reads the environment loaded above)
from evidence.endpoints import register_analysis_endpoints  # noqa: E402
from evidence.service import build_service  # noqa: E402

logger = logging.getLogger(__name__)

origins = [
    "http://localhost:5173",  # Development frontend
    "http://127.0.0.1:5173",  # Alternative localhost
]
origins.extend(o.strip() for o in os.getenv("EVIDENCE_CORS_ORIGINS", "").split(",") if o.strip())


def configure_logging(level: str = None):
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, (level or config.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(service=None) -> Flask:
    """Build the Flask app around an analysis service."""
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = 25 * 1024 * 1024    # 25 MB of base64 payload

    CORS(
        app,
        resources={r"/api/*": {"origins": origins}}
    )

    if service is None:
        if not config.validate_ai_config():
            logger.warning("Reasoning service %r is missing its API key", config.ai_service)
        service = build_service()
    app.config["ANALYSIS_SERVICE"] = service

    register_analysis_endpoints(app, service)

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"}), 200

    return app


if __name__ == "__main__":
    configure_logging()
    create_app().run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
