# SPDX-License-Identifier: AGPL-3.0-only

"""
Job storage and lifecycle management for background analysis runs.
"""
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# In-memory job table; callers poll it for status
ANALYSIS_JOBS: Dict[str, Dict[str, Any]] = {}
ANALYSIS_JOBS_LOCK = threading.Lock()

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_job(job_id: str, document_id: str, params: Dict[str, Any]) -> None:
    """Create a new analysis job."""
    with ANALYSIS_JOBS_LOCK:
        ANALYSIS_JOBS[job_id] = {
            "job_id": job_id,
            "document_id": document_id,
            "status": STATUS_PENDING,
            "progress": 0,
            "created_at": _now(),
            "finished_at": None,
            "params": params,
            "result": None,
            "error": None,
            "metrics": {}
        }


def update_job(job_id: str, updates: Dict[str, Any]) -> None:
    """Update job status/progress."""
    with ANALYSIS_JOBS_LOCK:
        if job_id in ANALYSIS_JOBS:
            ANALYSIS_JOBS[job_id].update(updates)


def get_job(job_id: str) -> Optional[Dict[str, Any]]:
    """Get a copy of the job by ID."""
    with ANALYSIS_JOBS_LOCK:
        job = ANALYSIS_JOBS.get(job_id)
        return dict(job) if job else None


def set_job_result(job_id: str, result: Dict[str, Any], metrics: Dict[str, Any] = None) -> None:
    """Set job result and mark as completed."""
    with ANALYSIS_JOBS_LOCK:
        if job_id in ANALYSIS_JOBS:
            ANALYSIS_JOBS[job_id]["result"] = result
            ANALYSIS_JOBS[job_id]["status"] = STATUS_COMPLETED
            ANALYSIS_JOBS[job_id]["progress"] = 100
            ANALYSIS_JOBS[job_id]["finished_at"] = _now()
            if metrics:
                ANALYSIS_JOBS[job_id]["metrics"] = metrics


def set_job_error(job_id: str, error: Dict[str, Any], metrics: Dict[str, Any] = None) -> None:
    """Set job error ({kind, message, detail}) and mark as failed."""
    with ANALYSIS_JOBS_LOCK:
        if job_id in ANALYSIS_JOBS:
            ANALYSIS_JOBS[job_id]["error"] = error
            ANALYSIS_JOBS[job_id]["status"] = STATUS_FAILED
            ANALYSIS_JOBS[job_id]["finished_at"] = _now()
            if metrics:
                ANALYSIS_JOBS[job_id]["metrics"] = metrics


def clear_jobs() -> None:
    """Drop every job."""
    with ANALYSIS_JOBS_LOCK:
        ANALYSIS_JOBS.clear()
