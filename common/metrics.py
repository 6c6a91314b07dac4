"""
Metrics and observability utilities for analysis runs.
"""
import time
from typing import Dict, Any, List
from datetime import datetime


class AnalysisMetrics:
    """Track timings, reasoning attempts and failures of one analysis run."""

    def __init__(self):
        self.start_time = time.time()
        self.end_time = None
        self.stages: Dict[str, float] = {}
        self.attempts = 0
        self.total_tokens = 0
        self.failures: List[Dict[str, Any]] = []
        self.backoff_seconds = 0.0

    def mark_stage(self, stage_name: str):
        """Mark completion of a stage."""
        self.stages[stage_name] = time.time()

    def finish(self):
        """Mark run as finished."""
        self.end_time = time.time()

    def add_attempt(self, tokens: int = 0):
        """Record a successful reasoning call."""
        self.attempts += 1
        self.total_tokens += tokens

    def add_failure(self, kind: str, message: str, backoff: float = 0.0):
        """Record a failed reasoning attempt and the delay taken after it."""
        self.attempts += 1
        self.backoff_seconds += backoff
        self.failures.append({"kind": kind, "message": message, "backoff": backoff})

    def duration(self) -> float:
        """Get total duration in seconds."""
        if self.end_time:
            return self.end_time - self.start_time
        return time.time() - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dict."""
        return {
            "duration_seconds": self.duration(),
            "attempts": self.attempts,
            "total_tokens": self.total_tokens,
            "backoff_seconds": self.backoff_seconds,
            "stages": {k: v - self.start_time for k, v in self.stages.items()},
            "failures": self.failures,
            "start_time": datetime.fromtimestamp(self.start_time).isoformat(),
            "end_time": datetime.fromtimestamp(self.end_time).isoformat() if self.end_time else None
        }
