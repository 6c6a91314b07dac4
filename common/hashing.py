"""
Hashing utilities for memoization keys.
"""
import hashlib
import json
from typing import Any


def compute_snapshot_hash(snapshot: Any) -> str:
    """
    Compute a stable SHA256 hash of a JSON-serializable snapshot.

    Dict keys are sorted; dates and other non-JSON values are stringified.
    """
    encoded = json.dumps(snapshot, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()
