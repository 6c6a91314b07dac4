# SPDX-License-Identifier: AGPL-3.0-only

"""
Evidence link store.

Links are the per-(document, article) confidence records produced by analysis.
A document's link set is always replaced as one unit: readers see either the
previous set or the new one, never a mix. Writes carry the analysis run version
so an older run finishing after a newer one cannot overwrite its links.
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .errors import LinkStoreError
from .models import DocumentArticleLink

logger = logging.getLogger(__name__)


class EvidenceLinkStore(ABC):
    """Persistence boundary for document-article links."""

    @abstractmethod
    def replace_links(self, document_id: str, links: List[DocumentArticleLink], owner_id: str,
                      run_version: Optional[int] = None) -> bool:
        """
        Replace every link of a document with the given set.

        Args:
            document_id: Document whose links are replaced
            links: New link set; may be empty
            owner_id: Owner of the document
            run_version: Analysis run that produced the links

        Returns:
            False when the write was ignored because a newer run already wrote
        """
        pass

    @abstractmethod
    def links_for_article(self, article_id: str, owner_id: str) -> List[DocumentArticleLink]:
        """Return all links to an article across the owner's documents."""
        pass

    @abstractmethod
    def links_for_document(self, document_id: str) -> List[DocumentArticleLink]:
        """Return the current link set of a document."""
        pass


class _LinkTable:
    """Per-document entries shared by both store implementations."""

    def __init__(self):
        self.entries: Dict[str, Dict] = {}

    def accepts(self, document_id: str, run_version: Optional[int]) -> bool:
        entry = self.entries.get(document_id)
        if entry is None or run_version is None or entry.get("version") is None:
            return True
        return run_version >= entry["version"]

    def put(self, document_id: str, owner_id: str, links: List[DocumentArticleLink],
            run_version: Optional[int]) -> None:
        previous = self.entries.get(document_id, {}).get("version")
        version = run_version if run_version is not None else previous
        # The new list is built before the swap so readers never see it half filled
        self.entries[document_id] = {
            "owner_id": owner_id,
            "version": version,
            "links": [link.model_copy(update={"document_id": document_id}) for link in links],
        }

    def for_article(self, article_id: str, owner_id: str) -> List[DocumentArticleLink]:
        result = []
        for entry in self.entries.values():
            if entry["owner_id"] != owner_id:
                continue
            result.extend(link for link in entry["links"] if link.article_id == article_id)
        return result

    def for_document(self, document_id: str) -> List[DocumentArticleLink]:
        entry = self.entries.get(document_id)
        return list(entry["links"]) if entry else []


class InMemoryEvidenceLinkStore(EvidenceLinkStore):
    """Thread-safe in-memory link store."""

    def __init__(self):
        self._table = _LinkTable()
        self._lock = threading.Lock()

    def replace_links(self, document_id, links, owner_id, run_version=None):
        with self._lock:
            if not self._table.accepts(document_id, run_version):
                logger.info(
                    "Ignoring links of stale run %s for document %s", run_version, document_id
                )
                return False
            self._table.put(document_id, owner_id, list(links), run_version)
        logger.debug("Stored %d links for document %s", len(links), document_id)
        return True

    def links_for_article(self, article_id, owner_id):
        with self._lock:
            return self._table.for_article(article_id, owner_id)

    def links_for_document(self, document_id):
        with self._lock:
            return self._table.for_document(document_id)


class JsonFileEvidenceLinkStore(EvidenceLinkStore):
    """
    Link store persisted to a single JSON file.

    Every replacement rewrites the file through a temporary file followed by
    os.replace, so the file on disk always holds a complete snapshot.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._table = _LinkTable()
        self._load()

    def _load(self) -> None:
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise LinkStoreError(f"Failed to read link store {self.path}: {e}") from e

        for document_id, entry in data.get("documents", {}).items():
            self._table.entries[document_id] = {
                "owner_id": entry["owner_id"],
                "version": entry.get("version"),
                "links": [DocumentArticleLink(**link) for link in entry.get("links", [])],
            }

    def _flush(self, entries: Dict[str, Dict]) -> None:
        payload = {
            "documents": {
                document_id: {
                    "owner_id": entry["owner_id"],
                    "version": entry["version"],
                    "links": [link.model_dump() for link in entry["links"]],
                }
                for document_id, entry in entries.items()
            }
        }
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".links-", suffix=".json", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            raise LinkStoreError(f"Failed to write link store {self.path}: {e}") from e

    def replace_links(self, document_id, links, owner_id, run_version=None):
        with self._lock:
            if not self._table.accepts(document_id, run_version):
                logger.info(
                    "Ignoring links of stale run %s for document %s", run_version, document_id
                )
                return False

            staged = _LinkTable()
            staged.entries = dict(self._table.entries)
            staged.put(document_id, owner_id, list(links), run_version)
            # Memory only moves forward once the file holds the new snapshot
            self._flush(staged.entries)
            self._table = staged
        logger.debug("Persisted %d links for document %s", len(links), document_id)
        return True

    def links_for_article(self, article_id, owner_id):
        with self._lock:
            return self._table.for_article(article_id, owner_id)

    def links_for_document(self, document_id):
        with self._lock:
            return self._table.for_document(document_id)
