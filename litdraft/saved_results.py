"""
Saved results for LitDraft.

Owns the set of Documents the user saved from search results and persists
it as JSON under one fixed key.
"""
from typing import Dict, List, Optional
import json
import logging

from litdraft.db.kv_store import KeyValueStore
from litdraft.models import Document

logger = logging.getLogger(__name__)

SAVED_RESULTS_KEY = "savedResults"


class SavedResults:
    """
    Manages the saved Document set.

    Handles:
    - Loading the set from the key-value store on first use
    - Adding (idempotent by id), removing and clearing Documents
    - Writing the whole set back after every change

    This is the only place that mutates saved Documents.
    """

    def __init__(self, store: KeyValueStore, key: str = SAVED_RESULTS_KEY):
        self.store = store
        self.key = key
        self._documents: Optional[Dict[str, Document]] = None

    def _loaded(self) -> Dict[str, Document]:
        if self._documents is None:
            self._documents = {}
            raw = self.store.get(self.key)
            if raw:
                for item in self._parse(raw):
                    try:
                        doc = Document.from_dict(item)
                    except (ValueError, KeyError, TypeError, AttributeError) as e:
                        logger.error(f"Skipping unreadable saved result {item!r}: {e}")
                        continue
                    self._documents[doc.id] = doc
            logger.info(f"Loaded {len(self._documents)} saved results")
        return self._documents

    def _parse(self, raw: str) -> list:
        try:
            items = json.loads(raw)
        except ValueError as e:
            items = None
            logger.error(f"Could not parse saved results under '{self.key}': {e}")
        if isinstance(items, list):
            return items

        # Keep the unreadable payload under a backup key before the next save replaces it
        backup_key = f"{self.key}.corrupt"
        self.store.set(backup_key, raw)
        logger.error(f"Saved results under '{self.key}' are not a list; copied to '{backup_key}'")
        return []

    def _save(self) -> None:
        payload = json.dumps([doc.to_dict() for doc in self._loaded().values()])
        self.store.set(self.key, payload)

    def list(self) -> List[Document]:
        """All saved Documents in the order they were saved."""
        return list(self._loaded().values())

    def get(self, document_id: str) -> Optional[Document]:
        return self._loaded().get(document_id)

    def __len__(self) -> int:
        return len(self._loaded())

    def __contains__(self, document_id: str) -> bool:
        return document_id in self._loaded()

    def add(self, document: Document) -> bool:
        """Save a Document. Returns False if one with the same id is already saved."""
        documents = self._loaded()
        if document.id in documents:
            return False
        documents[document.id] = document
        self._save()
        logger.info(f"Saved result {document.id} ({len(documents)} total)")
        return True

    def add_many(self, documents: List[Document]) -> int:
        """Save several Documents with a single write, returning how many were new."""
        saved = self._loaded()
        added = 0
        for doc in documents:
            if doc.id not in saved:
                saved[doc.id] = doc
                added += 1
        if added:
            self._save()
        return added

    def remove(self, document_id: str) -> bool:
        """Remove a Document by id. Returns False if it was not saved."""
        documents = self._loaded()
        if document_id not in documents:
            return False
        del documents[document_id]
        self._save()
        logger.info(f"Removed saved result {document_id}")
        return True

    def clear(self) -> None:
        self._documents = {}
        self.store.delete(self.key)
