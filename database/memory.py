"""In-process document store.

Implements the same contract as PostgresStore without a database server. Used
for local development and the test suite. Every operation completes without
suspending, so each one is atomic with respect to other coroutines.
"""

import copy
import uuid
from typing import Any, Dict, Iterable, List, Optional

from .exceptions import DuplicateKeyError
from .store import Document, DocumentStore

DEFAULT_UNIQUE = {'users': ('email',)}


class MemoryStore(DocumentStore):
    """Dictionary-backed document store."""

    def __init__(self, unique: Optional[Dict[str, Iterable[str]]] = None):
        self._collections: Dict[str, Dict[str, Document]] = {}
        self._unique = {
            name: tuple(fields)
            for name, fields in (DEFAULT_UNIQUE if unique is None else unique).items()
        }

    def _collection(self, name: str) -> Dict[str, Document]:
        return self._collections.setdefault(name, {})

    def _check_unique(self, collection: str, document: Document, skip_id: Optional[str] = None):
        for field in self._unique.get(collection, ()):
            if field not in document:
                continue
            for existing_id, existing in self._collection(collection).items():
                if existing_id != skip_id and existing.get(field) == document[field]:
                    raise DuplicateKeyError(collection, field)

    async def insert(self, collection: str, document: Document) -> Document:
        document = copy.deepcopy(document)
        document['id'] = str(document.get('id') or uuid.uuid4())
        self._check_unique(collection, document)
        self._collection(collection)[document['id']] = document
        return copy.deepcopy(document)

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        document = self._collection(collection).get(str(doc_id))
        return copy.deepcopy(document) if document is not None else None

    async def find_one(self, collection: str, **filters: Any) -> Optional[Document]:
        for document in self._collection(collection).values():
            if all(document.get(key) == value for key, value in filters.items()):
                return copy.deepcopy(document)
        return None

    async def find(
        self,
        collection: str,
        search: Optional[str] = None,
        fields: Iterable[str] = (),
        order_by: Optional[str] = None
    ) -> List[Document]:
        fields = list(fields)
        documents = list(self._collection(collection).values())

        if search and fields:
            needle = search.casefold()
            documents = [
                document for document in documents
                if any(needle in str(document.get(field) or '').casefold() for field in fields)
            ]

        if order_by:
            documents.sort(key=lambda document: document.get(order_by))

        return [copy.deepcopy(document) for document in documents]

    async def update_by_id(
        self,
        collection: str,
        doc_id: str,
        changes: Document
    ) -> Optional[Document]:
        document = self._collection(collection).get(str(doc_id))
        if document is None:
            return None
        changes = {key: value for key, value in changes.items() if key != 'id'}
        self._check_unique(collection, changes, skip_id=document['id'])
        document.update(copy.deepcopy(changes))
        return copy.deepcopy(document)

    async def delete_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        return self._collection(collection).pop(str(doc_id), None)
