"""
Named-collection document access on top of the `documents` table.

Collections have no DDL: a collection exists as soon as a document is
written to it. The constants below are the single source of truth for
collection names used across the service.

Every write commits on its own. Multi-step operations built on this module
are therefore not transactional.
"""

import copy
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from models import Document

logger = logging.getLogger(__name__)

COLLECTION_BUSINESSES = "businesses"
COLLECTION_BRANCHES = "branches"
COLLECTION_USERS = "users"
COLLECTION_PAYMENTS = "payments"
COLLECTION_TRANSACTIONS = "transactions"  # platform event logs
COLLECTION_PRODUCTS = "products"
COLLECTION_CONFIG = "config"
COLLECTION_ADMIN_ACTIVITY_LOGS = "admin_activity_logs"

APP_SETTINGS_DOC_ID = "appSettings"


class DocumentNotFound(LookupError):
    """Raised when a partial update targets a document that does not exist"""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id = doc_id


def _with_id(row: Document) -> Dict[str, Any]:
    return {"id": row.doc_id, **(row.data or {})}


def _strip_id(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if k != "id"}


def set_path(data: Dict[str, Any], path: str, value: Any) -> None:
    """Set `value` at a dotted path such as 'subscription.plan', creating maps as needed"""
    parts = path.split(".")
    target = data
    for part in parts[:-1]:
        child = target.get(part)
        if not isinstance(child, dict):
            child = {}
            target[part] = child
        target = child
    target[parts[-1]] = value


def get_path(data: Dict[str, Any], path: str, default: Any = None) -> Any:
    target: Any = data
    for part in path.split("."):
        if not isinstance(target, dict) or part not in target:
            return default
        target = target[part]
    return target


def _order_key(value: Any):
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    if isinstance(value, dict) and "seconds" in value:
        return (0, value.get("seconds", 0) + value.get("nanoseconds", 0) / 1e9)
    if isinstance(value, datetime):
        return (0, value.timestamp())
    return (1, str(value))


class DocumentStore:
    """CRUD over named collections. One instance per database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_row(self, collection: str, doc_id: str) -> Optional[Document]:
        result = await self.db.execute(
            select(Document).where(
                Document.collection == collection,
                Document.doc_id == doc_id
            )
        )
        return result.scalar_one_or_none()

    async def get(self, collection: str, doc_id: Optional[str]) -> Optional[Dict[str, Any]]:
        """Fetch one document as a dict with its `id`, or None"""
        if not doc_id:
            return None
        row = await self._get_row(collection, str(doc_id))
        return _with_id(row) if row else None

    async def list(self, collection: str) -> List[Dict[str, Any]]:
        """Full collection scan"""
        result = await self.db.execute(
            select(Document)
            .where(Document.collection == collection)
            .order_by(Document.id)
        )
        return [_with_id(row) for row in result.scalars().all()]

    async def query(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Dict[str, Any]]:
        """
        Equality filters on (dotted) fields plus an optional single-field order.

        As with the platform's document database, ordering by a field drops
        documents that do not carry that field.
        """
        docs = await self.list(collection)

        for field, expected in (where or {}).items():
            docs = [d for d in docs if get_path(d, field) == expected]

        if order_by:
            docs = [d for d in docs if get_path(d, order_by) is not None]
            docs.sort(key=lambda d: _order_key(get_path(d, order_by)), reverse=descending)

        return docs

    async def add(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """Create a document, generating an id when none is given"""
        doc_id = doc_id or uuid.uuid4().hex
        self.db.add(Document(collection=collection, doc_id=doc_id, data=_strip_id(data)))
        await self.db.commit()
        return doc_id

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Overwrite (or create) a document wholesale"""
        row = await self._get_row(collection, doc_id)
        if row is None:
            self.db.add(Document(collection=collection, doc_id=doc_id, data=_strip_id(data)))
        else:
            row.data = _strip_id(data)
            row.updated_at = datetime.utcnow()
        await self.db.commit()

    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Partial update. Keys may be dotted paths into nested maps.
        Raises DocumentNotFound when the document does not exist.
        """
        row = await self._get_row(collection, doc_id)
        if row is None:
            raise DocumentNotFound(collection, doc_id)

        # Assign a fresh dict so the JSON column is flagged as modified
        data = copy.deepcopy(row.data or {})
        for path, value in fields.items():
            set_path(data, path, value)
        row.data = _strip_id(data)
        row.updated_at = datetime.utcnow()

        await self.db.commit()
        return _with_id(row)

    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns False when nothing was deleted."""
        result = await self.db.execute(
            delete(Document).where(
                Document.collection == collection,
                Document.doc_id == doc_id
            )
        )
        await self.db.commit()
        return (result.rowcount or 0) > 0

    async def count(self, collection: str) -> int:
        return len(await self.list(collection))
