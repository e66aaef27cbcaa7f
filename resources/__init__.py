"""Shared CRUD lifecycle for catalog resources.

Each resource kind (products, photos) is a ResourceManager subclass naming its
collection, the fields callers may set, the fields searched by ``list`` and
the fields required on creation. Assets are ingested by the caller; managers
only receive the resulting AssetRef and own the cleanup of the file when the
record goes away.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from assets import URL_PREFIX, AssetRef, AssetStore
from database import DocumentStore, StoreUnavailableError

logger = logging.getLogger(__name__)

# Collections whose records may reference a stored asset
ASSET_COLLECTIONS = ('products', 'photos')


class ResourceError(Exception):
    """Base exception for resource operations."""
    pass


class ResourceNotFoundError(ResourceError):
    """Raised when a resource does not exist."""
    pass


class ResourceValidationError(ResourceError):
    """Raised when supplied fields are missing or invalid."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def serialize(document: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a stored document to JSON-ready values."""
    result = {}
    for key, value in document.items():
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = float(value)
        result[key] = value
    return result


class ResourceManager:
    """Manager class for one collection of catalog resources."""

    kind: str = 'resource'
    collection: str = ''
    # User-mutable fields
    mutable_fields: Tuple[str, ...] = ()
    required_fields: Tuple[str, ...] = ()
    search_fields: Tuple[str, ...] = ()
    asset_field = 'image_url'
    asset_required = False
    created_field = 'created_at'
    updated_field: Optional[str] = 'updated_at'

    def __init__(
        self,
        store: DocumentStore,
        assets: AssetStore,
        delete_replaced_assets: bool = False
    ):
        """Initialize the manager.

        Args:
            store: Document store holding the collection
            assets: Asset store owning referenced files
            delete_replaced_assets: Remove the previous file when update supplies a new one
        """
        self.store = store
        self.assets = assets
        self.delete_replaced_assets = delete_replaced_assets

    def clean(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Keep only mutable fields that were actually supplied."""
        unknown = set(fields) - set(self.mutable_fields)
        if unknown:
            raise ResourceValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        return {key: value for key, value in fields.items() if value is not None}

    def defaults(self) -> Dict[str, Any]:
        return {}

    def _attach_asset(
        self,
        document: Dict[str, Any],
        asset: Optional[AssetRef],
        base_url: str = ''
    ) -> None:
        if asset is not None:
            document[self.asset_field] = asset.url
            return
        ref = document.get(self.asset_field)
        if not ref:
            return
        name = self.assets.name_from_ref(ref)
        if name is None or not self.assets.exists(name):
            raise ResourceValidationError(f"{self.asset_field} does not reference a stored asset")
        # Store our own URL for the file, never the host the client wrote
        document[self.asset_field] = self.assets.url_for(name, base_url)

    async def _release_asset(self, ref: str) -> None:
        """Remove the file behind ref unless another record still references it."""
        name = self.assets.name_from_ref(ref)
        if name is None:
            return
        try:
            for collection in ASSET_COLLECTIONS:
                candidates = await self.store.find(
                    collection,
                    search=f"{URL_PREFIX}/{name}",
                    fields=(self.asset_field,)
                )
                if any(self.assets.name_from_ref(doc.get(self.asset_field)) == name for doc in candidates):
                    logger.info(f"Keeping asset {name}, still referenced from {collection}")
                    return
        except StoreUnavailableError as e:
            logger.warning(f"Kept asset {name}, could not check for other references: {e}")
            return
        self.assets.remove(name)

    async def create(
        self,
        fields: Dict[str, Any],
        asset: Optional[AssetRef] = None,
        base_url: str = ''
    ) -> Dict[str, Any]:
        """Validate and persist a new resource.

        ``base_url`` is used to rebuild a caller-supplied asset URL.

        Raises:
            ResourceValidationError: If required fields or the asset are missing
        """
        document = self.defaults()
        document.update(self.clean(fields))
        self._attach_asset(document, asset, base_url)

        missing = [
            name for name in self.required_fields
            if document.get(name) in (None, '')
        ]
        if self.asset_required and not document.get(self.asset_field):
            missing.append('image')
        if missing:
            raise ResourceValidationError(f"Missing required fields: {', '.join(missing)}")

        now = utcnow()
        document[self.created_field] = now
        if self.updated_field:
            document[self.updated_field] = now

        created = await self.store.insert(self.collection, document)
        logger.info(f"Created {self.kind} {created['id']}")
        return serialize(created)

    async def get(self, resource_id: str) -> Dict[str, Any]:
        """Get a resource by id.

        Raises:
            ResourceNotFoundError: If it doesn't exist
        """
        document = await self.store.find_by_id(self.collection, resource_id)
        if document is None:
            raise ResourceNotFoundError(f"{self.kind.capitalize()} {resource_id} not found")
        return serialize(document)

    async def list(self, search: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return every resource, or those whose search fields contain ``search``."""
        documents = await self.store.find(
            self.collection,
            search=search.strip() if search else None,
            fields=self.search_fields,
            order_by=self.created_field
        )
        return [serialize(document) for document in documents]

    async def update(
        self,
        resource_id: str,
        fields: Dict[str, Any],
        asset: Optional[AssetRef] = None,
        base_url: str = ''
    ) -> Dict[str, Any]:
        """Apply supplied fields to an existing resource.

        Raises:
            ResourceNotFoundError: If it doesn't exist
            ResourceValidationError: If a required field would be blanked
        """
        changes = self.clean(fields)
        for name in self.required_fields:
            if name in changes and changes[name] == '':
                raise ResourceValidationError(f"{name} cannot be empty")

        existing = await self.store.find_by_id(self.collection, resource_id)
        if existing is None:
            raise ResourceNotFoundError(f"{self.kind.capitalize()} {resource_id} not found")

        self._attach_asset(changes, asset, base_url)
        if self.updated_field:
            changes[self.updated_field] = utcnow()

        updated = await self.store.update_by_id(self.collection, resource_id, changes)
        if updated is None:
            raise ResourceNotFoundError(f"{self.kind.capitalize()} {resource_id} not found")

        previous = existing.get(self.asset_field)
        replacement = changes.get(self.asset_field)
        if (self.delete_replaced_assets and previous and replacement
                and self.assets.name_from_ref(previous) != self.assets.name_from_ref(replacement)):
            await self._release_asset(previous)

        logger.info(f"Updated {self.kind} {resource_id}")
        return serialize(updated)

    async def delete(self, resource_id: str) -> Dict[str, Any]:
        """Delete a resource, then remove its asset file unless another record shares it.

        Raises:
            ResourceNotFoundError: If it doesn't exist
        """
        document = await self.store.delete_by_id(self.collection, resource_id)
        if document is None:
            raise ResourceNotFoundError(f"{self.kind.capitalize()} {resource_id} not found")

        if document.get(self.asset_field):
            await self._release_asset(document[self.asset_field])

        logger.info(f"Deleted {self.kind} {resource_id}")
        return serialize(document)


__all__ = [
    'ResourceManager', 'ResourceError', 'ResourceNotFoundError',
    'ResourceValidationError', 'serialize'
]
