"""Photos API endpoints."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from assets import AssetError, AssetStore
from auth import get_current_user, get_reader
from database import StoreUnavailableError
from notifications import NotificationBroadcaster
from photos import PhotoManager, ResourceError
from ..deps import get_assets, get_broadcaster, get_photos
from ..errors import http_error
from ..forms import ingest_image, read_payload

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/photos",
    tags=["Photos"]
)


@router.get("")
async def list_photos(
    search: Optional[str] = Query(None),
    manager: PhotoManager = Depends(get_photos),
    reader: Optional[Dict[str, Any]] = Depends(get_reader)
) -> List[Dict[str, Any]]:
    try:
        return await manager.list(search)
    except StoreUnavailableError as e:
        raise http_error(e)


@router.get("/{photo_id}")
async def get_photo(
    photo_id: str,
    manager: PhotoManager = Depends(get_photos),
    reader: Optional[Dict[str, Any]] = Depends(get_reader)
):
    try:
        return await manager.get(photo_id)
    except (ResourceError, StoreUnavailableError) as e:
        raise http_error(e)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_photo(
    request: Request,
    user: Dict[str, Any] = Depends(get_current_user),
    manager: PhotoManager = Depends(get_photos),
    assets: AssetStore = Depends(get_assets),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster)
):
    """Upload a photo. Form fields: ``title`` (required), ``description``, ``image`` (required)."""
    payload = await read_payload(request, assets)
    asset = None
    try:
        if payload.image is not None:
            asset = await ingest_image(request, assets, payload.image)
        photo = await manager.create(payload.fields, asset, base_url=str(request.base_url))
    except (AssetError, ResourceError, StoreUnavailableError) as e:
        if asset is not None:
            assets.remove(asset.url)
        raise http_error(e)
    finally:
        await payload.close()

    await broadcaster.on_resource_created('photo', photo)
    return photo


@router.delete("/{photo_id}")
async def delete_photo(
    photo_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    manager: PhotoManager = Depends(get_photos)
):
    """Delete a photo. A missing image file does not make the delete fail."""
    try:
        photo = await manager.delete(photo_id)
    except (ResourceError, StoreUnavailableError) as e:
        raise http_error(e)
    return {"message": "Photo deleted", "photo": photo}


# Export the router
__all__ = ['router']
