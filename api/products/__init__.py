"""Products API endpoints.

Reads are public unless ``public_catalog_reads`` is turned off; every
mutation requires a session token.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from assets import AssetError, AssetStore
from auth import get_current_user, get_reader
from database import StoreUnavailableError
from notifications import NotificationBroadcaster
from products import ProductManager, ResourceError
from ..deps import get_assets, get_broadcaster, get_products
from ..errors import http_error
from ..forms import ingest_image, read_payload

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/products",
    tags=["Products"]
)


@router.get("")
async def list_products(
    search: Optional[str] = Query(None),
    manager: ProductManager = Depends(get_products),
    reader: Optional[Dict[str, Any]] = Depends(get_reader)
) -> List[Dict[str, Any]]:
    """List products, optionally filtered by a case-insensitive substring of name or description."""
    try:
        return await manager.list(search)
    except StoreUnavailableError as e:
        raise http_error(e)


@router.get("/{product_id}")
async def get_product(
    product_id: str,
    manager: ProductManager = Depends(get_products),
    reader: Optional[Dict[str, Any]] = Depends(get_reader)
):
    """Get a product by ID."""
    try:
        return await manager.get(product_id)
    except (ResourceError, StoreUnavailableError) as e:
        raise http_error(e)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(
    request: Request,
    user: Dict[str, Any] = Depends(get_current_user),
    manager: ProductManager = Depends(get_products),
    assets: AssetStore = Depends(get_assets),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster)
):
    """Create a product from a JSON body or a form with an optional ``image`` file."""
    payload = await read_payload(request, assets)
    asset = None
    try:
        if payload.image is not None:
            asset = await ingest_image(request, assets, payload.image)
        product = await manager.create(payload.fields, asset, base_url=str(request.base_url))
    except (AssetError, ResourceError, StoreUnavailableError) as e:
        if asset is not None:
            assets.remove(asset.url)
        raise http_error(e)
    finally:
        await payload.close()

    logger.info(f"Product {product['id']} created by {user['user_id']}")
    await broadcaster.on_resource_created('product', product)
    return product


@router.put("/{product_id}")
async def update_product(
    product_id: str,
    request: Request,
    user: Dict[str, Any] = Depends(get_current_user),
    manager: ProductManager = Depends(get_products),
    assets: AssetStore = Depends(get_assets)
):
    """Update the supplied fields of a product; a new ``image`` replaces the old reference."""
    payload = await read_payload(request, assets)
    asset = None
    try:
        if payload.image is not None:
            asset = await ingest_image(request, assets, payload.image)
        return await manager.update(product_id, payload.fields, asset, base_url=str(request.base_url))
    except (AssetError, ResourceError, StoreUnavailableError) as e:
        if asset is not None:
            assets.remove(asset.url)
        raise http_error(e)
    finally:
        await payload.close()


@router.delete("/{product_id}")
async def delete_product(
    product_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    manager: ProductManager = Depends(get_products)
):
    """Delete a product and its image file."""
    try:
        product = await manager.delete(product_id)
    except (ResourceError, StoreUnavailableError) as e:
        raise http_error(e)
    return {"message": "Product deleted", "product": product}


# Export the router
__all__ = ['router']
