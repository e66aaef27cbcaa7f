"""Dependencies handing the per-process services to route handlers."""

from fastapi import Request

from assets import AssetStore
from auth import AuthManager
from notifications import NotificationBroadcaster
from photos import PhotoManager
from products import ProductManager


def get_auth(request: Request) -> AuthManager:
    return request.app.state.auth


def get_assets(request: Request) -> AssetStore:
    return request.app.state.assets


def get_products(request: Request) -> ProductManager:
    return request.app.state.products


def get_photos(request: Request) -> PhotoManager:
    return request.app.state.photos


def get_broadcaster(request: Request) -> NotificationBroadcaster:
    return request.app.state.broadcaster
