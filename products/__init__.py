"""Products module for managing catalog products.

This module provides functionality for:
- Creating and updating products with an optional image
- Searching products by name and description
- Deleting products together with their image file
"""

import logging
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from resources import (
    ResourceManager, ResourceError, ResourceNotFoundError, ResourceValidationError
)

logger = logging.getLogger(__name__)


class ProductStatus(str, Enum):
    ACTIVE = "active"
    DRAFT = "draft"
    DISCONTINUED = "discontinued"


class ProductFields(BaseModel):
    """Caller-settable product fields. Every field is optional here;
    required-ness is checked by the manager on create."""
    model_config = ConfigDict(extra='forbid', use_enum_values=True, str_strip_whitespace=True)

    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, max_length=8)
    stock: Optional[int] = Field(None, ge=0)
    category: Optional[str] = None
    sku: Optional[str] = None
    brand: Optional[str] = None
    status: Optional[ProductStatus] = None
    image_url: Optional[str] = None


class ProductManager(ResourceManager):
    """Manager class for handling product operations."""

    kind = 'product'
    collection = 'products'
    mutable_fields = tuple(ProductFields.model_fields)
    required_fields = ('name',)
    search_fields = ('name', 'description')

    def defaults(self) -> Dict[str, Any]:
        return {
            'currency': 'USD',
            'stock': 0,
            'status': ProductStatus.ACTIVE.value
        }

    def clean(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        try:
            parsed = ProductFields(**fields)
        except ValidationError as e:
            problems = '; '.join(
                f"{'.'.join(str(p) for p in error['loc'])}: {error['msg']}" for error in e.errors()
            )
            raise ResourceValidationError(f"Invalid product fields: {problems}")
        if parsed.currency:
            parsed.currency = parsed.currency.upper()
        return super().clean(parsed.model_dump(exclude_none=True))


__all__ = [
    'ProductManager', 'ProductFields', 'ProductStatus',
    'ResourceError', 'ResourceNotFoundError', 'ResourceValidationError'
]
