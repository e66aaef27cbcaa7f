"""Photos module: titled images with a server-assigned upload time."""

import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from resources import (
    ResourceManager, ResourceError, ResourceNotFoundError, ResourceValidationError
)

logger = logging.getLogger(__name__)


class PhotoFields(BaseModel):
    model_config = ConfigDict(extra='forbid', str_strip_whitespace=True)

    title: Optional[str] = None
    description: Optional[str] = None


class PhotoManager(ResourceManager):
    """Manager for photos. Creation requires a title and an uploaded image."""

    kind = 'photo'
    collection = 'photos'
    mutable_fields = tuple(PhotoFields.model_fields)
    required_fields = ('title',)
    search_fields = ('title', 'description')
    asset_required = True
    created_field = 'uploaded_at'
    updated_field = None

    def clean(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        try:
            parsed = PhotoFields(**fields)
        except ValidationError as e:
            raise ResourceValidationError(
                f"Invalid photo fields: {'; '.join(error['msg'] for error in e.errors())}"
            )
        return super().clean(parsed.model_dump(exclude_none=True))


__all__ = [
    'PhotoManager', 'PhotoFields',
    'ResourceError', 'ResourceNotFoundError', 'ResourceValidationError'
]
