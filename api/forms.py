"""Reading resource fields and the optional image from a request body.

Resource routes accept either a JSON object or a multipart/urlencoded form.
In a form, the file goes in the ``image`` field and every other non-empty
field is a resource field.
"""

from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import HTTPException, Request, status
from starlette.datastructures import FormData, UploadFile
from starlette.formparsers import FormParser, MultiPartException, MultiPartParser

from assets import AssetRef, AssetStore

IMAGE_FIELD = 'image'
# Room for the non-file fields and multipart boundaries on top of the file itself
FORM_OVERHEAD = 64 * 1024


class Payload:
    """Parsed request body: resource fields plus the uploaded image, if any."""

    def __init__(self, fields: Dict[str, Any], image: Optional[UploadFile] = None,
                 form: Optional[FormData] = None):
        self.fields = fields
        self.image = image
        self._form = form

    async def close(self) -> None:
        if self._form is not None:
            await self._form.close()


def _body_limit(assets: AssetStore) -> int:
    return assets.max_bytes + FORM_OVERHEAD


class BodyTooLargeError(MultiPartException):
    """Raised mid-parse when the body passes the upload limit.

    Subclassing MultiPartException lets the parser close the files it has spooled so far.
    """


def _too_large(assets: AssetStore) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail=f"Request body exceeds the {assets.max_bytes} byte upload limit"
    )


def _check_declared_length(request: Request, assets: AssetStore) -> None:
    declared = request.headers.get('content-length')
    if declared and declared.isdigit() and int(declared) > _body_limit(assets):
        raise _too_large(assets)


async def _bounded_stream(request: Request, assets: AssetStore) -> AsyncGenerator[bytes, None]:
    """Yield the request body, failing as soon as it grows past the upload limit.

    Chunked bodies carry no Content-Length, so the limit is enforced on the bytes actually received.
    """
    limit = _body_limit(assets)
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise BodyTooLargeError(f"Request body exceeds {limit} bytes")
        yield chunk


async def read_payload(request: Request, assets: AssetStore) -> Payload:
    """Parse the body of a create/update request.

    Raises:
        HTTPException: 400 for malformed bodies, 413 when the declared or received length is over the limit
    """
    content_type = request.headers.get('content-type', '').lower()

    if content_type.startswith('application/json'):
        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed JSON body")
        if not isinstance(body, dict):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Body must be a JSON object")
        body.pop(IMAGE_FIELD, None)
        return Payload(body)

    if content_type.startswith(('multipart/form-data', 'application/x-www-form-urlencoded')):
        _check_declared_length(request, assets)
        parser_class = MultiPartParser if content_type.startswith('multipart/form-data') else FormParser
        try:
            form = await parser_class(request.headers, _bounded_stream(request, assets)).parse()
        except BodyTooLargeError:
            raise _too_large(assets)
        except MultiPartException as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Malformed form body: {e.message}")
        fields: Dict[str, Any] = {}
        image = None
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                # Browsers send an empty, nameless part when no file is chosen
                if key == IMAGE_FIELD and value.filename:
                    image = value
                continue
            if key != IMAGE_FIELD and value != '':
                fields[key] = value
        return Payload(fields, image, form)

    if not content_type and not await request.body():
        return Payload({})

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"Unsupported content type: {content_type or '(none)'}"
    )


async def ingest_image(request: Request, assets: AssetStore, image: UploadFile) -> AssetRef:
    """Store an uploaded image and return its reference."""
    return await assets.ingest(
        image,
        image.filename,
        image.content_type,
        base_url=str(request.base_url),
        declared_size=image.size
    )
