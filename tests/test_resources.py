"""Tests for the product and photo managers."""

import io

import pytest
import pytest_asyncio

from assets import AssetStore
from database import MemoryStore
from photos import PhotoManager
from products import ProductManager
from resources import ResourceNotFoundError, ResourceValidationError


class ByteStream:
    def __init__(self, data: bytes):
        self._buffer = io.BytesIO(data)

    async def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)


@pytest.fixture
def assets(tmp_path):
    return AssetStore(str(tmp_path), 1024, ['.png'], ['image/png'])


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def products(store, assets):
    return ProductManager(store, assets)


@pytest.fixture
def photos(store, assets):
    return PhotoManager(store, assets)


@pytest_asyncio.fixture
async def image(assets):
    """A stored PNG asset."""
    return await assets.ingest(ByteStream(b"png"), "pic.png", "image/png", base_url="http://testserver")


@pytest.mark.asyncio
async def test_create_product_applies_defaults(products):
    product = await products.create({'name': 'Lamp', 'price': '19.99', 'currency': 'eur'})

    assert product['name'] == 'Lamp'
    assert product['price'] == 19.99
    assert product['currency'] == 'EUR'
    assert product['stock'] == 0
    assert product['status'] == 'active'
    assert product['created_at'] == product['updated_at']
    assert 'image_url' not in product


@pytest.mark.asyncio
async def test_create_product_validation(products):
    with pytest.raises(ResourceValidationError):
        await products.create({'description': 'no name'})
    with pytest.raises(ResourceValidationError):
        await products.create({'name': 'Lamp', 'stock': -1})
    with pytest.raises(ResourceValidationError):
        await products.create({'name': 'Lamp', 'price': 'free'})
    with pytest.raises(ResourceValidationError):
        await products.create({'name': 'Lamp', 'owner': 'me'})
    with pytest.raises(ResourceValidationError):
        await products.create({'name': 'Lamp', 'status': 'sold'})


@pytest.mark.asyncio
async def test_create_product_with_image(products, image):
    product = await products.create({'name': 'Lamp'}, image)
    assert product['image_url'] == image.url


@pytest.mark.asyncio
async def test_image_url_must_reference_stored_asset(products, image):
    product = await products.create({'name': 'Lamp', 'image_url': image.url}, base_url="http://testserver/")
    assert product['image_url'] == image.url

    with pytest.raises(ResourceValidationError):
        await products.create({'name': 'Lamp', 'image_url': 'http://testserver/uploads/missing.png'})


@pytest.mark.asyncio
async def test_list_products_search(products):
    await products.create({'name': 'Desk Lamp'})
    await products.create({'name': 'Chair', 'description': 'pairs with a lamp'})
    await products.create({'name': 'Table'})

    assert [p['name'] for p in await products.list('LAMP')] == ['Desk Lamp', 'Chair']
    assert len(await products.list()) == 3
    assert len(await products.list('   ')) == 3


@pytest.mark.asyncio
async def test_update_product(products):
    product = await products.create({'name': 'Lamp', 'stock': 1})

    updated = await products.update(product['id'], {'stock': 4})

    assert updated['stock'] == 4
    assert updated['name'] == 'Lamp'
    assert updated['updated_at'] >= product['updated_at']

    with pytest.raises(ResourceValidationError):
        await products.update(product['id'], {'name': ''})
    with pytest.raises(ResourceNotFoundError):
        await products.update('missing', {'stock': 1})


@pytest.mark.asyncio
async def test_update_keeps_replaced_image_by_default(products, assets, image):
    product = await products.create({'name': 'Lamp'}, image)
    replacement = await assets.ingest(ByteStream(b"new"), "new.png", "image/png")

    updated = await products.update(product['id'], {}, replacement)

    assert updated['image_url'] == replacement.url
    assert assets.exists(image.url)


@pytest.mark.asyncio
async def test_update_can_remove_replaced_image(store, assets, image):
    products = ProductManager(store, assets, delete_replaced_assets=True)
    product = await products.create({'name': 'Lamp'}, image)
    replacement = await assets.ingest(ByteStream(b"new"), "new.png", "image/png")

    await products.update(product['id'], {}, replacement)

    assert not assets.exists(image.url)
    assert assets.exists(replacement.url)


@pytest.mark.asyncio
async def test_supplied_image_url_is_rebuilt_on_our_host(products, image):
    product = await products.create(
        {'name': 'Lamp', 'image_url': f"http://evil.example/uploads/{image.name}"},
        base_url="http://testserver/"
    )

    assert product['image_url'] == f"http://testserver/uploads/{image.name}"


@pytest.mark.asyncio
async def test_delete_keeps_image_shared_with_a_photo(products, photos, assets, image):
    photo = await photos.create({'title': 'Sunset'}, image)
    product = await products.create({'name': 'Lamp', 'image_url': photo['image_url']})

    await products.delete(product['id'])

    assert assets.exists(image.url)

    # Last reference gone: the file goes too
    await photos.delete(photo['id'])
    assert not assets.exists(image.url)


@pytest.mark.asyncio
async def test_delete_keeps_image_shared_with_another_product(products, assets, image):
    first = await products.create({'name': 'Lamp'}, image)
    second = await products.create({'name': 'Shade', 'image_url': image.url})

    await products.delete(first['id'])
    assert assets.exists(image.url)

    await products.delete(second['id'])
    assert not assets.exists(image.url)


@pytest.mark.asyncio
async def test_update_keeps_replaced_image_still_in_use(store, assets, image):
    products = ProductManager(store, assets, delete_replaced_assets=True)
    photos = PhotoManager(store, assets)
    await photos.create({'title': 'Sunset'}, image)
    product = await products.create({'name': 'Lamp', 'image_url': image.url})
    replacement = await assets.ingest(ByteStream(b"new"), "new.png", "image/png")

    await products.update(product['id'], {}, replacement)

    assert assets.exists(image.url)


@pytest.mark.asyncio
async def test_delete_product_removes_image(products, assets, image):
    product = await products.create({'name': 'Lamp'}, image)

    deleted = await products.delete(product['id'])

    assert deleted['id'] == product['id']
    assert not assets.exists(image.url)
    with pytest.raises(ResourceNotFoundError):
        await products.get(product['id'])
    with pytest.raises(ResourceNotFoundError):
        await products.delete(product['id'])


@pytest.mark.asyncio
async def test_delete_succeeds_when_image_already_gone(products, assets, image):
    product = await products.create({'name': 'Lamp'}, image)
    image.path.unlink()

    deleted = await products.delete(product['id'])

    assert deleted['id'] == product['id']


@pytest.mark.asyncio
async def test_photo_requires_title_and_image(photos, image):
    with pytest.raises(ResourceValidationError):
        await photos.create({'title': 'Sunset'})
    with pytest.raises(ResourceValidationError):
        await photos.create({'description': 'untitled'}, image)


@pytest.mark.asyncio
async def test_create_photo(photos, image):
    photo = await photos.create({'title': ' Sunset ', 'description': 'beach'}, image)

    assert photo['title'] == 'Sunset'
    assert photo['image_url'] == image.url
    assert 'uploaded_at' in photo
    assert 'updated_at' not in photo
    assert (await photos.get(photo['id']))['title'] == 'Sunset'
    assert [p['id'] for p in await photos.list('sun')] == [photo['id']]
