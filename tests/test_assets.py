# tests/test_assets.py

"""Tests for the blob-backed image store, using mocked Azure clients."""

import base64
from unittest.mock import MagicMock

import pytest
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

from catalog_service import assets
from catalog_service.assets import AzureBlobAssetStore, decode_image
from catalog_service.errors import AssetStoreError, ValidationError

PNG_BYTES = b"\x89PNG\r\n\x1a\n"
PNG_DATA_URI = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()


@pytest.fixture
def container():
    container = MagicMock()
    blob = container.get_blob_client.return_value
    blob.url = "https://account.blob.core.windows.net/product-images/products/x.png"
    return container


def test_decode_data_uri():
    payload = decode_image(PNG_DATA_URI)
    assert payload.data == PNG_BYTES
    assert payload.content_type == "image/png"
    assert payload.extension == ".png"
    assert payload.source_url is None


def test_decode_bare_base64():
    payload = decode_image(base64.b64encode(PNG_BYTES).decode())
    assert payload.data == PNG_BYTES
    assert payload.content_type == "application/octet-stream"


def test_decode_url():
    payload = decode_image("https://cdn.example.test/img/mango.JPG?size=large")
    assert payload.source_url == "https://cdn.example.test/img/mango.JPG?size=large"
    assert payload.data is None
    assert payload.extension == ".jpg"


@pytest.mark.parametrize("image", ["not base64!", "data:image/png,rawbytes", ""])
def test_decode_rejects_garbage(image):
    with pytest.raises(ValidationError):
        decode_image(image)


def test_upload_bytes(container):
    store = AzureBlobAssetStore(container)

    result = store.upload(PNG_DATA_URI, folder="products")

    public_id = container.get_blob_client.call_args.args[0]
    assert public_id.startswith("products/")
    assert public_id.endswith(".png")
    assert result.public_id == public_id
    assert result.url == container.get_blob_client.return_value.url

    blob = container.get_blob_client.return_value
    blob.upload_blob.assert_called_once()
    args, kwargs = blob.upload_blob.call_args
    assert args[0] == PNG_BYTES
    assert kwargs["overwrite"] is True
    assert kwargs["content_settings"].content_type == "image/png"


def test_upload_gives_each_image_its_own_id(container):
    store = AzureBlobAssetStore(container)
    first = store.upload(PNG_DATA_URI, folder="products")
    second = store.upload(PNG_DATA_URI, folder="products")
    assert first.public_id != second.public_id


def test_upload_from_url(container):
    store = AzureBlobAssetStore(container)

    store.upload("https://cdn.example.test/mango.png", folder="products")

    blob = container.get_blob_client.return_value
    blob.upload_blob_from_url.assert_called_once_with(
        "https://cdn.example.test/mango.png", overwrite=True
    )
    blob.upload_blob.assert_not_called()


def test_upload_failure_is_wrapped(container):
    container.get_blob_client.return_value.upload_blob.side_effect = HttpResponseError(
        message="quota exceeded"
    )
    store = AzureBlobAssetStore(container)

    with pytest.raises(AssetStoreError):
        store.upload(PNG_DATA_URI, folder="products")


def test_destroy(container):
    AzureBlobAssetStore(container).destroy("products/x.png")
    container.delete_blob.assert_called_once_with(
        "products/x.png", delete_snapshots="include"
    )


def test_destroy_missing_blob_is_not_an_error(container):
    container.delete_blob.side_effect = ResourceNotFoundError(message="gone")
    AzureBlobAssetStore(container).destroy("products/x.png")


def test_destroy_failure_is_wrapped(container):
    container.delete_blob.side_effect = HttpResponseError(message="forbidden")
    with pytest.raises(AssetStoreError):
        AzureBlobAssetStore(container).destroy("products/x.png")


def test_unconfigured_store_fails_on_use(monkeypatch):
    monkeypatch.setattr(assets, "AZURE_STORAGE_CONNECTION_STRING", None)
    monkeypatch.setattr(assets, "AZURE_STORAGE_ACCOUNT_NAME", None)
    monkeypatch.setattr(assets, "AZURE_STORAGE_ACCOUNT_KEY", None)

    with pytest.raises(AssetStoreError):
        AzureBlobAssetStore().destroy("products/x.png")
