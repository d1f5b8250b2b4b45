# catalog_service/assets.py

"""
Hosted image storage for product pictures.
Images are kept in an Azure Blob Storage container; the service only ever
needs to upload one and destroy one by its identifier.
"""
import base64
import binascii
import logging
import mimetypes
import os
import re
import uuid
from dataclasses import dataclass
from typing import Optional

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContainerClient, ContentSettings

from .errors import AssetStoreError, ValidationError

logger = logging.getLogger(__name__)

# Load environment variables
AZURE_STORAGE_ACCOUNT_NAME = os.getenv("AZURE_STORAGE_ACCOUNT_NAME")
AZURE_STORAGE_ACCOUNT_KEY = os.getenv("AZURE_STORAGE_ACCOUNT_KEY")
AZURE_STORAGE_CONNECTION_STRING = os.getenv("AZURE_STORAGE_CONNECTION_STRING")
AZURE_STORAGE_CONTAINER_NAME = os.getenv(
    "AZURE_STORAGE_CONTAINER_NAME", "product-images"
)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

_DATA_URI = re.compile(r"^data:(?P<content_type>[\w.+-]+/[\w.+-]+)?(;[^,]*)?;base64,(?P<data>.*)$", re.DOTALL)


@dataclass
class UploadResult:
    public_id: str
    url: str


@dataclass
class ImagePayload:
    """Decoded image input: either raw bytes or a remote URL to copy from."""

    data: Optional[bytes] = None
    source_url: Optional[str] = None
    content_type: str = DEFAULT_CONTENT_TYPE

    @property
    def extension(self) -> str:
        if self.source_url:
            path = self.source_url.split("?", 1)[0]
            _, dot, ext = path.rpartition("/")[2].rpartition(".")
            return f".{ext.lower()}" if dot and ext else ""
        return mimetypes.guess_extension(self.content_type) or ""


def decode_image(image: str) -> ImagePayload:
    """
    Turns the `image` field of a request into something uploadable.
    Accepts a `data:` URI, an http(s) URL, or a bare base64 string.
    """
    image = image.strip()
    if image.startswith(("http://", "https://")):
        return ImagePayload(source_url=image)

    content_type = DEFAULT_CONTENT_TYPE
    encoded = image
    match = _DATA_URI.match(image)
    if match:
        content_type = match.group("content_type") or DEFAULT_CONTENT_TYPE
        encoded = match.group("data")
    elif image.startswith("data:"):
        raise ValidationError("Image data URI must be base64 encoded!")

    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Image must be a data URI, a base64 string or a URL!")
    if not data:
        raise ValidationError("Image must not be empty!")
    return ImagePayload(data=data, content_type=content_type)


class AzureBlobAssetStore:
    """
    Uploads and destroys product images in a blob container.
    The container client is created on first use so the service can start
    without storage credentials.
    """

    def __init__(self, container_client: Optional[ContainerClient] = None):
        self._container_client = container_client

    @property
    def container(self) -> ContainerClient:
        if self._container_client is None:
            self._container_client = self._connect()
        return self._container_client

    @staticmethod
    def _connect() -> ContainerClient:
        if AZURE_STORAGE_CONNECTION_STRING:
            service = BlobServiceClient.from_connection_string(
                AZURE_STORAGE_CONNECTION_STRING
            )
        elif AZURE_STORAGE_ACCOUNT_NAME and AZURE_STORAGE_ACCOUNT_KEY:
            service = BlobServiceClient(
                account_url=f"https://{AZURE_STORAGE_ACCOUNT_NAME}.blob.core.windows.net",
                credential=AZURE_STORAGE_ACCOUNT_KEY,
            )
        else:
            raise AssetStoreError("Azure storage credentials are not configured.")
        return service.get_container_client(AZURE_STORAGE_CONTAINER_NAME)

    def upload(self, image: str, folder: str) -> UploadResult:
        payload = decode_image(image)
        public_id = f"{folder}/{uuid.uuid4().hex}{payload.extension}"
        try:
            blob = self.container.get_blob_client(public_id)
            if payload.source_url:
                blob.upload_blob_from_url(payload.source_url, overwrite=True)
            else:
                blob.upload_blob(
                    payload.data,
                    overwrite=True,
                    content_settings=ContentSettings(content_type=payload.content_type),
                )
        except AzureError as e:
            raise AssetStoreError(f"Upload of '{public_id}' failed: {e}") from e
        logger.info(f"Uploaded image '{public_id}'.")
        return UploadResult(public_id=public_id, url=blob.url)

    def destroy(self, public_id: str) -> None:
        try:
            self.container.delete_blob(public_id, delete_snapshots="include")
        except ResourceNotFoundError:
            logger.warning(f"Image '{public_id}' was already gone from storage.")
            return
        except AzureError as e:
            raise AssetStoreError(f"Destroy of '{public_id}' failed: {e}") from e
        logger.info(f"Destroyed image '{public_id}'.")


_asset_store = AzureBlobAssetStore()


def get_asset_store() -> AzureBlobAssetStore:
    """Dependency providing the shared asset store to FastAPI endpoints."""
    return _asset_store
