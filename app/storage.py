# app/storage.py

import logging
from datetime import datetime, timedelta, timezone

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import BlobSasPermissions, BlobServiceClient, ContentSettings, generate_blob_sas

from app.config import (
    DOWNLOAD_URL_TTL_MINUTES,
    STORAGE_CONNECTION_STRING,
    STORAGE_CONTAINER,
    UPLOAD_URL_TTL_DAYS,
)
from app.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)

_service_client = None


def _get_service_client() -> BlobServiceClient:
    global _service_client
    if _service_client is None:
        if not STORAGE_CONNECTION_STRING:
            raise ServiceUnavailableError("File storage is not configured")
        _service_client = BlobServiceClient.from_connection_string(STORAGE_CONNECTION_STRING)
    return _service_client


def signed_url(path: str, expires_in: timedelta) -> str:
    """Read-only SAS URL for the blob at `path`."""
    client = _get_service_client()
    blob = client.get_blob_client(container=STORAGE_CONTAINER, blob=path)
    token = generate_blob_sas(
        account_name=client.account_name,
        container_name=STORAGE_CONTAINER,
        blob_name=path,
        account_key=client.credential.account_key,
        permission=BlobSasPermissions(read=True),
        expiry=datetime.now(timezone.utc) + expires_in,
    )
    return f"{blob.url}?{token}"


def upload_file(path: str, data: bytes, content_type: str) -> str:
    """
    Stores `data` under `path` and returns a long-lived read URL for it.
    """
    try:
        blob = _get_service_client().get_blob_client(container=STORAGE_CONTAINER, blob=path)
        blob.upload_blob(data, overwrite=True, content_settings=ContentSettings(content_type=content_type))
        logger.info("Uploaded '%s' (%s bytes)", path, len(data))
        return signed_url(path, timedelta(days=UPLOAD_URL_TTL_DAYS))
    except AzureError as e:
        logger.exception("Error uploading '%s': %s", path, str(e))
        raise ServiceUnavailableError("File storage temporarily unavailable")


def download_url(path: str) -> str:
    """Short-lived read URL, used for finished exports."""
    try:
        return signed_url(path, timedelta(minutes=DOWNLOAD_URL_TTL_MINUTES))
    except AzureError as e:
        logger.exception("Error signing '%s': %s", path, str(e))
        raise ServiceUnavailableError("File storage temporarily unavailable")


def delete_file(path: str) -> None:
    try:
        _get_service_client().get_blob_client(container=STORAGE_CONTAINER, blob=path).delete_blob()
        logger.info("Deleted '%s'", path)
    except ResourceNotFoundError:
        logger.warning("Blob '%s' was already gone", path)
    except AzureError as e:
        logger.exception("Error deleting '%s': %s", path, str(e))
        raise ServiceUnavailableError("File storage temporarily unavailable")
