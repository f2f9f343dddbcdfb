"""
Proof-of-payment and receipt uploads to Azure Blob Storage.

Uploads happen before the billing call that references them; the SDK's
retry policy bounds the attempts.
"""
import logging
import os
import uuid

from azure.storage.blob import BlobServiceClient

from config import AZURE_STORAGE_ACCOUNT, AZURE_STORAGE_KEY, BLOB_MAX_RETRIES

logger = logging.getLogger(__name__)

_blob_service = None


def _service() -> BlobServiceClient:
     global _blob_service
     if _blob_service is None:
          _blob_service = BlobServiceClient.from_connection_string(
               f"DefaultEndpointsProtocol=https;"
               f"AccountName={AZURE_STORAGE_ACCOUNT};"
               f"AccountKey={AZURE_STORAGE_KEY};"
               f"EndpointSuffix=core.windows.net",
               retry_total=BLOB_MAX_RETRIES,
          )
     return _blob_service


def upload_artifact(file, container: str, owner_id: str | int) -> str:
     """Store an UploadFile under <owner_id>/<uuid><ext> and return its URL."""
     ext = os.path.splitext(file.filename or "")[1]
     blob_name = f"{owner_id}/{uuid.uuid4()}{ext}"
     blob_client = _service().get_blob_client(container=container, blob=blob_name)
     blob_client.upload_blob(file.file, overwrite=True)
     logger.info("Uploaded %s to %s/%s", file.filename, container, blob_name)
     return f"https://{AZURE_STORAGE_ACCOUNT}.blob.core.windows.net/{container}/{blob_name}"


def delete_artifact(blob_url: str) -> None:
     """
     Deletes a file from Azure Blob Storage using its full URL
     """
     path = blob_url.split(".blob.core.windows.net/", 1)[-1]
     container, blob_name = path.split("/", 1)
     _service().get_blob_client(container=container, blob=blob_name).delete_blob()
