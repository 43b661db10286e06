import asyncio
import os
import re
import uuid
from dataclasses import dataclass
from pathlib import Path

import aiobotocore.session
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import Config
from app.core.errors import StorageFailure
from app.core.logging_config import logger


@dataclass
class RawFile:
    """An uploaded file as received from the HTTP layer.

    Bytes live either in memory (`content`) or in a temporary file spooled
    to disk (`temp_path`); `discard()` removes the temporary copy.
    """
    name: str
    mime_type: str
    size: int
    content: bytes | None = None
    temp_path: Path | None = None

    def read(self) -> bytes:
        if self.content is not None:
            return self.content
        if self.temp_path is not None:
            return self.temp_path.read_bytes()
        return b""

    def discard(self) -> None:
        if self.temp_path is not None and self.temp_path.exists():
            try:
                self.temp_path.unlink()
            except OSError as e:
                logger.warning(f"Could not delete temporary upload {self.temp_path}: {e}")
        self.temp_path = None


@dataclass
class StoredDocument:
    original_name: str
    storage_ref: str
    url: str
    size: int
    mime_type: str


class DocumentStore:
    """Contract for the object storage used for tender documents."""

    async def store(self, upload: RawFile) -> StoredDocument:
        raise NotImplementedError

    async def remove(self, storage_ref: str) -> None:
        raise NotImplementedError


def safe_object_name(file_name: str) -> str:
    name = os.path.basename(file_name or "").strip()
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", name)
    return name or "document"


class S3DocumentStore(DocumentStore):
    """Stores documents in an S3-compatible bucket. No retries here; callers decide."""

    def __init__(
            self,
            bucket: str,
            endpoint_url: str | None = None,
            region: str | None = None,
            access_key: str | None = None,
            secret_key: str | None = None,
            public_url: str | None = None,
            session=None,
    ):
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.region = region
        self.access_key = access_key
        self.secret_key = secret_key
        self.public_url = (public_url or endpoint_url or "").rstrip("/")
        self.session = session or aiobotocore.session.get_session()

    @classmethod
    def from_settings(cls, settings: Config) -> "S3DocumentStore":
        return cls(
            bucket=settings.S3_BUCKET_NAME,
            endpoint_url=settings.S3_ENDPOINT_URL,
            region=settings.S3_REGION,
            access_key=settings.S3_ACCESS_KEY,
            secret_key=settings.S3_SECRET_KEY,
            public_url=settings.S3_PUBLIC_URL,
        )

    def _client(self):
        return self.session.create_client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
            region_name=self.region
        )

    def url_for(self, key: str) -> str:
        if self.public_url:
            return f"{self.public_url}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    async def store(self, upload: RawFile) -> StoredDocument:
        s3_key = f"tenders/{uuid.uuid4().hex}/{safe_object_name(upload.name)}"
        logger.info(f"Uploading {upload.name} ({upload.size} bytes) to {s3_key}")
        try:
            body = await asyncio.get_running_loop().run_in_executor(None, upload.read)
            async with self._client() as s3_client:
                await s3_client.put_object(
                    Bucket=self.bucket,
                    Key=s3_key,
                    Body=body,
                    ContentType=upload.mime_type
                )
        except (BotoCoreError, ClientError, OSError) as e:
            logger.error(f"Error uploading {upload.name}: {str(e)}")
            raise StorageFailure(f"Failed to store {upload.name}", storage_ref=s3_key) from e
        finally:
            upload.discard()

        url = self.url_for(s3_key)
        logger.info(f"Successfully uploaded {upload.name}: {url}")
        return StoredDocument(
            original_name=upload.name,
            storage_ref=s3_key,
            url=url,
            size=upload.size,
            mime_type=upload.mime_type,
        )

    async def remove(self, storage_ref: str) -> None:
        try:
            async with self._client() as s3_client:
                await s3_client.delete_object(Bucket=self.bucket, Key=storage_ref)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error removing {storage_ref}: {str(e)}")
            raise StorageFailure(f"Failed to remove {storage_ref}", storage_ref=storage_ref) from e
        logger.info(f"Removed {storage_ref} from storage")
