"""
Image storage for avatars and prediction images.

Files are stored under a random name either on local disk (served from
/uploads) or in an S3 bucket. Models keep only the stored filename; the
public URL is built on the way out.
"""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
import boto3
import httpx
from botocore.exceptions import ClientError
from fastapi import UploadFile

from tipline.config import get_settings

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}
MAX_IMAGE_BYTES = 5 * 1024 * 1024


class StorageService:
    """
    Stores uploaded images locally or in S3 depending on settings.

    Handles:
    - Saving multipart uploads and downloaded images
    - Removing replaced or orphaned files
    - Building public URLs for stored filenames
    """

    def __init__(self):
        self.settings = get_settings()
        self._s3_client = None

    @property
    def upload_dir(self) -> Path:
        return Path(self.settings.upload_dir)

    @property
    def uses_s3(self) -> bool:
        return self.settings.storage_backend.lower() == "s3"

    def _get_s3_client(self):
        """Get or create S3 client."""
        if self._s3_client is None:
            self._s3_client = boto3.client(
                "s3",
                region_name=self.settings.aws_region,
                aws_access_key_id=self.settings.aws_access_key_id or None,
                aws_secret_access_key=self.settings.aws_secret_access_key or None,
            )
        return self._s3_client

    async def _write(self, data: bytes, filename: str, content_type: str) -> None:
        if self.uses_s3:
            s3 = self._get_s3_client()
            # boto3 is blocking, run it in the default executor
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(
                None,
                lambda: s3.put_object(
                    Bucket=self.settings.s3_bucket,
                    Key=filename,
                    Body=data,
                    ContentType=content_type,
                ),
            )
            return

        self.upload_dir.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(self.upload_dir / filename, "wb") as f:
            await f.write(data)

    async def save_upload(self, upload: UploadFile) -> str:
        """
        Validate and store an uploaded image.

        Args:
            upload: Multipart file from the request.

        Returns:
            Stored filename.

        Raises:
            ValueError: If the file is not a supported image or is too large.
        """
        extension = ALLOWED_IMAGE_TYPES.get(upload.content_type or "")
        if extension is None:
            raise ValueError(
                f"Unsupported image type. Allowed: {', '.join(sorted(ALLOWED_IMAGE_TYPES))}"
            )

        data = await upload.read()
        if len(data) > MAX_IMAGE_BYTES:
            raise ValueError("Image is larger than 5 MB")

        filename = f"{uuid.uuid4()}{extension}"
        await self._write(data, filename, upload.content_type)
        logger.info(f"Stored upload {upload.filename!r} as {filename}")
        return filename

    async def save_from_url(self, url: str) -> str:
        """
        Download a remote image (e.g. a social profile picture) and store it.

        The same type and size limits as uploads apply.

        Raises:
            ValueError: If the download fails or is not an acceptable image.
        """
        try:
            async with httpx.AsyncClient(timeout=10.0, follow_redirects=True) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()

                    header = response.headers.get("content-type", "")
                    content_type = header.split(";")[0].strip().lower()
                    extension = ALLOWED_IMAGE_TYPES.get(content_type)
                    if extension is None:
                        raise ValueError(f"Unsupported image type: {content_type or 'unknown'}")

                    content_length = response.headers.get("content-length")
                    if content_length and int(content_length) > MAX_IMAGE_BYTES:
                        raise ValueError("Image is larger than 5 MB")

                    data = bytearray()
                    async for chunk in response.aiter_bytes():
                        data.extend(chunk)
                        if len(data) > MAX_IMAGE_BYTES:
                            raise ValueError("Image is larger than 5 MB")
        except httpx.HTTPError as e:
            logger.error(f"Failed to download image {url}: {e}")
            raise ValueError("Failed to download and save image")

        filename = f"{uuid.uuid4()}{extension}"
        await self._write(bytes(data), filename, content_type)
        return filename

    async def remove(self, filename: Optional[str]) -> None:
        """Delete a stored file; missing files are ignored."""
        if not filename:
            return

        if self.uses_s3:
            s3 = self._get_s3_client()
            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(
                    None,
                    lambda: s3.delete_object(Bucket=self.settings.s3_bucket, Key=filename),
                )
            except ClientError as e:
                logger.warning(f"Failed to delete S3 object {filename}: {e}")
            return

        path = self.upload_dir / Path(filename).name
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug(f"File already removed: {filename}")
        except OSError as e:
            logger.warning(f"Failed to delete {path}: {e}")

    def url_for(self, filename: Optional[str]) -> Optional[str]:
        """Public URL for a stored filename."""
        if not filename:
            return None
        if self.uses_s3:
            return (
                f"https://{self.settings.s3_bucket}.s3."
                f"{self.settings.aws_region}.amazonaws.com/{filename}"
            )
        return f"{self.settings.public_base_url.rstrip('/')}/uploads/{filename}"


# Global service instance
storage_service = StorageService()
