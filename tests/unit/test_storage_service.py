"""
Unit tests for downloading remote images into storage.
"""

from unittest.mock import patch

import httpx
import pytest

from tipline.services.storage_service import MAX_IMAGE_BYTES, storage_service

AVATAR_URL = "https://images.example.com/avatar"

_real_async_client = httpx.AsyncClient


def _serving(handler):
    """Patch httpx.AsyncClient so downloads are answered by `handler`."""
    return patch(
        "httpx.AsyncClient",
        side_effect=lambda **kwargs: _real_async_client(
            transport=httpx.MockTransport(handler), **kwargs
        ),
    )


class TestSaveFromUrl:
    @pytest.mark.asyncio
    async def test_stores_image_with_matching_extension(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, content=b"\x89PNG fake", headers={"content-type": "image/png"}
            )

        with _serving(handler):
            filename = await storage_service.save_from_url(AVATAR_URL)

        assert filename.endswith(".png")
        assert (storage_service.upload_dir / filename).read_bytes() == b"\x89PNG fake"
        await storage_service.remove(filename)

    @pytest.mark.asyncio
    async def test_rejects_non_image_content(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, content=b"<html></html>", headers={"content-type": "text/html"}
            )

        with _serving(handler):
            with pytest.raises(ValueError, match="Unsupported image type"):
                await storage_service.save_from_url(AVATAR_URL)

    @pytest.mark.asyncio
    async def test_rejects_oversized_image(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                content=b"x" * (MAX_IMAGE_BYTES + 1),
                headers={"content-type": "image/jpeg"},
            )

        with _serving(handler):
            with pytest.raises(ValueError, match="larger than 5 MB"):
                await storage_service.save_from_url(AVATAR_URL)

    @pytest.mark.asyncio
    async def test_failed_download(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        with _serving(handler):
            with pytest.raises(ValueError, match="Failed to download"):
                await storage_service.save_from_url(AVATAR_URL)
