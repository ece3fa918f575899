"""Media upload service."""
import logging
from pathlib import Path
from typing import Tuple, Union
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx

from surveysync.core.exceptions import UploadError
from surveysync.schemas.queue import MediaKind
from surveysync.schemas.submission import UploadResult
from surveysync.services.api_client import parse_error_envelope, to_absolute_url

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/uploads"

# extension → (upload filename, mime type), checked in order; first entry per kind is the default
_UPLOAD_NAMES = {
    MediaKind.IMAGE: [
        ((".jpg", ".jpeg"), ("photo.jpg", "image/jpeg")),
        ((".png",), ("photo.png", "image/png")),
        ((".webp",), ("photo.webp", "image/webp")),
        ((".heic", ".heif"), ("photo.heic", "image/heic")),
    ],
    MediaKind.AUDIO: [
        ((".m4a",), ("rec.m4a", "audio/m4a")),
        ((".mp3",), ("rec.mp3", "audio/mpeg")),
        ((".wav",), ("rec.wav", "audio/wav")),
        ((".caf",), ("rec.caf", "audio/x-caf")),
    ],
    MediaKind.VIDEO: [
        ((".mp4",), ("video.mp4", "video/mp4")),
        ((".mov",), ("video.mov", "video/quicktime")),
        ((".m4v",), ("video.m4v", "video/x-m4v")),
    ],
}


def infer_upload_meta(local_uri: str, kind: Union[MediaKind, str]) -> Tuple[str, str]:
    """Pick the multipart filename and MIME type from the extension, with a per-kind default."""
    candidates = _UPLOAD_NAMES[MediaKind(kind)]
    lower = (local_uri or "").lower()
    for extensions, meta in candidates:
        if lower.endswith(extensions):
            return meta
    return candidates[0][1]


def local_path(local_uri: str) -> Path:
    """Turn a ``file://`` URI or plain path into a filesystem path."""
    parsed = urlparse(local_uri)
    if parsed.scheme == "file":
        return Path(url2pathname(parsed.path))
    if parsed.scheme and len(parsed.scheme) > 1:
        raise UploadError(f"Unsupported local reference scheme: {parsed.scheme}", local_uri)
    return Path(local_uri)


class UploadService:
    """Uploads one local media file and returns its remote URL."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def upload(self, local_uri: str, kind: Union[MediaKind, str]) -> str:
        """
        Upload ``local_uri`` as multipart field ``file``.

        Returns the absolute remote URL.

        Raises:
            UploadError: unreadable file, network failure, error status,
                or a response without ``url``. Always safe to retry.
        """
        path = local_path(local_uri)
        if not path.is_file():
            raise UploadError(f"Local file not found: {path}", local_uri)

        filename, mime_type = infer_upload_meta(local_uri, kind)

        try:
            with path.open("rb") as fh:
                response = await self.client.post(
                    UPLOAD_PATH, files={"file": (filename, fh, mime_type)}
                )
        except httpx.HTTPError as exc:
            raise UploadError(f"Upload request failed: {exc}", local_uri) from exc
        except OSError as exc:
            raise UploadError(f"Could not read {path}: {exc}", local_uri) from exc

        if response.is_error:
            _, message, _ = parse_error_envelope(response)
            raise UploadError(f"Upload rejected ({response.status_code}): {message}", local_uri)

        try:
            result = UploadResult.model_validate(response.json())
        except ValueError as exc:
            raise UploadError("Upload failed: no url in response", local_uri) from exc

        remote_url = to_absolute_url(result.url, str(self.client.base_url))
        logger.debug("Uploaded %s (%s, %s bytes) -> %s", local_uri, mime_type, result.size, remote_url)
        return remote_url

    async def upload_image(self, local_uri: str) -> str:
        return await self.upload(local_uri, MediaKind.IMAGE)

    async def upload_audio(self, local_uri: str) -> str:
        return await self.upload(local_uri, MediaKind.AUDIO)

    async def upload_video(self, local_uri: str) -> str:
        return await self.upload(local_uri, MediaKind.VIDEO)
