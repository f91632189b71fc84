"""
Image storage backends.

Uploaded images (business photos, ad banners) are handed to an
``ImageStorage`` which returns the public URL and an opaque
``publicId`` used later to delete the file.  Two backends exist:

* ``LocalImageStorage`` writes files under ``MEDIA_ROOT``; the app
  serves them from ``MEDIA_URL``.
* ``RemoteImageStorage`` posts files to an external image host at
  ``IMAGE_UPLOAD_URL`` using httpx.

``get_storage()`` returns the backend selected by ``STORAGE_BACKEND``.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Dict, Optional

import httpx
from fastapi import UploadFile

from .config import settings
from .errors import ValidationFailed


logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def ensure_image(upload: UploadFile, field: str) -> None:
    """Reject uploads that are not images."""
    content_type = (upload.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise ValidationFailed("يجب أن يكون الملف صورة", {field: "نوع الملف غير مدعوم"})


class ImageStorage:
    """Interface of an image backend."""

    def save(self, upload: UploadFile, folder: str) -> Dict[str, str]:
        raise NotImplementedError

    def delete(self, public_id: str) -> None:
        raise NotImplementedError

    def delete_many(self, public_ids) -> None:
        """Delete several images; a failure is logged and does not stop the rest."""
        for public_id in public_ids:
            if not public_id:
                continue
            try:
                self.delete(public_id)
            except (OSError, httpx.HTTPError) as exc:
                logger.warning("Could not delete stored image %s: %s", public_id, exc)


class LocalImageStorage(ImageStorage):
    def __init__(self, root: str, base_url: str) -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def save(self, upload: UploadFile, folder: str) -> Dict[str, str]:
        ext = _EXTENSIONS.get((upload.content_type or "").lower())
        if ext is None:
            ext = os.path.splitext(upload.filename or "")[1].lower() or ".bin"
        public_id = f"{folder}/{uuid.uuid4().hex}{ext}"
        target = self.root / public_id
        target.parent.mkdir(parents=True, exist_ok=True)
        upload.file.seek(0)
        with open(target, "wb") as fh:
            fh.write(upload.file.read())
        logger.debug("Stored image %s", public_id)
        return {"url": f"{self.base_url}/{public_id}", "publicId": public_id}

    def delete(self, public_id: str) -> None:
        target = (self.root / public_id).resolve()
        # Never touch anything outside the media root.
        if self.root.resolve() not in target.parents:
            logger.warning("Refusing to delete %s outside media root", public_id)
            return
        if target.exists():
            target.unlink()
            logger.debug("Deleted image %s", public_id)


class RemoteImageStorage(ImageStorage):
    """Client for an HTTP image host.

    The host must accept ``POST <upload_url>`` with a multipart ``file``
    field and answer with JSON carrying ``url`` (or ``secure_url``) and
    ``publicId`` (or ``public_id``); ``DELETE <upload_url>/<publicId>``
    removes an image.
    """

    def __init__(self, upload_url: str, api_key: Optional[str] = None, timeout: float = 30) -> None:
        self.upload_url = upload_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

    def save(self, upload: UploadFile, folder: str) -> Dict[str, str]:
        upload.file.seek(0)
        files = {"file": (upload.filename or "upload", upload.file.read(), upload.content_type)}
        response = httpx.post(
            self.upload_url,
            headers=self._headers(),
            data={"folder": folder},
            files=files,
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()
        return {
            "url": data.get("secure_url") or data.get("url"),
            "publicId": data.get("publicId") or data.get("public_id"),
        }

    def delete(self, public_id: str) -> None:
        response = httpx.delete(
            f"{self.upload_url}/{public_id}",
            headers=self._headers(),
            timeout=self.timeout,
        )
        response.raise_for_status()


_storage: Optional[ImageStorage] = None


def get_storage() -> ImageStorage:
    """Return the configured storage backend (created on first use)."""
    global _storage
    if _storage is None:
        if settings.storage_backend == "remote":
            if not settings.image_upload_url:
                raise RuntimeError("IMAGE_UPLOAD_URL must be set when STORAGE_BACKEND=remote")
            _storage = RemoteImageStorage(settings.image_upload_url, settings.image_api_key)
        else:
            _storage = LocalImageStorage(settings.media_root, settings.media_url)
        logger.info("Using %s", type(_storage).__name__)
    return _storage


def set_storage(storage: Optional[ImageStorage]) -> None:
    """Replace the active backend (``None`` resets to the configured one)."""
    global _storage
    _storage = storage
