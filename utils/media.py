"""
Media host access (Cloudinary upload API).

The client is created once per app in create_app() and stored in
app.extensions["media_host"]; handlers fetch it with get_media_host() so
tests can hand the factory a fake with the same upload()/destroy() methods.
"""
from __future__ import annotations

import logging
import os
import re
import uuid
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from api.errors import InternalFailure

logger = logging.getLogger(__name__)

_VERSION_SEGMENT = re.compile(r"v\d+")


class MediaHostError(Exception):
    """The media host rejected a request or could not be reached."""


class MediaHostClient:
    """Cloudinary uploader bound to one account's credentials."""

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, timeout: float = 30):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "MediaHostClient":
        return cls(
            cloud_name=config.get("CLOUDINARY_CLOUD_NAME", ""),
            api_key=config.get("CLOUDINARY_API_KEY", ""),
            api_secret=config.get("CLOUDINARY_API_SECRET", ""),
            timeout=config.get("MEDIA_HOST_TIMEOUT", 30),
        )

    def _options(self) -> Dict[str, Any]:
        return {
            "cloud_name": self.cloud_name,
            "api_key": self.api_key,
            "api_secret": self.api_secret,
            "timeout": self.timeout,
        }

    def upload(self, local_path: str) -> Dict[str, Any]:
        """Upload a local file; returns the host's JSON (url, secure_url, public_id, ...)."""
        try:
            return cloudinary.uploader.upload(local_path, resource_type="auto", **self._options())
        except CloudinaryError as exc:
            raise MediaHostError(f"Upload rejected: {exc}") from exc

    def destroy(self, public_id: str) -> Dict[str, Any]:
        try:
            return cloudinary.uploader.destroy(public_id, **self._options())
        except CloudinaryError as exc:
            raise MediaHostError(f"Delete of {public_id} rejected: {exc}") from exc


def get_media_host():
    return current_app.extensions["media_host"]


def public_id_from_url(url: Optional[str]) -> Optional[str]:
    """.../upload/v1712/folder/abc123.png -> folder/abc123"""
    if not url:
        return None
    path = urlparse(url).path
    _, found, tail = path.partition("/upload/")
    if not found:
        tail = path.rsplit("/", 1)[-1]
    segments = [s for s in tail.split("/") if s]
    if segments and _VERSION_SEGMENT.fullmatch(segments[0]):
        segments = segments[1:]
    if not segments:
        return None
    segments[-1] = segments[-1].rsplit(".", 1)[0]
    return "/".join(segments) or None


def save_upload(file: FileStorage) -> str:
    """Write an uploaded file into UPLOAD_TMP_DIR and return its path."""
    tmp_dir = current_app.config["UPLOAD_TMP_DIR"]
    os.makedirs(tmp_dir, exist_ok=True)
    filename = secure_filename(file.filename or "") or "upload"
    path = os.path.join(tmp_dir, f"{uuid.uuid4().hex}-{filename}")
    file.save(path)
    return path


def _remove_temp(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def upload_file(client, file: FileStorage, label: str = "image") -> str:
    """
    Park the upload on disk, push it to the media host and return its URL.
    The temporary file is removed whether or not the upload succeeded.
    """
    local_path = save_upload(file)
    try:
        result = client.upload(local_path)
    except MediaHostError:
        logger.exception("Uploading %s to the media host failed", label)
        raise InternalFailure(f"Error while uploading {label}")
    finally:
        _remove_temp(local_path)

    url = (result or {}).get("secure_url") or (result or {}).get("url")
    if not url:
        logger.error("Media host response for %s had no url: %r", label, result)
        raise InternalFailure(f"Error while uploading {label}")
    return url


def destroy_by_url(client, url: Optional[str]) -> None:
    """Best-effort removal of a replaced asset; failures are logged."""
    public_id = public_id_from_url(url)
    if not public_id:
        return
    try:
        client.destroy(public_id)
    except MediaHostError:
        logger.warning("Could not delete %s from the media host", public_id, exc_info=True)
