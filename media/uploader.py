"""
media/uploader.py -- Upload avatar and cover images to the remote media host.

The media host is Cloudinary. We talk to its upload REST endpoint directly
with requests rather than pulling in the vendor SDK: one signed multipart
POST is all we need.

Signed upload:
  signature = sha1("<k1>=<v1>&<k2>=<v2>..." + api_secret), parameters sorted
  by name, excluding file, api_key, resource_type and signature itself.

Every failure -- missing credentials, network error, non-2xx status, a
response without secure_url -- raises MediaUploadError. Callers turn that into
a 500 for the client.
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import Optional

import requests

logger = logging.getLogger("videotube.media")

UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/{resource_type}/upload"

_TIMEOUT_SECONDS = 30


class MediaUploadError(Exception):
    """The media host did not return a usable URL."""


def sign_params(params: dict, api_secret: str) -> str:
    """Return the Cloudinary signature for params."""
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()  # noqa: S324 -- vendor-mandated


class MediaUploader:
    """Signed uploads to one Cloudinary cloud.

    Usage:
        uploader = MediaUploader("demo", "1234", "secret")
        url = uploader.upload(raw_bytes, "avatar.png")
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        session: Optional[requests.Session] = None,
        folder: Optional[str] = None,
    ) -> None:
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        # Shared session for connection pooling. Redirects are capped -- the
        # upload endpoint never needs more than a hop or two.
        self._session = session or requests.Session()
        self._session.max_redirects = 3

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def upload(self, content: bytes, filename: str, resource_type: str = "auto") -> str:
        """Upload content and return the stable HTTPS URL of the stored asset."""
        if not self.configured:
            raise MediaUploadError("Media host credentials are not configured")
        if not content:
            raise MediaUploadError("Refusing to upload an empty file")

        params: dict = {"timestamp": int(time.time())}
        if self.folder:
            params["folder"] = self.folder
        data = dict(params)
        data["api_key"] = self.api_key
        data["signature"] = sign_params(params, self.api_secret)

        url = UPLOAD_URL.format(cloud_name=self.cloud_name, resource_type=resource_type)
        try:
            resp = self._session.post(
                url,
                data=data,
                files={"file": (filename or "upload", content)},
                timeout=_TIMEOUT_SECONDS,
            )
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Media upload failed for %s: %s", filename, exc)
            raise MediaUploadError(str(exc)) from exc

        secure_url = body.get("secure_url") if isinstance(body, dict) else None
        if not secure_url:
            logger.warning("Media upload for %s returned no secure_url", filename)
            raise MediaUploadError("Media host response did not include secure_url")
        logger.info("Uploaded %s (%d bytes)", filename, len(content))
        return secure_url
