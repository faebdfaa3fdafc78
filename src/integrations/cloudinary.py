"""Cloudinary integration — config and REST storage client.

Uploads and destroys go through the signed Upload API; folder purges go
through the Admin API with HTTP Basic auth.  Every transport or API
failure surfaces as UpstreamStorageError.
"""

from __future__ import annotations

import base64
import hashlib
import http.client
import json
import logging
import os
import time
import urllib.error
import urllib.request
import uuid
from urllib.parse import quote, urlencode

from pydantic import BaseModel

from storyhub.content.models import MediaKind, UploadedFile, UploadResult
from storyhub.errors import UpstreamStorageError
from storyhub.integrations.storage import (
    DEFAULT_PREVIEW_WIDTH,
    DEFAULT_ROOT_FOLDER,
    ObjectStorage,
)

logger = logging.getLogger(__name__)

API_BASE = "https://api.cloudinary.com/v1_1"
DELIVERY_BASE = "https://res.cloudinary.com"

# Params the Upload API excludes from the request signature.
_UNSIGNED_PARAMS = frozenset({"file", "cloud_name", "resource_type", "api_key"})


class CloudinaryConfig(BaseModel):
    """Credentials for a Cloudinary product environment."""

    cloud_name: str = ""
    api_key: str = ""
    api_secret: str = ""
    timeout: int = 60

    @property
    def is_configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    @classmethod
    def from_env(cls) -> CloudinaryConfig:
        """Create config from environment variables."""
        return cls(
            cloud_name=os.environ.get("CLOUDINARY_CLOUD_NAME", ""),
            api_key=os.environ.get("CLOUDINARY_API_KEY", ""),
            api_secret=os.environ.get("CLOUDINARY_API_SECRET", ""),
        )


class CloudinaryStorage(ObjectStorage):
    """Object storage backed by the Cloudinary REST API via urllib."""

    def __init__(self, config: CloudinaryConfig, *, root_folder: str = DEFAULT_ROOT_FOLDER) -> None:
        super().__init__(root_folder)
        self.config = config
        self.base_url = f"{API_BASE}/{config.cloud_name}"

    # ── Signing ─────────────────────────────────────────────────

    def _sign(self, params: dict[str, str]) -> str:
        """SHA-1 signature over the sorted, non-empty params plus the secret."""
        to_sign = "&".join(
            f"{k}={v}"
            for k, v in sorted(params.items())
            if k not in _UNSIGNED_PARAMS and v != ""
        )
        return hashlib.sha1((to_sign + self.config.api_secret).encode("utf-8")).hexdigest()

    def _signed_params(self, params: dict[str, str]) -> dict[str, str]:
        signed = {k: v for k, v in params.items() if v != ""}
        signed["timestamp"] = str(int(time.time()))
        signed["signature"] = self._sign(signed)
        signed["api_key"] = self.config.api_key
        return signed

    def _basic_auth(self) -> str:
        raw = f"{self.config.api_key}:{self.config.api_secret}".encode()
        return "Basic " + base64.b64encode(raw).decode("ascii")

    # ── Transport ───────────────────────────────────────────────

    def _send(self, req: urllib.request.Request) -> dict:
        try:
            with urllib.request.urlopen(req, timeout=self.config.timeout) as resp:
                payload = json.loads(resp.read().decode("utf-8") or "{}")
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
            raise UpstreamStorageError(
                f"Cloudinary {req.get_method()} {req.full_url} failed: HTTP {exc.code} {detail}"
            ) from exc
        except (OSError, http.client.HTTPException, json.JSONDecodeError) as exc:
            raise UpstreamStorageError(
                f"Cloudinary {req.get_method()} {req.full_url} failed: {exc}"
            ) from exc

        if isinstance(payload, dict) and "error" in payload:
            error = payload["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise UpstreamStorageError(f"Cloudinary error: {message}")
        return payload

    def _request_form(self, path: str, params: dict[str, str]) -> dict:
        """POST a signed url-encoded form to the Upload API."""
        req = urllib.request.Request(
            f"{self.base_url}{path}",
            data=urlencode(self._signed_params(params)).encode("utf-8"),
            method="POST",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        return self._send(req)

    def _request_admin(self, method: str, path: str, query: dict[str, str] | None = None) -> dict:
        """Call the Admin API with Basic auth."""
        url = f"{self.base_url}{path}"
        if query:
            url = f"{url}?{urlencode(query)}"
        req = urllib.request.Request(
            url,
            method=method,
            headers={"Authorization": self._basic_auth()},
        )
        return self._send(req)

    def _request_multipart(self, path: str, params: dict[str, str], file: UploadedFile) -> dict:
        """Upload a file via signed multipart form POST."""
        boundary = f"----StoryhubUpload{uuid.uuid4().hex}"
        body_parts: list[bytes] = []
        for name, value in self._signed_params(params).items():
            body_parts += [
                f"--{boundary}\r\n".encode(),
                f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode(),
                value.encode("utf-8"),
                b"\r\n",
            ]
        disposition = (
            f'Content-Disposition: form-data; name="file";'
            f' filename="{file.filename}"\r\n'
        )
        body_parts += [
            f"--{boundary}\r\n".encode(),
            disposition.encode(),
            f"Content-Type: {file.content_type}\r\n\r\n".encode(),
            file.data,
            f"\r\n--{boundary}--\r\n".encode(),
        ]

        req = urllib.request.Request(
            f"{self.base_url}{path}",
            data=b"".join(body_parts),
            method="POST",
            headers={"Content-Type": f"multipart/form-data; boundary={boundary}"},
        )
        return self._send(req)

    # ── ObjectStorage ───────────────────────────────────────────

    def upload(self, owner_id: str, file: UploadedFile, kind: MediaKind) -> UploadResult:
        params = {
            "folder": f"{self.folder_for(owner_id)}/{kind.value}",
            "use_filename": "true",
            "unique_filename": "true",
            "filename_override": file.filename,
        }
        result = self._request_multipart(f"/{kind.value}/upload", params, file)
        try:
            return UploadResult(
                url=result["secure_url"],
                public_id=result["public_id"],
                resource_type=result.get("resource_type", kind.value),
                format=result.get("format", ""),
                size_bytes=result.get("bytes", 0),
            )
        except KeyError as exc:
            raise UpstreamStorageError(f"Cloudinary upload response missing {exc}") from exc

    def derive_preview_url(
        self, public_id: str, *, width: int = DEFAULT_PREVIEW_WIDTH, format: str = "jpg"
    ) -> str:
        return (
            f"{DELIVERY_BASE}/{self.config.cloud_name}/video/upload/"
            f"so_0,w_{width},c_scale/{public_id}.{format}"
        )

    def delete(self, public_id: str, *, resource_type: str = "image") -> None:
        result = self._request_form(
            f"/{resource_type}/destroy", {"public_id": public_id, "invalidate": "true"}
        )
        status = result.get("result")
        if status == "not found":
            logger.debug("Cloudinary object %s already absent", public_id)
        elif status != "ok":
            raise UpstreamStorageError(f"Cloudinary could not delete {public_id}: {status!r}")

    def delete_folder(self, path: str) -> None:
        for resource_type in ("image", "video"):
            self._request_admin(
                "DELETE", f"/resources/{resource_type}/upload", {"prefix": path}
            )
        try:
            self._request_admin("DELETE", f"/folders/{quote(path)}")
        except UpstreamStorageError:
            logger.info("No files found in folder: %s", path)
