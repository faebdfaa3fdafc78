"""Object storage gateway — interface, local backend, and factory.

The media coordinator only talks to ``ObjectStorage``.  Objects live in
a per-story folder (``<root_folder>/<story id>/<kind>/...``) so that a
story's stragglers can be purged with a single folder delete.
"""

from __future__ import annotations

import logging
import re
import shutil
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from storyhub.content.models import MediaKind, UploadedFile, UploadResult
from storyhub.errors import UpstreamStorageError

if TYPE_CHECKING:
    from storyhub.config import StorageSectionConfig

logger = logging.getLogger(__name__)

DEFAULT_ROOT_FOLDER = "stories"
DEFAULT_PREVIEW_WIDTH = 500

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


class ObjectStorage(ABC):
    """Base class for the external media store."""

    def __init__(self, root_folder: str = DEFAULT_ROOT_FOLDER) -> None:
        self.root_folder = root_folder.strip("/")

    def folder_for(self, owner_id: str) -> str:
        """Folder holding every object uploaded for one story."""
        return f"{self.root_folder}/{owner_id}"

    @abstractmethod
    def upload(self, owner_id: str, file: UploadedFile, kind: MediaKind) -> UploadResult:
        """Store a file under the owner's folder and return its handle."""

    @abstractmethod
    def derive_preview_url(
        self, public_id: str, *, width: int = DEFAULT_PREVIEW_WIDTH, format: str = "jpg"
    ) -> str:
        """URL of a single-frame still rendered from a stored video."""

    @abstractmethod
    def delete(self, public_id: str, *, resource_type: str = "image") -> None:
        """Delete one object.  Deleting an object that is already gone is a no-op."""

    @abstractmethod
    def delete_folder(self, path: str) -> None:
        """Delete every object under ``path`` and the folder itself."""


class LocalObjectStorage(ObjectStorage):
    """Filesystem-backed object storage for development and tests.

    Public ids are paths relative to ``root``; URLs are ``base_url`` joined
    with the public id (a ``file://`` URL when no base is configured).
    """

    def __init__(
        self,
        root: Path,
        *,
        base_url: str = "",
        root_folder: str = DEFAULT_ROOT_FOLDER,
    ) -> None:
        super().__init__(root_folder)
        self.root = root
        self.base_url = (base_url or root.resolve().as_uri()).rstrip("/")

    def _path_for(self, public_id: str) -> Path:
        root = self.root.resolve()
        path = (root / public_id).resolve()
        if path != root and root not in path.parents:
            raise UpstreamStorageError(f"Refusing to touch {public_id!r} outside storage root")
        return path

    def url_for(self, public_id: str) -> str:
        return f"{self.base_url}/{public_id}"

    def upload(self, owner_id: str, file: UploadedFile, kind: MediaKind) -> UploadResult:
        safe_name = _UNSAFE_FILENAME.sub("_", file.filename) or "upload"
        public_id = f"{self.folder_for(owner_id)}/{kind.value}/{uuid.uuid4().hex[:12]}-{safe_name}"
        path = self._path_for(public_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(file.data)
        except OSError as exc:
            raise UpstreamStorageError(f"Failed to store {file.filename}: {exc}") from exc

        logger.debug("Stored %s (%d bytes) as %s", file.filename, len(file.data), public_id)
        return UploadResult(
            url=self.url_for(public_id),
            public_id=public_id,
            resource_type=kind.value,
            format=path.suffix.lstrip("."),
            size_bytes=len(file.data),
        )

    def derive_preview_url(
        self, public_id: str, *, width: int = DEFAULT_PREVIEW_WIDTH, format: str = "jpg"
    ) -> str:
        query = urlencode({"frame": 0, "width": width, "format": format})
        return f"{self.url_for(public_id)}?{query}"

    def delete(self, public_id: str, *, resource_type: str = "image") -> None:
        path = self._path_for(public_id)
        if not path.is_file():
            logger.debug("Object %s already absent", public_id)
            return
        try:
            path.unlink()
        except OSError as exc:
            raise UpstreamStorageError(f"Failed to delete {public_id}: {exc}") from exc

    def delete_folder(self, path: str) -> None:
        folder = self._path_for(path)
        if not folder.exists():
            logger.debug("No files found in folder: %s", path)
            return
        try:
            shutil.rmtree(folder)
        except OSError as exc:
            raise UpstreamStorageError(f"Failed to delete folder {path}: {exc}") from exc

    def exists(self, public_id: str) -> bool:
        return self._path_for(public_id).is_file()


def create_object_storage(config: StorageSectionConfig) -> ObjectStorage:
    """Create the storage backend named by ``config.backend``.

    Raises:
        ValueError: If the backend is unknown.
    """
    from storyhub.integrations.cloudinary import CloudinaryConfig, CloudinaryStorage

    backend = config.backend.lower()
    if backend == "local":
        return LocalObjectStorage(
            Path(config.directory),
            base_url=config.base_url,
            root_folder=config.root_folder,
        )
    if backend == "cloudinary":
        return CloudinaryStorage(
            CloudinaryConfig.model_validate(config.cloudinary.model_dump()),
            root_folder=config.root_folder,
        )
    raise ValueError(f"Unknown storage backend: {config.backend!r}")
