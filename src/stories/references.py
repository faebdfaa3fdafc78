"""Existence checks for the aggregates a story may point at."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel

from storyhub.errors import NotFoundError

logger = logging.getLogger(__name__)


class Reference(BaseModel):
    """A resolved program or beneficiary."""

    id: str
    kind: str
    name: str = ""


class ReferenceDirectory:
    """Known ids of one kind of aggregate ("program", "beneficiary")."""

    def __init__(self, kind: str, entries: dict[str, str] | None = None) -> None:
        self.kind = kind
        self._entries = dict(entries or {})

    @classmethod
    def from_file(cls, path: Path, kind: str) -> ReferenceDirectory:
        """Load a JSON object mapping ids to display names.

        A missing or unreadable file yields an empty directory.
        """
        if not path.exists():
            logger.warning("%s directory %s not found, no %s ids will resolve", kind, path, kind)
            return cls(kind)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Corrupt %s directory at %s, starting empty", kind, path)
            return cls(kind)
        if not isinstance(raw, dict):
            logger.warning("%s directory at %s is not a JSON object", kind, path)
            return cls(kind)
        return cls(kind, {str(k): str(v) for k, v in raw.items()})

    def exists(self, ref_id: str) -> bool:
        return ref_id in self._entries

    def get(self, ref_id: str) -> Reference:
        """Return the entity with this id.

        Raises NotFoundError if it is unknown.
        """
        if ref_id not in self._entries:
            raise NotFoundError(f"{self.kind.capitalize()} with ID {ref_id} not found")
        return Reference(id=ref_id, kind=self.kind, name=self._entries[ref_id])
