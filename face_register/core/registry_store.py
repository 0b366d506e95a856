"""JSON file persistence for the face registry."""
from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from face_register.core.exceptions import StorageError, ValidationError
from face_register.core.logger import get_logger
from face_register.core.types import FaceId
from face_register.core.validation import validate_face_id, validate_face_name

logger = get_logger("storage")

SCHEMA_VERSION = 1


class JsonRegistryStore:
    """Stores registry entries in a single JSON document.

    The document keeps identifiers as values rather than object keys so that
    integer face ids survive a round trip::

        {"version": 1, "faces": [{"face_id": 7, "name": "Alice"}]}
    """

    def __init__(self, path: Path | str) -> None:
        """Initialize the store.

        Args:
            path: Location of the JSON document. Parent directories are
                created on first save.
        """
        self.path = Path(path)
        self._write_lock = threading.Lock()

    def load(self) -> dict[FaceId, str]:
        """Read all entries.

        Returns:
            Mapping of face id to name; empty if the file does not exist.

        Raises:
            StorageError: If the file cannot be read or is malformed.
        """
        if not self.path.exists():
            return {}

        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read registry {self.path}: {e}") from e

        if not isinstance(document, dict) or not isinstance(document.get("faces"), list):
            raise StorageError(f"Malformed registry file: {self.path}")

        version = document.get("version")
        if version != SCHEMA_VERSION:
            raise StorageError(f"Unsupported registry version: {version!r}")

        entries: dict[FaceId, str] = {}
        for record in document["faces"]:
            try:
                face_id = record["face_id"]
                validate_face_id(face_id)
                entries[face_id] = validate_face_name(record["name"])
            except (KeyError, TypeError, ValidationError) as e:
                raise StorageError(f"Malformed registry entry: {record!r}") from e
        return entries

    def save(self, entries: dict[FaceId, str]) -> None:
        """Replace the stored document with ``entries``.

        Raises:
            StorageError: If the document cannot be written after retries.
        """
        document: dict[str, Any] = {
            "version": SCHEMA_VERSION,
            "faces": [
                {"face_id": face_id, "name": name} for face_id, name in entries.items()
            ],
        }
        payload = json.dumps(document, indent=2, ensure_ascii=False)

        with self._write_lock:
            try:
                self._write(payload)
            except OSError as e:
                logger.error(f"Failed to save registry to {self.path}: {e}")
                raise StorageError(f"Failed to save registry: {e}") from e

        logger.debug(f"Saved {len(entries)} face(s) to {self.path}")

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _write(self, payload: str) -> None:
        """Atomically write ``payload`` via a temp file in the same directory."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
