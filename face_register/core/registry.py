"""In-process face registry: face identifier to display name."""
from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Iterator, Optional

from face_register.core.logger import get_logger
from face_register.core.types import FaceId
from face_register.core.validation import validate_face_name

if TYPE_CHECKING:
    from face_register.core.registry_store import JsonRegistryStore

logger = get_logger("registry")


class FaceRegistry:
    """Mapping from face identifier to the name a user confirmed for it.

    Entries are only created through :meth:`register`; nothing is ever
    removed. Registering an identifier again overwrites its name.
    """

    def __init__(
        self,
        entries: Optional[dict[FaceId, str]] = None,
        store: Optional["JsonRegistryStore"] = None,
    ) -> None:
        """Initialize the registry.

        Args:
            entries: Initial mapping, e.g. loaded from a store.
            store: Optional store written after every successful registration.
        """
        self._names: dict[FaceId, str] = dict(entries or {})
        self._store = store
        self._lock = threading.Lock()
        # Serialises mutate-and-save so snapshots reach the store in order.
        self._persist_lock = threading.Lock()

    @classmethod
    def from_store(cls, store: "JsonRegistryStore") -> "FaceRegistry":
        """Create a registry populated from, and persisting to, ``store``."""
        registry = cls(entries=store.load(), store=store)
        logger.info(f"Loaded {len(registry)} registered face(s) from {store.path}")
        return registry

    def lookup(self, face_id: FaceId) -> Optional[str]:
        """Return the registered name for ``face_id``, or None."""
        with self._lock:
            return self._names.get(face_id)

    def register(self, face_id: FaceId, name: str) -> None:
        """Associate ``face_id`` with ``name`` (last write wins).

        The name is stored trimmed of surrounding whitespace.

        Raises:
            EmptyNameError: If ``name`` is empty or whitespace only. The
                registry is left unchanged.
            StorageError: If a store is attached and the write fails. The
                in-memory entry is kept.
        """
        name = validate_face_name(name)

        with self._persist_lock:
            with self._lock:
                previous = self._names.get(face_id)
                self._names[face_id] = name
                snapshot = dict(self._names)

            if previous is not None and previous != name:
                logger.info(f"Face {face_id!r} renamed: {previous!r} -> {name!r}")
            else:
                logger.info(f"Face {face_id!r} registered as {name!r}")

            if self._store is not None:
                self._store.save(snapshot)

    def items(self) -> list[tuple[FaceId, str]]:
        with self._lock:
            return list(self._names.items())

    def to_dict(self) -> dict[FaceId, str]:
        with self._lock:
            return dict(self._names)

    def __contains__(self, face_id: object) -> bool:
        with self._lock:
            return face_id in self._names

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)

    def __iter__(self) -> Iterator[FaceId]:
        return iter(self.to_dict())
