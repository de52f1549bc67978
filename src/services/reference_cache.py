"""Process-wide cache mapping size/type reference ids to names and back.

The backend identifies sizes and shirt types by opaque ids, while callers work
with plain names (``"M"``, ``"Casual"``). There is no lookup endpoint, so the
cache is filled as a side effect of every catalog record that carries a
populated reference object. Entries are never evicted.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from threading import RLock
from typing import Any

from pydantic import ValidationError

from src.models.product import ReferenceKind, SizeReference, TypeReference

logger = logging.getLogger(__name__)

# Populated size object fields, in the order the backend has used them.
SIZE_REFERENCE_FIELDS = ("sizeReference", "sizeRef")

_REFERENCE_MODELS = {"size": SizeReference, "type": TypeReference}


class ReferenceCache:
    """Bidirectional name/id map per reference kind."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._ids: dict[str, dict[str, str]] = {"size": {}, "type": {}}
        self._objects: dict[str, dict[str, SizeReference | TypeReference]] = {
            "size": {},
            "type": {},
        }

    def record(self, raw_reference: Any, kind: ReferenceKind) -> bool:
        """Store a populated reference object in both directions.

        Returns False for bare ids or objects missing an id or a name, since a
        name cannot be derived from an unpopulated foreign key.
        """

        if not isinstance(raw_reference, Mapping):
            return False
        ref_id = raw_reference.get("_id") or raw_reference.get("id")
        name = raw_reference.get("name")
        if not ref_id or not name or not isinstance(name, str):
            return False

        model = _REFERENCE_MODELS[kind]
        try:
            reference = model.model_validate({**raw_reference, "_id": str(ref_id)})
        except ValidationError as exc:
            logger.warning("Ignoring malformed %s reference %s: %s", kind, ref_id, exc)
            return False
        with self._lock:
            self._ids[kind][reference.name] = reference.id
            self._objects[kind][reference.id] = reference
        return True

    def record_pair(self, name: Any, ref_id: Any, kind: ReferenceKind) -> bool:
        """Store a name -> id pair taken from legacy flat fields."""

        if not isinstance(name, str) or not name:
            return False
        if not isinstance(ref_id, str) or not ref_id:
            return False
        with self._lock:
            self._ids[kind][name] = ref_id
        return True

    def record_shirt(self, raw: Mapping[str, Any]) -> None:
        """Extract every reference a single variant record carries."""

        self._record_size(raw)
        self._record_type(raw)

    def record_grouped(self, raw: Mapping[str, Any]) -> None:
        """Extract references from a design record and its nested variants."""

        self._record_type(raw)
        for variant in raw.get("variants") or []:
            if isinstance(variant, Mapping):
                self._record_size(variant)

    def record_any(self, raw: Any) -> None:
        if not isinstance(raw, Mapping):
            return
        if "variants" in raw:
            self.record_grouped(raw)
        else:
            self.record_shirt(raw)

    def resolve_id(self, name: str | None, kind: ReferenceKind) -> str | None:
        if not name:
            return None
        with self._lock:
            return self._ids[kind].get(name)

    def resolve_name(self, ref_id: str | None, kind: ReferenceKind) -> str | None:
        if not ref_id:
            return None
        with self._lock:
            reference = self._objects[kind].get(ref_id)
        return reference.name if reference else None

    def get_reference(
        self, ref_id: str, kind: ReferenceKind
    ) -> SizeReference | TypeReference | None:
        with self._lock:
            return self._objects[kind].get(ref_id)

    def known_names(self, kind: ReferenceKind) -> list[str]:
        with self._lock:
            return list(self._ids[kind])

    def clear(self) -> None:
        with self._lock:
            for kind in ("size", "type"):
                self._ids[kind].clear()
                self._objects[kind].clear()
        logger.debug("Reference cache cleared")

    def _record_size(self, raw: Mapping[str, Any]) -> None:
        for field in SIZE_REFERENCE_FIELDS:
            if self.record(raw.get(field), "size"):
                return

    def _record_type(self, raw: Mapping[str, Any]) -> None:
        shirt_type = raw.get("shirtType")
        if shirt_type is not None:
            self.record(shirt_type, "type")
        elif raw.get("type") and raw.get("shirtTypeId"):
            self.record_pair(raw["type"], raw["shirtTypeId"], "type")


_cache = ReferenceCache()


def get_reference_cache() -> ReferenceCache:
    """FastAPI dependency factory."""

    return _cache
