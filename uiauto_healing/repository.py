# uiauto_healing/repository.py
"""
@file repository.py
@brief Fingerprint-deduplicated store of named UI objects and their locator chains.

Objects are immutable snapshots; every write replaces the stored record,
so readers never take the lock and never observe a half-applied update.
"""

from __future__ import annotations

import os
import re
import tempfile
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
from uuid import uuid4

import yaml

from .attributes import CapturedAttributes, Platform
from .exceptions import (ConfigError, HealingError, ObjectNotFoundError,
                         RepositoryWriteConflictError)
from .fingerprint import compute_fingerprint
from .locators import LocatorChain
from .log import get_logger
from .validation import REPOSITORY_SCHEMA, validate

logger = get_logger(__name__)


class UsageOutcome(str, Enum):
    RESOLVED = "resolved"
    HEALED = "healed"
    FAILED = "failed"


@dataclass(frozen=True)
class UsageStats:
    resolved: int = 0
    healed: int = 0
    failed: int = 0
    last_resolved_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resolved": self.resolved,
            "healed": self.healed,
            "failed": self.failed,
            "last_resolved_at": self.last_resolved_at,
        }

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> UsageStats:
        d = d or {}
        return cls(
            resolved=int(d.get("resolved", 0)),
            healed=int(d.get("healed", 0)),
            failed=int(d.get("failed", 0)),
            last_resolved_at=d.get("last_resolved_at"),
        )


@dataclass(frozen=True)
class UIObject:
    id: str
    name: str
    platform: str
    tag: str
    attributes: CapturedAttributes
    chain: LocatorChain
    fingerprint: str
    usage: UsageStats = field(default_factory=UsageStats)
    labels: Tuple[str, ...] = ()
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "platform": self.platform,
            "tag": self.tag,
            "fingerprint": self.fingerprint,
            "attributes": self.attributes.to_dict(),
            "locators": self.chain.to_list(),
            "usage": self.usage.to_dict(),
            "tags": list(self.labels),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> UIObject:
        attrs = CapturedAttributes.from_dict(d.get("attributes") or {"tag": d.get("tag", "")})
        now = time.time()
        return cls(
            id=str(d["id"]),
            name=str(d.get("name", "")),
            platform=str(d.get("platform", attrs.platform)),
            tag=str(d.get("tag", attrs.tag)),
            attributes=attrs,
            chain=LocatorChain.from_list(d.get("locators")),
            fingerprint=str(d["fingerprint"]),
            usage=UsageStats.from_dict(d.get("usage")),
            labels=tuple(d.get("tags") or ()),
            created_at=float(d.get("created_at", now)),
            updated_at=float(d.get("updated_at", now)),
        )


def _normalize_key(s: str) -> str:
    """YAML-safe, scenario-friendly object name."""
    return re.sub(r"[^a-zA-Z0-9_]+", "_", s).strip("_").lower()


def _derive_name(attrs: CapturedAttributes) -> str:
    for candidate in (attrs.aria_label, attrs.name, attrs.text, attrs.test_id, attrs.placeholder):
        if candidate:
            key = _normalize_key(candidate)[:40].strip("_")
            if key:
                return f"{attrs.tag}_{key}" if attrs.tag != "*" else key
    return attrs.tag if attrs.tag != "*" else "element"


class ObjectRepository:
    """
    Keyed collection of UIObjects, optionally backed by a YAML file.

    Lifecycle: construct, open() (loads the file if present), use,
    close() (flushes). Also usable as a context manager.
    """

    VERSION = "1.0"

    def __init__(self, path: Optional[str] = None, autosave: bool = True):
        """
        @param path YAML file backing the repository (in-memory if None)
        @param autosave Persist after every write operation
        """
        self.path = os.path.abspath(path) if path else None
        self.autosave = autosave
        self._objects: Dict[str, UIObject] = {}
        self._by_fingerprint: Dict[str, str] = {}
        self._lock = threading.RLock()
        self._open = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> ObjectRepository:
        with self._lock:
            if self._open:
                return self
            if self.path and os.path.exists(self.path):
                self._replace_all(self._read_file(self.path))
                logger.info(f"Loaded object repository: {self.path} ({len(self._objects)} objects)")
            self._open = True
        return self

    def close(self) -> None:
        with self._lock:
            if not self._open:
                return
            if self.path:
                self._write_file(self.path)
            self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def __enter__(self) -> ObjectRepository:
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if not self._open:
            raise HealingError("ObjectRepository is not open; call open() first")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @staticmethod
    def _read_file(path: str) -> Dict[str, UIObject]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError("Object repository YAML must be a mapping at root.")
        validate(data, REPOSITORY_SCHEMA, where=path)

        objects: Dict[str, UIObject] = {}
        for key, raw in (data.get("objects") or {}).items():
            obj = UIObject.from_dict(raw)
            if obj.id != key:
                raise ConfigError(f"objects.{key}: id mismatch ('{obj.id}')")
            objects[obj.id] = obj
        return objects

    def _snapshot(self) -> Dict[str, Any]:
        return {
            "version": self.VERSION,
            "objects": {oid: obj.to_dict() for oid, obj in self._objects.items()},
        }

    def _write_file(self, path: str) -> None:
        directory = os.path.dirname(path) or "."
        os.makedirs(directory, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".repo-", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(self._snapshot(), f, sort_keys=False, allow_unicode=True)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

    def save(self) -> None:
        """Write the repository to its path (no-op when in-memory)."""
        with self._lock:
            if self.path:
                self._write_file(self.path)
                logger.debug(f"Repository saved: {self.path}")

    def _persist(self) -> None:
        if self.autosave and self.path:
            self._write_file(self.path)

    def _replace_all(self, objects: Dict[str, UIObject]) -> None:
        index: Dict[str, str] = {}
        for obj in objects.values():
            other = index.get(obj.fingerprint)
            if other is not None and other != obj.id:
                raise RepositoryWriteConflictError(obj.fingerprint, other, obj.id)
            index[obj.fingerprint] = obj.id
        self._objects = dict(objects)
        self._by_fingerprint = index

    # ------------------------------------------------------------------
    # Capture-time writes
    # ------------------------------------------------------------------

    @staticmethod
    def _new_id() -> str:
        return f"obj_{uuid4().hex[:12]}"

    def upsert(self, attrs: CapturedAttributes, chain: LocatorChain, name: Optional[str] = None) -> str:
        """
        Return the object id for a captured element, creating it if new.

        A repeat capture returns the existing id and never touches the
        stored chain. Insert-if-absent runs under the write lock, so
        concurrent captures of one fingerprint yield one object.

        @param attrs Captured attribute snapshot
        @param chain Extracted locator chain
        @param name Optional object name (derived from attributes if None)
        @return Object id
        """
        self._ensure_open()
        if not isinstance(chain, LocatorChain):
            raise ConfigError(f"upsert expects a LocatorChain, got: {type(chain).__name__}")
        fp = compute_fingerprint(attrs)

        existing = self._by_fingerprint.get(fp)
        if existing is not None:
            return existing

        with self._lock:
            existing = self._by_fingerprint.get(fp)
            if existing is not None:
                logger.debug(f"Object already exists for fingerprint '{fp}': {existing}")
                return existing

            now = time.time()
            obj = UIObject(
                id=self._new_id(),
                name=name or _derive_name(attrs),
                platform=attrs.platform,
                tag=attrs.tag,
                attributes=attrs,
                chain=chain,
                fingerprint=fp,
                created_at=now,
                updated_at=now,
            )
            # object first: a reader that finds the id must find the object
            self._objects[obj.id] = obj
            self._by_fingerprint[fp] = obj.id
            self._persist()

        logger.info(f"New object stored: {obj.name} ({obj.id}) with {len(chain)} locator(s)")
        return obj.id

    # ------------------------------------------------------------------
    # Reads (unlocked)
    # ------------------------------------------------------------------

    def get(self, object_id: str) -> Optional[UIObject]:
        self._ensure_open()
        return self._objects.get(object_id)

    def require(self, object_id: Optional[str]) -> UIObject:
        obj = self.get(object_id) if object_id else None
        if obj is None:
            raise ObjectNotFoundError(object_id)
        return obj

    def find_by_fingerprint(self, fingerprint: str) -> Optional[UIObject]:
        self._ensure_open()
        oid = self._by_fingerprint.get(fingerprint)
        return self._objects.get(oid) if oid is not None else None

    def find_by_name(self, name: str) -> Optional[UIObject]:
        self._ensure_open()
        for obj in list(self._objects.values()):
            if obj.name == name:
                return obj
        return None

    def list_all(self) -> List[UIObject]:
        self._ensure_open()
        return list(self._objects.values())

    def list_by_platform(self, platform: Union[str, Platform]) -> List[UIObject]:
        value = platform.value if isinstance(platform, Platform) else str(platform)
        return [o for o in self.list_all() if o.platform == value]

    def list_by_tag(self, tag: str) -> List[UIObject]:
        """Objects whose element tag (e.g. 'button') matches."""
        tag = tag.lower()
        return [o for o in self.list_all() if o.tag == tag]

    def search(
        self,
        platform: Optional[Union[str, Platform]] = None,
        tag: Optional[str] = None,
        name_contains: Optional[str] = None,
        label: Optional[str] = None,
    ) -> List[UIObject]:
        result = self.list_all()
        if platform is not None:
            value = platform.value if isinstance(platform, Platform) else str(platform)
            result = [o for o in result if o.platform == value]
        if tag is not None:
            result = [o for o in result if o.tag == tag.lower()]
        if name_contains:
            needle = name_contains.lower()
            result = [o for o in result if needle in o.name.lower()]
        if label is not None:
            result = [o for o in result if label in o.labels]
        return result

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, object_id: object) -> bool:
        return object_id in self._objects

    def statistics(self) -> Dict[str, Any]:
        objects = self.list_all()
        by_platform = {p.value: 0 for p in Platform}
        for o in objects:
            by_platform[o.platform] = by_platform.get(o.platform, 0) + 1
        return {
            "total_objects": len(objects),
            "by_platform": by_platform,
            "average_locators_per_object": (
                sum(len(o.chain) for o in objects) / len(objects) if objects else 0.0
            ),
            "usage": {
                "resolved": sum(o.usage.resolved for o in objects),
                "healed": sum(o.usage.healed for o in objects),
                "failed": sum(o.usage.failed for o in objects),
            },
        }

    # ------------------------------------------------------------------
    # Explicit edits
    # ------------------------------------------------------------------

    def _update(self, object_id: str, **changes: Any) -> UIObject:
        self._ensure_open()
        with self._lock:
            current = self._objects.get(object_id)
            if current is None:
                raise ObjectNotFoundError(object_id)
            updated = replace(current, updated_at=time.time(), **changes)
            self._objects[object_id] = updated
            self._persist()
        return updated

    def update_locator_chain(self, object_id: str, new_chain: LocatorChain) -> UIObject:
        """
        Replace an object's chain. Only manual edits and accepted update
        suggestions call this; resolution never does.
        """
        if isinstance(new_chain, list):
            new_chain = LocatorChain.from_list(new_chain)
        if not isinstance(new_chain, LocatorChain):
            raise ConfigError(f"update_locator_chain expects a LocatorChain, got: {type(new_chain).__name__}")
        updated = self._update(object_id, chain=new_chain)
        logger.info(f"Locator chain updated for {updated.name} ({object_id}): primary={new_chain.primary.describe()}")
        return updated

    def record_usage(self, object_id: str, outcome: Union[str, UsageOutcome]) -> UsageStats:
        """Increment the counter for a resolution outcome and stamp the time."""
        outcome = UsageOutcome(outcome)
        self._ensure_open()
        with self._lock:
            current = self._objects.get(object_id)
            if current is None:
                raise ObjectNotFoundError(object_id)
            usage = current.usage
            usage = replace(
                usage,
                resolved=usage.resolved + (outcome is UsageOutcome.RESOLVED),
                healed=usage.healed + (outcome is UsageOutcome.HEALED),
                failed=usage.failed + (outcome is UsageOutcome.FAILED),
                last_resolved_at=time.time(),
            )
            # usage is telemetry, not an edit: updated_at stays
            self._objects[object_id] = replace(current, usage=usage)
            self._persist()
        return usage

    def rename(self, object_id: str, name: str) -> UIObject:
        if not name or not name.strip():
            raise ConfigError("Object name must be a non-empty string")
        return self._update(object_id, name=name.strip())

    def add_label(self, object_id: str, label: str) -> UIObject:
        with self._lock:
            current = self.require(object_id)
            if label in current.labels:
                return current
            return self._update(object_id, labels=current.labels + (label,))

    def delete(self, object_id: str) -> None:
        """Remove an object; explicit operator action only."""
        self._ensure_open()
        with self._lock:
            obj = self._objects.get(object_id)
            if obj is None:
                raise ObjectNotFoundError(object_id)
            if self._by_fingerprint.get(obj.fingerprint) == object_id:
                del self._by_fingerprint[obj.fingerprint]
            del self._objects[object_id]
            self._persist()
        logger.info(f"Object deleted: {obj.name} ({object_id})")

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    def export(self, out_path: str) -> str:
        """Write a copy of the repository to another file."""
        self._ensure_open()
        out_path = os.path.abspath(out_path)
        with self._lock:
            self._write_file(out_path)
        logger.info(f"Repository exported to: {out_path}")
        return out_path

    def import_objects(self, in_path: str, merge: bool = False) -> int:
        """
        Load objects from another repository file.

        merge=False replaces the whole content; merge=True adds imported
        objects, replacing same-id ones.

        @return Number of imported objects
        @throws RepositoryWriteConflictError if a fingerprint would map to two ids
        """
        self._ensure_open()
        imported = self._read_file(os.path.abspath(in_path))
        with self._lock:
            if merge:
                combined = dict(self._objects)
                combined.update(imported)
                self._replace_all(combined)
            else:
                self._replace_all(imported)
            self._persist()
        logger.info(f"Imported {len(imported)} object(s) from {in_path} (merge={merge})")
        return len(imported)
