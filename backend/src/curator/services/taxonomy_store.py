"""
Read-mostly access to the technique taxonomy, with a TTL cache and bulk load.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from backend.src.curator.database.models.taxonomy import TaxonomyNode

logger = logging.getLogger(__name__)

MAX_ANCESTOR_HOPS = 3
VALID_LEVELS = (1, 2, 3)


class TaxonomyValidationError(ValueError):
    """A bulk taxonomy payload is malformed."""


@dataclass(frozen=True)
class TaxonomyNodeRecord:
    """Session-detached copy of a taxonomy node."""

    id: int
    name: str
    slug: str
    level: int
    parent_id: Optional[int]


class TaxonomySnapshot:
    """Immutable view of the whole tree, ordered by (level, id)."""

    def __init__(self, nodes: Iterable[TaxonomyNodeRecord]):
        self.nodes: Tuple[TaxonomyNodeRecord, ...] = tuple(
            sorted(nodes, key=lambda n: (n.level, n.id))
        )
        self._by_id = {n.id: n for n in self.nodes}
        self._by_slug = {n.slug: n for n in self.nodes}

    def __len__(self) -> int:
        return len(self.nodes)

    def by_id(self, node_id: int) -> Optional[TaxonomyNodeRecord]:
        return self._by_id.get(node_id)

    def by_slug(self, slug: str) -> Optional[TaxonomyNodeRecord]:
        return self._by_slug.get(slug)

    def by_level(self, level: int) -> List[TaxonomyNodeRecord]:
        return [n for n in self.nodes if n.level == level]

    def level1_ancestor(self, node_id: int) -> Optional[TaxonomyNodeRecord]:
        """
        Walk parent links up to the level-1 node.

        Returns None if the chain is broken or longer than MAX_ANCESTOR_HOPS.
        """
        node = self._by_id.get(node_id)
        hops = 0
        while node is not None and hops <= MAX_ANCESTOR_HOPS:
            if node.level == 1:
                return node
            if node.parent_id is None:
                return None
            node = self._by_id.get(node.parent_id)
            hops += 1
        return None


class TaxonomyCache:
    """Holds one snapshot for ``ttl_seconds``; ``invalidate`` drops it early."""

    def __init__(
        self,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: Optional[TaxonomySnapshot] = None
        self._loaded_at = 0.0
        self._lock = threading.Lock()

    def get(self, loader: Callable[[], TaxonomySnapshot]) -> TaxonomySnapshot:
        with self._lock:
            now = self._clock()
            if self._value is not None and now - self._loaded_at < self.ttl_seconds:
                return self._value

            self._value = loader()
            self._loaded_at = now
            return self._value

    def age(self) -> Optional[float]:
        """Seconds since the held snapshot was loaded, or None when cold."""
        with self._lock:
            if self._value is None:
                return None
            return self._clock() - self._loaded_at

    def invalidate(self) -> None:
        with self._lock:
            self._value = None
            self._loaded_at = 0.0


class TaxonomyStore:
    """Taxonomy reads go through the cache; writes invalidate it."""

    def __init__(self, cache: Optional[TaxonomyCache] = None):
        self.cache = cache or TaxonomyCache()

    def snapshot(self, db: Session) -> TaxonomySnapshot:
        """Get the (possibly cached) taxonomy tree."""
        return self.cache.get(lambda: self._load(db))

    def invalidate(self) -> None:
        """Drop the cached tree. Must be called after any taxonomy write."""
        self.cache.invalidate()
        logger.info("Taxonomy cache invalidated")

    def _load(self, db: Session) -> TaxonomySnapshot:
        rows = db.query(TaxonomyNode).order_by(TaxonomyNode.level, TaxonomyNode.id)
        snapshot = TaxonomySnapshot(
            TaxonomyNodeRecord(
                id=row.id,
                name=row.name,
                slug=row.slug,
                level=row.level,
                parent_id=row.parent_id,
            )
            for row in rows
        )
        logger.debug(f"Loaded {len(snapshot)} taxonomy nodes")
        return snapshot

    def bulk_load(
        self, db: Session, entries: Iterable[Mapping[str, Any]]
    ) -> Dict[str, int]:
        """
        Load or replace taxonomy nodes, keyed by slug.

        Args:
            db: Database session
            entries: Dicts with name, slug, level and optional parent_slug

        Returns:
            Dict with created/updated counts

        Raises:
            TaxonomyValidationError: If the payload is inconsistent (nothing is written)
        """
        entries = [dict(e) for e in entries]
        existing = {n.slug: n for n in db.query(TaxonomyNode).all()}
        levels = self._validate(entries, existing)

        created = 0
        updated = 0
        nodes: Dict[str, TaxonomyNode] = dict(existing)

        try:
            # Parents first so children can point at them
            for entry in sorted(entries, key=lambda e: levels[e["slug"]]):
                slug = entry["slug"]
                node = nodes.get(slug)
                if node is None:
                    node = TaxonomyNode(slug=slug)
                    db.add(node)
                    nodes[slug] = node
                    created += 1
                else:
                    updated += 1

                node.name = entry["name"]
                node.level = levels[slug]
                parent_slug = entry.get("parent_slug")
                node.parent = nodes[parent_slug] if parent_slug else None
                db.flush()

            db.commit()
        except Exception:
            db.rollback()
            raise

        self.invalidate()
        logger.info(f"Taxonomy bulk load: {created} created, {updated} updated")
        return {"created": created, "updated": updated}

    def load_file(self, db: Session, path: str) -> Dict[str, int]:
        """Bulk load from a JSON file holding a list of nodes or {"nodes": [...]}."""
        with open(Path(path), encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("nodes", [])
        return self.bulk_load(db, data)

    def _validate(
        self, entries: List[Dict[str, Any]], existing: Mapping[str, TaxonomyNode]
    ) -> Dict[str, int]:
        levels: Dict[str, int] = {}
        for entry in entries:
            slug = entry.get("slug")
            if not slug or not entry.get("name"):
                raise TaxonomyValidationError(f"Node missing slug or name: {entry}")
            if slug in levels:
                raise TaxonomyValidationError(f"Duplicate slug in payload: {slug}")
            try:
                level = int(entry.get("level"))
            except (TypeError, ValueError):
                raise TaxonomyValidationError(f"Invalid level for {slug}")
            if level not in VALID_LEVELS:
                raise TaxonomyValidationError(f"Invalid level {level} for {slug}")
            levels[slug] = level

        for entry in entries:
            slug = entry["slug"]
            parent_slug = entry.get("parent_slug")
            if levels[slug] == 1:
                if parent_slug:
                    raise TaxonomyValidationError(
                        f"Level-1 node {slug} cannot have a parent"
                    )
                continue

            if not parent_slug:
                raise TaxonomyValidationError(f"Node {slug} needs a parent_slug")
            if parent_slug in levels:
                parent_level = levels[parent_slug]
            elif parent_slug in existing:
                parent_level = existing[parent_slug].level
            else:
                raise TaxonomyValidationError(
                    f"Unknown parent {parent_slug} for {slug}"
                )
            if parent_level != levels[slug] - 1:
                raise TaxonomyValidationError(
                    f"Node {slug} (level {levels[slug]}) cannot sit under "
                    f"{parent_slug} (level {parent_level})"
                )

        return levels
