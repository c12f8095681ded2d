# storefront/sync.py
"""
Reconcile the remote Shopify catalog into the local store.

A run upserts every remote collection and product by its remote id and heals
duplicate product documents before and after. Nothing here is atomic or
locked: two runs may interleave, earlier upserts survive a later failure, and
the duplicate cleanup converges the store on the next run.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Protocol

from . import config
from .errors import SyncError
from .normalize import money, normalize_collection_refs, normalize_images, normalize_tags
from .shopify_client import next_cursor
from .store import COLLECTIONS, PRODUCTS, DocumentStore, now_iso


class RemoteCatalog(Protocol):
    def list_products(self, cursor: Optional[str] = None) -> Dict[str, Any]: ...

    def list_collections(self, cursor: Optional[str] = None) -> Dict[str, Any]: ...


class DuplicateResolver(Protocol):
    def cleanup_duplicates(self) -> int: ...


class SyncResult(NamedTuple):
    collections_processed: int
    products_processed: int


# ---------------------------------------------------------
# Duplicate cleanup
# ---------------------------------------------------------
def _updated_key(value: Any) -> float:
    """Sort key for updatedAt; unparseable or missing values sort oldest."""
    if not value:
        return float("-inf")
    try:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return float("-inf")
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.timestamp()


class KeepLatestDuplicates:
    """
    For every logical product id stored more than once, keep the document with
    the newest updatedAt and delete the others. On ties the document stored
    first wins.
    """

    def __init__(self, store: DocumentStore, collection: str = PRODUCTS):
        self.store = store
        self.collection = collection

    def cleanup_duplicates(self) -> int:
        removed = 0
        for group in self.store.duplicate_groups(self.collection):
            # sorted() is stable, so equal timestamps keep storage order
            ordered = sorted(group.docs, key=lambda d: _updated_key(d.get("updatedAt")), reverse=True)
            keep, rest = ordered[0], ordered[1:]
            if not rest:
                continue
            removed += self.store.delete_many(self.collection, {"_id": {"$in": [d["_id"] for d in rest]}})
            logging.info(f"Removed {len(rest)} duplicate(s) of {group.id}, kept _id={keep['_id']}")
        return removed


# ---------------------------------------------------------
# Remote -> local documents
# ---------------------------------------------------------
def _text(value: Any) -> str:
    return "" if value is None else str(value)


def remote_variant(node: Dict[str, Any]) -> Dict[str, Any]:
    available = bool(node.get("availableForSale") or False)
    compare = node.get("compareAtPrice")
    return {
        "id": _text(node.get("id")),
        "title": _text(node.get("title")),
        "price": money(node.get("price")).to_document(),
        "compareAtPrice": money(compare, default_amount="").to_document(),
        "sku": _text(node.get("sku")),
        "availableForSale": available,
        "stockQuantity": 1 if available else 0,
        "isShopifyVariant": True,
    }


def remote_product_fields(node: Dict[str, Any], now: str) -> Dict[str, Any]:
    variant_edges = ((node.get("variants") or {}).get("edges")) or []
    return {
        "title": _text(node.get("title")),
        "handle": _text(node.get("handle")),
        "description": _text(node.get("description")),
        "productType": _text(node.get("productType")),
        "vendor": _text(node.get("vendor")),
        "tags": normalize_tags(node.get("tags")),
        "isShopifyProduct": True,
        "isCustom": False,
        "source": "remote",
        "collections": normalize_collection_refs(node.get("collections")).to_document(),
        "variants": {
            "edges": [
                {"node": remote_variant(e["node"])}
                for e in variant_edges
                if isinstance(e, dict) and isinstance(e.get("node"), dict)
            ]
        },
        "images": normalize_images(node.get("images")).to_document(),
        "updatedAt": now,
    }


def remote_collection_fields(node: Dict[str, Any], now: str) -> Dict[str, Any]:
    return {
        "title": _text(node.get("title")),
        "handle": _text(node.get("handle")),
        "description": _text(node.get("description")),
        "isShopifyCollection": True,
        "source": "remote",
        "updatedAt": now,
    }


# ---------------------------------------------------------
# Engine
# ---------------------------------------------------------
class CatalogSynchronizer:
    def __init__(
        self,
        remote: RemoteCatalog,
        store: DocumentStore,
        resolver: Optional[DuplicateResolver] = None,
        drain_pages: Optional[bool] = None,
        clock: Callable[[], str] = now_iso,
    ):
        self.remote = remote
        self.store = store
        self.resolver = resolver or KeepLatestDuplicates(store)
        self.drain_pages = config.SYNC_DRAIN_PAGES if drain_pages is None else drain_pages
        self.clock = clock

    def _fetch(self, key: str, fetch: Callable[[Optional[str]], Dict[str, Any]]) -> List[Dict[str, Any]]:
        nodes: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            connection = (fetch(cursor) or {}).get(key) or {}
            for edge in connection.get("edges") or []:
                node = edge.get("node") if isinstance(edge, dict) else None
                if isinstance(node, dict):
                    nodes.append(node)
            if not self.drain_pages:
                break
            cursor = next_cursor(connection)
            if not cursor:
                break
        return nodes

    def _upsert(self, name: str, node: Dict[str, Any], fields: Dict[str, Any], now: str) -> bool:
        remote_id = _text(node.get("id"))
        if not remote_id:
            logging.warning(f"Skipping remote {name} entry without id: {node.get('title')!r}")
            return False
        self.store.update_one(
            name,
            {"id": remote_id},
            set_fields=fields,
            set_on_insert={"createdAt": now},
            upsert=True,
        )
        return True

    def synchronize(self) -> SyncResult:
        try:
            self.resolver.cleanup_duplicates()

            collections_done = 0
            for node in self._fetch("collections", self.remote.list_collections):
                now = self.clock()
                if self._upsert(COLLECTIONS, node, remote_collection_fields(node, now), now):
                    collections_done += 1

            products = self._fetch("products", self.remote.list_products)
            logging.info(f"Sync - processing {len(products)} products")
            products_done = 0
            for node in products:
                now = self.clock()
                if self._upsert(PRODUCTS, node, remote_product_fields(node, now), now):
                    products_done += 1

            self.resolver.cleanup_duplicates()
        except Exception as e:
            logging.exception(f"❌ Catalog sync failed: {e}")
            message = getattr(e, "message", None) or str(e) or "Failed to sync data"
            raise SyncError(message) from e

        logging.info(f"✅ Sync finished: {collections_done} collections, {products_done} products")
        return SyncResult(collections_done, products_done)
