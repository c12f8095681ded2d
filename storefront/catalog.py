# storefront/catalog.py
import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from . import config
from .errors import NotFoundError
from .normalize import (
    collections_index,
    normalize_collection,
    normalize_product,
    resolve_lookup,
)
from .schemas import CatalogFilter, CatalogPage, Collection, Product
from .store import COLLECTIONS, PRODUCTS, DocumentStore


def _unique(values: Iterable[str]) -> List[str]:
    seen, out = set(), []
    for v in values:
        if v and v not in seen:
            seen.add(v)
            out.append(v)
    return out


def _price(product: Product) -> float:
    variant = product.default_variant
    try:
        return float(variant.price.amount) if variant else 0.0
    except ValueError:
        return 0.0


def _when(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def _in_collection(product: Product, key: str) -> bool:
    return any(e.node.id == key or (e.node.handle and e.node.handle == key) for e in product.collections.edges)


def _date_ok(value: Optional[str], after: Optional[str], before: Optional[str]) -> bool:
    lo, hi = _when(after), _when(before)
    if lo is None and hi is None:
        return True
    ts = _when(value)
    if ts is None:
        return False
    if lo is not None and ts < lo:
        return False
    if hi is not None and ts > hi:
        return False
    return True


def matches(product: Product, f: CatalogFilter) -> bool:
    if f.title and f.title.lower() not in product.title.lower():
        return False
    price = _price(product)
    if f.min_price is not None and price < f.min_price:
        return False
    if f.max_price is not None and price > f.max_price:
        return False
    if f.vendor and product.vendor != f.vendor:
        return False
    if f.product_type and product.product_type != f.product_type:
        return False
    if f.tags and not all(t in product.tags for t in f.tags):
        return False
    if f.availability:
        available = any(e.node.available_for_sale for e in product.variants.edges)
        if f.availability == "in_stock" and not available:
            return False
        if f.availability == "out_of_stock" and available:
            return False
    if f.collection and not _in_collection(product, f.collection):
        return False
    if not _date_ok(product.created_at, f.created_after, f.created_before):
        return False
    if not _date_ok(product.updated_at, f.updated_after, f.updated_before):
        return False
    return True


_OLDEST = datetime.min.replace(tzinfo=timezone.utc)

SORTS: Dict[str, Callable[[List[Product]], List[Product]]] = {
    "price_asc": lambda ps: sorted(ps, key=_price),
    "price_desc": lambda ps: sorted(ps, key=_price, reverse=True),
    "title_asc": lambda ps: sorted(ps, key=lambda p: p.title.lower()),
    "title_desc": lambda ps: sorted(ps, key=lambda p: p.title.lower(), reverse=True),
    "created_newest": lambda ps: sorted(ps, key=lambda p: _when(p.created_at) or _OLDEST, reverse=True),
    "created_oldest": lambda ps: sorted(ps, key=lambda p: _when(p.created_at) or _OLDEST),
}


def load_products(store: DocumentStore) -> List[Product]:
    """Every stored product, normalized, with collection refs refreshed."""
    known = collections_index(store.find(COLLECTIONS))
    return [normalize_product(doc, known) for doc in store.find(PRODUCTS)]


def list_catalog(store: DocumentStore, filter: Optional[CatalogFilter] = None) -> CatalogPage:
    """
    Merged remote + local catalog.

    Tags, vendors and product types are unions over the whole store, so the
    filter panel always offers every value regardless of the current filter.
    """
    f = filter or CatalogFilter()
    products = load_products(store)

    tags = _unique(t for p in products for t in p.tags)
    vendors = _unique(p.vendor for p in products)
    product_types = _unique(p.product_type for p in products)

    selected = [p for p in products if matches(p, f)]
    if f.sort_by in SORTS:
        selected = SORTS[f.sort_by](selected)
    elif f.sort_by:
        logging.warning(f"Unknown sort '{f.sort_by}', keeping storage order")

    per_page = f.per_page or config.PRODUCTS_PER_PAGE
    total = len(selected)
    total_pages = max(1, math.ceil(total / per_page)) if per_page > 0 else 1
    page = min(max(1, f.page), total_pages)
    if per_page > 0:
        start = (page - 1) * per_page
        selected = selected[start:start + per_page]

    return CatalogPage(
        products=selected,
        tags=tags,
        vendors=vendors,
        product_types=product_types,
        total=total,
        page=page,
        total_pages=total_pages,
    )


def get_product(store: DocumentStore, key: Any) -> Product:
    doc = store.find_one(PRODUCTS, resolve_lookup(key))
    if not doc:
        raise NotFoundError("Product not found")
    known = collections_index(store.find(COLLECTIONS))
    return normalize_product(doc, known)


def get_product_by_handle(store: DocumentStore, handle: str, remote=None) -> Product:
    """Local document first, then the remote catalog when a client is given."""
    doc = store.find_one(PRODUCTS, {"handle": handle})
    if doc:
        return normalize_product(doc, collections_index(store.find(COLLECTIONS)))
    if remote is not None:
        node = (remote.get_product_by_handle(handle) or {}).get("product")
        if node:
            return normalize_product({**node, "source": "remote"})
    raise NotFoundError(f"Product not found for handle={handle}")


def list_collections(store: DocumentStore) -> List[Collection]:
    collections = [normalize_collection(doc) for doc in store.find(COLLECTIONS)]
    return sorted(collections, key=lambda c: c.title)
