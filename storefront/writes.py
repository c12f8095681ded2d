# storefront/writes.py
"""Mutations for locally-managed products, variants and collections."""
import logging
import time
from typing import Any, Dict, List, Optional

from .config import CURRENCY_CODE
from .errors import NotFoundError, ValidationError
from .normalize import (
    Shape,
    classify,
    clean_key,
    collections_index,
    derive_handle,
    normalize_collection,
    normalize_images,
    normalize_product,
    normalize_tags,
    normalize_variant,
    normalize_variants,
    product_source,
    resolve_lookup,
)
from .schemas import (
    Collection,
    CollectionInput,
    Product,
    ProductCreate,
    ProductUpdate,
    Source,
    Variant,
    VariantInput,
)
from .store import COLLECTIONS, PRODUCTS, DocumentStore, now_iso


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def _require_title(title: Optional[str]) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    return title


def _stock(value: Optional[int]) -> int:
    if value is None:
        return 0
    if value < 0:
        raise ValidationError("Stock quantity cannot be negative")
    return value


def _unused_product_id(store: DocumentStore) -> str:
    ts = _timestamp_ms()
    # Two creates inside the same millisecond would otherwise share an id
    while store.find_one(PRODUCTS, {"id": f"custom-{ts}"}):
        ts += 1
    return f"custom-{ts}"


def _unused_variant_id(taken: List[str]) -> str:
    ts = _timestamp_ms()
    while f"variant-{ts}" in taken:
        ts += 1
    return f"variant-{ts}"


def collection_edges(items: List[CollectionInput]) -> Dict[str, Any]:
    """String ids or {id, title} objects -> {edges: [{node: {id, title}}]}."""
    edges = []
    for item in items or []:
        if isinstance(item, str):
            edges.append({"node": {"id": item, "title": ""}})
        elif isinstance(item, dict):
            edges.append({"node": {"id": str(item.get("id") or ""), "title": str(item.get("title") or "")}})
    return {"edges": edges}


def variant_document(variant_id: str, data: VariantInput, title: str) -> Dict[str, Any]:
    stock = _stock(data.stock_quantity)
    return {
        "id": variant_id,
        "title": title,
        "price": {"amount": data.price or "0", "currencyCode": CURRENCY_CODE},
        "compareAtPrice": {"amount": data.compare_at_price or "", "currencyCode": CURRENCY_CODE},
        "sku": data.sku or "",
        "stockQuantity": stock,
        "availableForSale": stock > 0,
    }


# ---------------------------------------------------------
# Products
# ---------------------------------------------------------
def create_product(store: DocumentStore, payload: ProductCreate) -> Product:
    title = _require_title(payload.title)
    product_id = _unused_product_id(store)
    now = now_iso()
    doc = {
        "id": product_id,
        "title": title,
        "description": payload.description or "",
        "handle": derive_handle(title),
        "productType": payload.product_type or "",
        "vendor": payload.vendor or "",
        "tags": normalize_tags(payload.tags),
        "variants": {
            "edges": [{"node": variant_document(f"variant-{_timestamp_ms()}", payload, "Default Variant")}]
        },
        "images": normalize_images(payload.images).to_document(),
        "collections": collection_edges(payload.collections),
        "createdAt": now,
        "updatedAt": now,
        "source": Source.LOCAL.value,
        "isCustom": True,
        "isShopifyProduct": False,
    }
    storage_id = store.insert_one(PRODUCTS, doc)
    logging.info(f"✅ Created product {product_id} ('{title}')")
    return normalize_product({**doc, "_id": storage_id}, collections_index(store.find(COLLECTIONS)))


def add_variant(store: DocumentStore, parent_id: str, payload: VariantInput) -> Variant:
    parent_id = clean_key(parent_id)
    parent = store.find_one(PRODUCTS, {"id": parent_id})
    if not parent:
        raise NotFoundError("Product not found")

    local = product_source(parent) is Source.LOCAL
    current = normalize_variants(parent.get("variants"), parent_id, local=local).to_document()["edges"]
    variant_id = _unused_variant_id([e["node"]["id"] for e in current])
    variant = variant_document(variant_id, payload, (payload.title or "").strip())
    now = now_iso()
    if classify(parent.get("variants")) is Shape.EDGES:
        store.update_one(
            PRODUCTS, {"id": parent_id},
            push={"variants.edges": {"node": variant}},
            set_fields={"updatedAt": now},
        )
    else:
        # Legacy document: materialize its implicit variants before appending
        store.update_one(
            PRODUCTS, {"id": parent_id},
            set_fields={"variants": {"edges": current + [{"node": variant}]}, "updatedAt": now},
        )
    logging.info(f"Added variant {variant['id']} to {parent_id}")
    return normalize_variant(variant, local=True)


def delete_variant(store: DocumentStore, product_id: str, variant_id: str) -> None:
    """The default (first) variant, and therefore a sole variant, is never deletable."""
    product_id = clean_key(product_id)
    doc = store.find_one(PRODUCTS, {"id": product_id})
    if not doc:
        raise NotFoundError("Product not found")

    local = product_source(doc) is Source.LOCAL
    variants = normalize_variants(doc.get("variants"), product_id, local=local)
    ids = [e.node.id for e in variants.edges]
    if variant_id not in ids:
        raise NotFoundError("Variant not found")
    if len(ids) == 1:
        raise ValidationError("Cannot delete the only variant of a product")
    if ids.index(variant_id) == 0:
        raise ValidationError("The default variant cannot be deleted")

    raw = doc.get("variants")
    if classify(raw) is Shape.EDGES:
        remaining = [e for e in raw["edges"] if not (isinstance(e, dict) and (e.get("node") or {}).get("id") == variant_id)]
    else:
        remaining = [e for e in variants.to_document()["edges"] if e["node"]["id"] != variant_id]
    store.update_one(
        PRODUCTS, {"id": product_id},
        set_fields={"variants": {"edges": remaining}, "updatedAt": now_iso()},
    )
    logging.info(f"Deleted variant {variant_id} from {product_id}")


def update_product(store: DocumentStore, key: str, payload: ProductUpdate) -> Product:
    query = resolve_lookup(key)
    existing = store.find_one(PRODUCTS, query)
    if not existing:
        raise NotFoundError("Product not found")
    title = _require_title(payload.title)

    updates: Dict[str, Any] = {
        "title": title,
        "description": payload.description or "",
        "vendor": payload.vendor or "",
        "productType": payload.product_type or "",
        "tags": normalize_tags(payload.tags),
        "collections": collection_edges(payload.collections),
        "updatedAt": now_iso(),
    }

    local = product_source(existing) is Source.LOCAL
    product_id = existing.get("id") or existing["_id"]
    raw_variants = payload.variants if payload.variants is not None else existing.get("variants")
    if payload.variants is not None or payload.stock_quantity is not None:
        edges = normalize_variants(raw_variants, product_id, local=local).to_document()["edges"]
        if payload.stock_quantity is not None and edges:
            stock = _stock(payload.stock_quantity)
            edges[0]["node"]["stockQuantity"] = stock
            edges[0]["node"]["availableForSale"] = stock > 0
        updates["variants"] = {"edges": edges}

    store.update_one(PRODUCTS, query, set_fields=updates)
    logging.info(f"Updated product {product_id}")
    return normalize_product({**existing, **updates}, collections_index(store.find(COLLECTIONS)))


def delete_product(store: DocumentStore, product_id: str) -> int:
    """Delete every local document with this logical id; Shopify products are read-only here."""
    product_id = clean_key(product_id)
    docs = store.find(PRODUCTS, {"id": product_id})
    # Older custom documents carry only the isCustom flag, no source field
    local_ids = [d["_id"] for d in docs if product_source(d) is Source.LOCAL]
    if local_ids:
        deleted = store.delete_many(PRODUCTS, {"_id": {"$in": local_ids}})
        logging.info(f"Deleted product {product_id}")
        return deleted
    if docs:
        raise ValidationError("Shopify products cannot be deleted")
    raise NotFoundError("Product not found")


# ---------------------------------------------------------
# Collections
# ---------------------------------------------------------
def create_collection(store: DocumentStore, title: Optional[str]) -> Collection:
    title = _require_title(title)
    now = now_iso()
    doc = {
        "title": title,
        "description": "",
        "handle": derive_handle(title),
        "products": {"edges": []},
        "source": Source.LOCAL.value,
        "isShopifyCollection": False,
        "createdAt": now,
        "updatedAt": now,
    }
    storage_id = store.insert_one(COLLECTIONS, doc)
    logging.info(f"✅ Created collection {storage_id} ('{title}')")
    return normalize_collection({**doc, "_id": storage_id})
