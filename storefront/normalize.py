# storefront/normalize.py
"""
Turn stored or fetched catalog payloads into the canonical Product / Collection
shapes.

Documents reach us in several generations of layout: Storefront API graphs
({edges:[{node}]}), bare arrays written by older admin forms, single objects
and missing sub-objects. Every public function here is pure and total: bad
input degrades to defaults instead of raising.
"""
import re
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import unquote

from .config import CURRENCY_CODE
from .schemas import (
    Collection,
    CollectionConnection,
    CollectionEdge,
    CollectionRef,
    Image,
    ImageConnection,
    ImageEdge,
    Money,
    Product,
    Source,
    Variant,
    VariantConnection,
    VariantEdge,
)

REMOTE_ID_PREFIX = "gid://"
# Storage ids are signed 64-bit integers
MAX_STORAGE_ID = 2**63 - 1

_RE_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_RE_TRAILING_NEWLINES = re.compile(r"(?:%0A|%0D)+$", re.IGNORECASE)
_CTRL = ''.join(map(chr, list(range(0, 32)) + [127]))
_CTRL_TABLE = str.maketrans('', '', _CTRL)

_REMOTE_SOURCES = {"remote", "shopify"}
_LOCAL_SOURCES = {"local", "custom", "mongodb"}


class Shape(str, Enum):
    """Layout of a nested list field as found in a raw payload."""
    MISSING = "missing"
    EDGES = "edges"      # {edges: [{node: ...}]}
    LIST = "list"        # [item, ...]
    SINGLE = "single"    # {url, altText} (images only)
    UNKNOWN = "unknown"


def classify(raw: Any, allow_single: bool = False) -> Shape:
    if raw is None:
        return Shape.MISSING
    if isinstance(raw, list):
        return Shape.LIST
    if isinstance(raw, dict):
        if isinstance(raw.get("edges"), list):
            return Shape.EDGES
        if allow_single and "url" in raw:
            return Shape.SINGLE
    return Shape.UNKNOWN


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _int_or_none(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip() or "0")
    except (TypeError, ValueError):
        return None


def _edge_nodes(raw: Dict[str, Any]) -> List[Any]:
    return [e.get("node") if isinstance(e, dict) else None for e in raw.get("edges", [])]


# ---------------------------------------------------------
# Handles and lookup keys
# ---------------------------------------------------------
def derive_handle(title: str) -> str:
    """'Men's Running Shoes!!' -> 'men-s-running-shoes'"""
    return _RE_NON_ALNUM.sub("-", _text(title).lower()).strip("-")


def clean_key(raw: Any) -> str:
    """
    Normalize an id taken from a query string:
      - Strip whitespace, quotes, encoded newlines (%0A/%0D)
      - Decode URL-encoded chars
      - Remove control / zero-width chars
    """
    if raw is None:
        return ""
    s = str(raw).strip().strip('"').strip("'")
    s = _RE_TRAILING_NEWLINES.sub('', s)
    s = unquote(s)
    s = s.replace('\u200b', '').replace('\ufeff', '')
    s = s.translate(_CTRL_TABLE)
    return s.strip()


def resolve_lookup(raw: Any) -> Dict[str, Any]:
    """
    Build the store filter for an id that may address either source.

    Remote ids (gid://...) match the logical id; anything made of
    ASCII digits that fits a storage id matches the storage id; everything else is used verbatim as the
    logical id.
    """
    key = clean_key(raw)
    if key.startswith(REMOTE_ID_PREFIX):
        return {"id": key}
    if key.isascii() and key.isdigit() and int(key) <= MAX_STORAGE_ID:
        return {"_id": int(key)}
    return {"id": key}


# ---------------------------------------------------------
# Images
# ---------------------------------------------------------
def _image(item: Any) -> Optional[Image]:
    if isinstance(item, str):
        return Image(url=item) if item else None
    if isinstance(item, dict):
        alt = item.get("altText")
        return Image(url=_text(item.get("url")), alt_text=None if alt is None else str(alt))
    return None


def normalize_images(raw: Any) -> ImageConnection:
    shape = classify(raw, allow_single=True)
    if shape is Shape.EDGES:
        items = _edge_nodes(raw)
    elif shape is Shape.LIST:
        items = raw
    elif shape is Shape.SINGLE:
        items = [raw]
    elif shape in (Shape.MISSING, Shape.UNKNOWN):
        items = []
    else:  # pragma: no cover
        raise AssertionError(f"unhandled image shape {shape}")
    images = [img for img in (_image(i) for i in items) if img is not None]
    return ImageConnection(edges=[ImageEdge(node=img) for img in images])


# ---------------------------------------------------------
# Variants
# ---------------------------------------------------------
def money(raw: Any, default_amount: str = "0") -> Money:
    if isinstance(raw, dict):
        amount = raw.get("amount")
        return Money(
            amount=default_amount if amount is None else str(amount),
            currency_code=_text(raw.get("currencyCode")) or CURRENCY_CODE,
        )
    if isinstance(raw, (str, int, float)) and not isinstance(raw, bool):
        return Money(amount=str(raw))
    return Money(amount=default_amount)


def default_variant(product_id: str) -> Variant:
    return Variant(
        id=f"variant-{product_id}",
        title="Default Variant",
        price=Money(amount="0"),
        sku="",
        available_for_sale=True,
    )


def normalize_variant(raw: Any, local: bool = True, fallback_id: str = "") -> Variant:
    """
    Local variants derive availability from stock; remote variants keep the
    flag they were fetched with.
    """
    node = raw if isinstance(raw, dict) else {}
    stock = _int_or_none(node.get("stockQuantity"))
    if stock is not None and stock < 0:
        stock = 0
    if local and stock is not None:
        available = stock > 0
    elif "availableForSale" in node:
        available = bool(node.get("availableForSale"))
    else:
        available = True
    compare = node.get("compareAtPrice")
    return Variant(
        id=_text(node.get("id")) or fallback_id,
        title=_text(node.get("title")),
        price=money(node.get("price")),
        compare_at_price=money(compare, default_amount="") if compare is not None else None,
        sku=_text(node.get("sku")),
        stock_quantity=stock,
        available_for_sale=available,
    )


def normalize_variants(raw: Any, product_id: str, local: bool = True) -> VariantConnection:
    shape = classify(raw)
    if shape is Shape.EDGES:
        items = _edge_nodes(raw)
    elif shape is Shape.LIST:
        items = raw
    else:
        return VariantConnection(edges=[VariantEdge(node=default_variant(product_id))])
    variants = [
        normalize_variant(item, local=local, fallback_id=f"variant-{product_id}-{i}")
        for i, item in enumerate(items)
    ]
    return VariantConnection(edges=[VariantEdge(node=v) for v in variants])


# ---------------------------------------------------------
# Collections
# ---------------------------------------------------------
def collections_index(collections: List[Dict[str, Any]]) -> Dict[str, Dict[str, str]]:
    """Map collection id (logical, else storage) -> {title, handle}."""
    index: Dict[str, Dict[str, str]] = {}
    for c in collections:
        if not isinstance(c, dict):
            continue
        cid = _text(c.get("id") or c.get("_id"))
        if cid:
            index[cid] = {"title": _text(c.get("title")), "handle": _text(c.get("handle"))}
    return index


def _collection_ref(entry: Any, known: Mapping[str, Dict[str, str]]) -> CollectionRef:
    if isinstance(entry, dict):
        cid = _text(entry.get("id"))
        embedded_title, embedded_handle = entry.get("title"), entry.get("handle")
    else:
        cid = _text(entry)
        embedded_title = embedded_handle = None
    info = known.get(cid, {})
    return CollectionRef(
        id=cid,
        title=info.get("title") or _text(embedded_title),
        handle=info.get("handle") or _text(embedded_handle),
    )


def normalize_collection_refs(
    raw: Any, collections_by_id: Optional[Mapping[str, Dict[str, str]]] = None
) -> CollectionConnection:
    known = collections_by_id or {}
    shape = classify(raw)
    if shape is Shape.EDGES:
        # An edge without a node is repaired to an empty ref
        entries = [n if isinstance(n, dict) else {"id": "", "title": ""} for n in _edge_nodes(raw)]
    elif shape is Shape.LIST:
        entries = [e for e in raw if isinstance(e, (str, dict))]
    else:
        entries = []
    return CollectionConnection(edges=[CollectionEdge(node=_collection_ref(e, known)) for e in entries])


# ---------------------------------------------------------
# Products / collections
# ---------------------------------------------------------
def product_source(raw: Dict[str, Any]) -> Source:
    src = _text(raw.get("source")).lower()
    if src in _REMOTE_SOURCES:
        return Source.REMOTE
    if src in _LOCAL_SOURCES:
        return Source.LOCAL
    if raw.get("isShopifyProduct") or raw.get("isShopifyCollection"):
        return Source.REMOTE
    if raw.get("isCustom"):
        return Source.LOCAL
    return Source.REMOTE if _text(raw.get("id")).startswith(REMOTE_ID_PREFIX) else Source.LOCAL


def normalize_tags(raw: Any) -> List[str]:
    if not isinstance(raw, list):
        return []
    return [str(t) for t in raw if t not in (None, "")]


def normalize_product(
    raw: Any, collections_by_id: Optional[Mapping[str, Dict[str, str]]] = None
) -> Product:
    doc = raw if isinstance(raw, dict) else {}
    storage_id = _text(doc.get("_id")) or None
    product_id = _text(doc.get("id")) or storage_id or ""
    source = product_source(doc)
    return Product(
        storage_id=storage_id,
        id=product_id,
        title=_text(doc.get("title")),
        description=_text(doc.get("description")),
        handle=_text(doc.get("handle")),
        product_type=_text(doc.get("productType")),
        vendor=_text(doc.get("vendor")),
        tags=normalize_tags(doc.get("tags")),
        variants=normalize_variants(doc.get("variants"), product_id, local=source is Source.LOCAL),
        images=normalize_images(doc.get("images")),
        collections=normalize_collection_refs(doc.get("collections"), collections_by_id),
        source=source,
        is_shopify_product=source is Source.REMOTE,
        is_custom=source is Source.LOCAL,
        created_at=_text(doc.get("createdAt")) or None,
        updated_at=_text(doc.get("updatedAt")) or None,
    )


def normalize_collection(raw: Any) -> Collection:
    doc = raw if isinstance(raw, dict) else {}
    storage_id = _text(doc.get("_id")) or None
    source = product_source(doc)
    return Collection(
        storage_id=storage_id,
        id=_text(doc.get("id")) or storage_id or "",
        title=_text(doc.get("title")),
        handle=_text(doc.get("handle")),
        description=_text(doc.get("description")),
        source=source,
        is_shopify_collection=source is Source.REMOTE,
        created_at=_text(doc.get("createdAt")) or None,
        updated_at=_text(doc.get("updatedAt")) or None,
    )
