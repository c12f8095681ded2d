# storefront/main.py
import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import config
from .catalog import get_product, get_product_by_handle, list_catalog, list_collections
from .db import Base, engine
from .deps import add_cors, get_remote, get_store, get_synchronizer
from .errors import CatalogError, ValidationError
from .models import Document  # noqa: F401  (registers the table)
from .schemas import (
    CatalogFilter,
    CatalogPage,
    CollectionCreate,
    CollectionsResponse,
    ProductCreate,
    ProductsResponse,
    ProductUpdate,
    SyncResponse,
)
from .store import DocumentStore
from .sync import CatalogSynchronizer
from .writes import (
    add_variant,
    create_collection,
    create_product,
    delete_product,
    delete_variant,
    update_product,
)

# ---------------------------------------------------------
# 🚀 Initialization
# ---------------------------------------------------------
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
Base.metadata.create_all(bind=engine)
app = FastAPI(title="Storefront Catalog API", version="1.0.0")
add_cors(app)


# ---------------------------------------------------------
# ❌ Error translation: every failure leaves as {"error": message}
# ---------------------------------------------------------
@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    if exc.status_code >= 500:
        logging.error(f"❌ {request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed bodies and query params answer like any other ValidationError
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query"))
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=ValidationError.status_code, content={"error": message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logging.exception(f"❌ Unhandled error in {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": str(exc) or "Internal server error"})


def catalog_filter(
    title: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    vendor: Optional[str] = None,
    product_type: Optional[str] = Query(None, alias="productType"),
    tags: List[str] = Query([]),
    availability: Optional[str] = None,
    collection: Optional[str] = None,
    created_after: Optional[str] = Query(None, alias="createdAfter"),
    created_before: Optional[str] = Query(None, alias="createdBefore"),
    updated_after: Optional[str] = Query(None, alias="updatedAfter"),
    updated_before: Optional[str] = Query(None, alias="updatedBefore"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    page: int = 1,
    per_page: Optional[int] = Query(None, alias="perPage"),
) -> CatalogFilter:
    return CatalogFilter(
        title=title, min_price=min_price, max_price=max_price, vendor=vendor,
        product_type=product_type, tags=tags, availability=availability,
        collection=collection, created_after=created_after, created_before=created_before,
        updated_after=updated_after, updated_before=updated_before,
        sort_by=sort_by, page=page, per_page=per_page,
    )


# ---------------------------------------------------------
# 🩺 Health check
# ---------------------------------------------------------
@app.get("/health")
def health():
    return {"status": "ok"}


# ---------------------------------------------------------
# 🛍️ Products
# ---------------------------------------------------------
@app.get("/api/products")
def get_products(
    id: Optional[str] = None,
    filters: CatalogFilter = Depends(catalog_filter),
    store: DocumentStore = Depends(get_store),
    remote=Depends(get_remote),
):
    if id:
        return ProductsResponse(products=[get_product(store, id)])

    if config.SYNC_ON_READ and remote is not None:
        try:
            CatalogSynchronizer(remote, store).synchronize()
        except CatalogError as e:
            # Serve whatever is stored rather than failing the read
            logging.warning(f"Sync on read failed, serving local catalog: {e.message}")
    page: CatalogPage = list_catalog(store, filters)
    return page


@app.get("/api/products/handle/{handle}", response_model=ProductsResponse)
def get_product_for_handle(
    handle: str,
    store: DocumentStore = Depends(get_store),
    remote=Depends(get_remote),
):
    return ProductsResponse(products=[get_product_by_handle(store, handle, remote)])


@app.post("/api/products")
def post_product(payload: ProductCreate, store: DocumentStore = Depends(get_store)):
    if payload.is_variant:
        if not payload.parent_product_id:
            raise ValidationError("parentProductId is required for a variant")
        variant = add_variant(store, payload.parent_product_id, payload)
        return {"success": True, "variant": variant}

    product = create_product(store, payload)
    return {"success": True, "product": product}


@app.put("/api/products")
def put_product(
    payload: ProductUpdate,
    id: Optional[str] = None,
    store: DocumentStore = Depends(get_store),
):
    if not id:
        raise ValidationError("Product ID is required")
    product = update_product(store, id, payload)
    return {"success": True, "product": product}


@app.delete("/api/products")
def remove_product(
    id: Optional[str] = None,
    variant_id: Optional[str] = Query(None, alias="variantId"),
    store: DocumentStore = Depends(get_store),
):
    if not id:
        raise ValidationError("Product ID is required")
    if variant_id:
        delete_variant(store, id, variant_id)
    else:
        delete_product(store, id)
    return {"success": True}


# ---------------------------------------------------------
# 🗂️ Collections
# ---------------------------------------------------------
@app.get("/api/collections", response_model=CollectionsResponse)
def get_collections(store: DocumentStore = Depends(get_store)):
    return CollectionsResponse(collections=list_collections(store))


@app.post("/api/collections")
def post_collection(payload: CollectionCreate, store: DocumentStore = Depends(get_store)):
    collection = create_collection(store, payload.title)
    return {"collectionId": collection.id, "title": collection.title}


# ---------------------------------------------------------
# 🔄 Sync
# ---------------------------------------------------------
@app.post("/api/sync", response_model=SyncResponse)
def sync(synchronizer: CatalogSynchronizer = Depends(get_synchronizer)):
    result = synchronizer.synchronize()
    return SyncResponse(
        collections_processed=result.collections_processed,
        products_processed=result.products_processed,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("storefront.main:app", host="0.0.0.0", port=config.PORT, log_level="info")
