import logging
from typing import Optional

from fastapi import Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from . import config
from .db import get_db
from .errors import RemoteCatalogError, SyncError
from .shopify_client import ShopifyStorefrontClient
from .store import DocumentStore
from .sync import CatalogSynchronizer

_remote: Optional[ShopifyStorefrontClient] = None


def add_cors(app, origins=None):
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or config.CORS_ORIGINS or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def get_store(db: Session = Depends(get_db)) -> DocumentStore:
    return DocumentStore(db)


def get_remote() -> Optional[ShopifyStorefrontClient]:
    """Process-wide Storefront client, or None when credentials are not configured."""
    global _remote
    if _remote is None:
        try:
            _remote = ShopifyStorefrontClient()
        except RemoteCatalogError as e:
            logging.warning(f"Shopify storefront unavailable: {e.message}")
            return None
    return _remote


def get_synchronizer(
    store: DocumentStore = Depends(get_store),
    remote=Depends(get_remote),
) -> CatalogSynchronizer:
    if remote is None:
        raise SyncError("Shopify storefront is not configured")
    return CatalogSynchronizer(remote, store)
