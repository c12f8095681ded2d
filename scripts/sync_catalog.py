# scripts/sync_catalog.py
import sys

from sqlalchemy.orm import Session

from storefront.db import Base, engine
from storefront.errors import CatalogError
from storefront.models import Document  # noqa: F401
from storefront.shopify_client import ShopifyStorefrontClient
from storefront.store import DocumentStore
from storefront.sync import CatalogSynchronizer, KeepLatestDuplicates

Base.metadata.create_all(bind=engine)


def main(argv):
    """Usage: python -m scripts.sync_catalog [--all-pages | --cleanup-only]"""
    drain = "--all-pages" in argv
    with Session(engine) as session:
        store = DocumentStore(session)
        try:
            if "--cleanup-only" in argv:
                removed = KeepLatestDuplicates(store).cleanup_duplicates()
                print(f"✅ Removed {removed} duplicate product documents.")
                return 0
            result = CatalogSynchronizer(ShopifyStorefrontClient(), store, drain_pages=drain).synchronize()
        except CatalogError as e:
            print(f"❌ Sync failed: {e.message}")
            return 1
    print(f"✅ Synced {result.collections_processed} collections and {result.products_processed} products.")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
