import copy
import os

# Settings are read at import time; pin them before storefront is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SYNC_ON_READ"] = "false"
os.environ["SYNC_DRAIN_PAGES"] = "false"
os.environ.pop("SHOPIFY_STORE_DOMAIN", None)
os.environ.pop("SHOPIFY_STOREFRONT_ACCESS_TOKEN", None)

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.db import Base, make_engine
from storefront.models import Document  # noqa: F401
from storefront.store import DocumentStore

SHOES = {
    "id": "gid://shopify/Collection/1",
    "title": "Shoes",
    "handle": "shoes",
    "description": "Everything for your feet",
}

RUNNER = {
    "id": "gid://shopify/Product/1",
    "title": "Trail Runner",
    "handle": "trail-runner",
    "description": "Grippy",
    "productType": "Shoes",
    "vendor": "Acme",
    "tags": ["run", "outdoor"],
    "collections": {"edges": [{"node": {"id": SHOES["id"], "title": "Shoes", "handle": "shoes"}}]},
    "variants": {
        "edges": [
            {
                "node": {
                    "id": "gid://shopify/ProductVariant/1",
                    "title": "42",
                    "price": {"amount": "1999.0", "currencyCode": "CZK"},
                    "compareAtPrice": None,
                    "sku": "RUN-42",
                    "availableForSale": True,
                }
            }
        ]
    },
    "images": {"edges": [{"node": {"url": "https://cdn.example/runner.jpg", "altText": "Runner"}}]},
}


class FakeRemote:
    """
    In-memory stand-in for the Storefront client. Each kind is served as a list
    of pages; page i is requested with cursor "<kind>-<i>" (page 0 with None).
    """

    def __init__(self, collections=None, products=None, collection_pages=None, product_pages=None,
                 fail_on=None, by_handle=None):
        self.pages = {
            "collections": collection_pages if collection_pages is not None else [collections or []],
            "products": product_pages if product_pages is not None else [products or []],
        }
        self.fail_on = fail_on
        self.by_handle = by_handle or {}
        self.calls = []

    def _page(self, kind, cursor):
        self.calls.append((kind, cursor))
        if self.fail_on == kind:
            raise RuntimeError(f"{kind} endpoint down")
        index = 0 if cursor is None else int(cursor.rsplit("-", 1)[1])
        pages = self.pages[kind]
        has_next = index + 1 < len(pages)
        return {
            kind: {
                "edges": [{"node": n, "cursor": f"{kind}-{index}-{i}"} for i, n in enumerate(pages[index])],
                "pageInfo": {"hasNextPage": has_next, "endCursor": f"{kind}-{index + 1}" if has_next else None},
            }
        }

    def list_collections(self, cursor=None):
        return self._page("collections", cursor)

    def list_products(self, cursor=None):
        return self._page("products", cursor)

    def get_product_by_handle(self, handle):
        return {"product": self.by_handle.get(handle)}


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    s = SessionLocal()
    yield s
    s.close()


@pytest.fixture
def store(session):
    return DocumentStore(session)


@pytest.fixture
def fake_remote():
    return FakeRemote


@pytest.fixture
def shoes():
    return dict(SHOES)


@pytest.fixture
def runner():
    return copy.deepcopy(RUNNER)
