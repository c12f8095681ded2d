import pytest

from storefront.catalog import (
    get_product,
    get_product_by_handle,
    list_catalog,
    list_collections,
)
from storefront.errors import NotFoundError
from storefront.schemas import CatalogFilter
from storefront.store import COLLECTIONS, PRODUCTS
from storefront.sync import CatalogSynchronizer


def _local(pid, title, price="0", stock=1, vendor="", tags=None, collections=None, created="2024-01-01T00:00:00+00:00"):
    return {
        "id": pid,
        "title": title,
        "vendor": vendor,
        "tags": tags or [],
        "source": "local",
        "isCustom": True,
        "variants": {"edges": [{"node": {
            "id": f"variant-{pid}",
            "price": {"amount": price, "currencyCode": "CZK"},
            "stockQuantity": stock,
            "availableForSale": stock > 0,
        }}]},
        "collections": {"edges": [{"node": {"id": c, "title": ""}} for c in (collections or [])]},
        "createdAt": created,
        "updatedAt": created,
    }


@pytest.fixture
def catalog(store, fake_remote, shoes, runner):
    CatalogSynchronizer(fake_remote(collections=[shoes], products=[runner]), store).synchronize()
    summer_id = store.insert_one(COLLECTIONS, {"title": "Summer", "handle": "summer", "source": "local"})
    store.insert_many(PRODUCTS, [
        _local("custom-1", "Beach Towel", price="250", vendor="Local Crafts", tags=["outdoor", "summer"],
               collections=[summer_id], created="2024-03-01T00:00:00+00:00"),
        _local("custom-2", "Coffee Mug", price="120", stock=0, tags=["kitchen"],
               created="2024-02-01T00:00:00+00:00"),
    ])
    return store


def test_tags_and_vendors_are_unions_across_sources(catalog):
    page = list_catalog(catalog)

    assert page.total == 3
    assert set(page.tags) == {"run", "outdoor", "summer", "kitchen"}
    assert len(page.tags) == 4
    assert set(page.vendors) == {"Acme", "Local Crafts"}
    assert set(page.product_types) == {"Shoes"}


def test_tag_aggregation_deduplicates(store):
    store.insert_many(PRODUCTS, [{"id": "a", "tags": ["a", "b"]}, {"id": "b", "tags": ["b", "c"]}])
    assert set(list_catalog(store).tags) == {"a", "b", "c"}


def test_aggregates_ignore_the_filter(catalog):
    page = list_catalog(catalog, CatalogFilter(vendor="Acme"))
    assert [p.title for p in page.products] == ["Trail Runner"]
    assert "Local Crafts" in page.vendors


def test_collection_refs_are_refreshed_from_collection_table(catalog):
    towel = next(p for p in list_catalog(catalog).products if p.id == "custom-1")
    assert towel.collections.edges[0].node.title == "Summer"
    assert towel.collections.edges[0].node.handle == "summer"


@pytest.mark.parametrize(
    "flt, expected",
    [
        (CatalogFilter(title="mug"), ["Coffee Mug"]),
        (CatalogFilter(min_price=200), ["Trail Runner", "Beach Towel"]),
        (CatalogFilter(max_price=200), ["Coffee Mug"]),
        (CatalogFilter(tags=["outdoor"]), ["Trail Runner", "Beach Towel"]),
        (CatalogFilter(tags=["outdoor", "summer"]), ["Beach Towel"]),
        (CatalogFilter(availability="out_of_stock"), ["Coffee Mug"]),
        (CatalogFilter(availability="in_stock"), ["Trail Runner", "Beach Towel"]),
        (CatalogFilter(collection="gid://shopify/Collection/1"), ["Trail Runner"]),
        (CatalogFilter(collection="summer"), ["Beach Towel"]),
        (CatalogFilter(product_type="Shoes"), ["Trail Runner"]),
        (CatalogFilter(created_after="2024-01-15", created_before="2024-02-15"), ["Coffee Mug"]),
    ],
)
def test_filters(catalog, flt, expected):
    assert [p.title for p in list_catalog(catalog, flt).products] == expected


def test_sorting(catalog):
    by_price = list_catalog(catalog, CatalogFilter(sort_by="price_asc")).products
    assert [p.title for p in by_price] == ["Coffee Mug", "Beach Towel", "Trail Runner"]

    by_title = list_catalog(catalog, CatalogFilter(sort_by="title_desc")).products
    assert [p.title for p in by_title] == ["Trail Runner", "Coffee Mug", "Beach Towel"]

    newest = list_catalog(catalog, CatalogFilter(sort_by="created_newest")).products
    assert newest[0].title == "Trail Runner"


def test_pagination(catalog):
    first = list_catalog(catalog, CatalogFilter(per_page=2, page=1))
    second = list_catalog(catalog, CatalogFilter(per_page=2, page=2))
    beyond = list_catalog(catalog, CatalogFilter(per_page=2, page=9))

    assert (first.total, first.total_pages) == (3, 2)
    assert len(first.products) == 2
    assert len(second.products) == 1
    assert beyond.page == 2


def test_get_product_by_logical_or_storage_id(catalog):
    remote = get_product(catalog, "gid://shopify/Product/1")
    assert remote.title == "Trail Runner"

    local = get_product(catalog, "custom-2")
    assert get_product(catalog, local.storage_id).id == "custom-2"

    with pytest.raises(NotFoundError):
        get_product(catalog, "custom-404")


def test_get_product_by_handle_falls_back_to_remote(store, fake_remote, runner):
    remote = fake_remote(by_handle={"fresh": dict(runner, handle="fresh", id="gid://shopify/Product/77")})
    store.insert_one(PRODUCTS, _local("custom-1", "Towel") | {"handle": "towel"})

    assert get_product_by_handle(store, "towel", remote).id == "custom-1"
    fetched = get_product_by_handle(store, "fresh", remote)
    assert fetched.id == "gid://shopify/Product/77"
    assert fetched.is_shopify_product is True
    with pytest.raises(NotFoundError):
        get_product_by_handle(store, "nope", remote)
    with pytest.raises(NotFoundError):
        get_product_by_handle(store, "fresh")


def test_list_collections_sorted_by_title(catalog):
    collections = list_collections(catalog)
    assert [c.title for c in collections] == ["Shoes", "Summer"]
    assert [c.source.value for c in collections] == ["remote", "local"]
