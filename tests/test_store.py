from storefront.store import COLLECTIONS, PRODUCTS


def test_insert_and_find_by_logical_and_storage_id(store):
    storage_id = store.insert_one(PRODUCTS, {"id": "custom-1", "title": "Mug"})

    by_id = store.find_one(PRODUCTS, {"id": "custom-1"})
    by_pk = store.find_one(PRODUCTS, {"_id": int(storage_id)})

    assert by_id == by_pk == {"id": "custom-1", "title": "Mug", "_id": storage_id}
    assert store.find_one(PRODUCTS, {"_id": "not-a-number"}) is None
    assert store.find_one(COLLECTIONS, {"id": "custom-1"}) is None


def test_find_filters_on_nested_fields_and_membership(store):
    store.insert_many(PRODUCTS, [
        {"id": "a", "source": "local", "variants": {"count": 1}},
        {"id": "b", "source": "remote", "variants": {"count": 2}},
        {"id": "c", "source": "local", "variants": {"count": 2}},
    ])

    assert [d["id"] for d in store.find(PRODUCTS, {"source": "local"})] == ["a", "c"]
    assert [d["id"] for d in store.find(PRODUCTS, {"variants.count": 2})] == ["b", "c"]
    assert [d["id"] for d in store.find(PRODUCTS, {"id": {"$in": ["a", "b"]}})] == ["a", "b"]
    assert store.count(PRODUCTS) == 3


def test_update_one_set_and_push(store):
    store.insert_one(PRODUCTS, {"id": "p", "variants": {"edges": [{"node": {"id": "v1"}}]}})

    result = store.update_one(
        PRODUCTS, {"id": "p"},
        push={"variants.edges": {"node": {"id": "v2"}}},
        set_fields={"title": "New"},
    )

    assert (result.matched_count, result.modified_count, result.upserted_id) == (1, 1, None)
    doc = store.find_one(PRODUCTS, {"id": "p"})
    assert doc["title"] == "New"
    assert [e["node"]["id"] for e in doc["variants"]["edges"]] == ["v1", "v2"]


def test_update_one_without_match_and_without_upsert(store):
    result = store.update_one(PRODUCTS, {"id": "ghost"}, set_fields={"title": "x"})
    assert (result.matched_count, result.modified_count) == (0, 0)
    assert store.count(PRODUCTS) == 0


def test_unchanged_update_reports_no_modification(store):
    store.insert_one(PRODUCTS, {"id": "p", "title": "Same"})
    result = store.update_one(PRODUCTS, {"id": "p"}, set_fields={"title": "Same"})
    assert (result.matched_count, result.modified_count) == (1, 0)


def test_upsert_sets_created_at_only_on_insert(store):
    first = store.update_one(
        PRODUCTS, {"id": "gid://x/Product/1"},
        set_fields={"title": "One", "updatedAt": "2024-01-01T00:00:00+00:00"},
        set_on_insert={"createdAt": "2024-01-01T00:00:00+00:00"},
        upsert=True,
    )
    second = store.update_one(
        PRODUCTS, {"id": "gid://x/Product/1"},
        set_fields={"title": "Two", "updatedAt": "2024-02-01T00:00:00+00:00"},
        set_on_insert={"createdAt": "2024-02-01T00:00:00+00:00"},
        upsert=True,
    )

    assert first.upserted_id is not None
    assert second.upserted_id is None and second.matched_count == 1
    doc = store.find_one(PRODUCTS, {"id": "gid://x/Product/1"})
    assert doc["title"] == "Two"
    assert doc["createdAt"] == "2024-01-01T00:00:00+00:00"
    assert doc["updatedAt"] == "2024-02-01T00:00:00+00:00"
    assert store.count(PRODUCTS) == 1


def test_delete_one_and_delete_many(store):
    ids = store.insert_many(PRODUCTS, [{"id": "x"}, {"id": "x"}, {"id": "y"}])

    assert store.delete_one(PRODUCTS, {"id": "x"}) == 1
    assert store.delete_many(PRODUCTS, {"_id": {"$in": ids}}) == 2
    assert store.delete_many(PRODUCTS, {"id": "nothing"}) == 0
    assert store.count(PRODUCTS) == 0


def test_duplicate_groups_only_report_repeated_ids(store):
    store.insert_many(PRODUCTS, [
        {"id": "dup", "updatedAt": "2024-01-01"},
        {"id": "single"},
        {"id": "dup", "updatedAt": "2024-03-01"},
        {"title": "no logical id"},
        {"title": "no logical id either"},
    ])

    groups = store.duplicate_groups(PRODUCTS)

    assert len(groups) == 1
    assert groups[0].id == "dup"
    assert groups[0].count == 2
    assert [d["updatedAt"] for d in groups[0].docs] == ["2024-01-01", "2024-03-01"]


def test_out_of_range_storage_ids_match_nothing(store):
    store.insert_one(PRODUCTS, {"id": "p"})

    assert store.find_one(PRODUCTS, {"_id": 10 ** 30}) is None
    assert store.find_one(PRODUCTS, {"_id": "1_0"}) is None
    assert store.count(PRODUCTS, {"_id": "١"}) == 0
