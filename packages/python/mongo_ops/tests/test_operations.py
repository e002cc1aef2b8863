import pytest
from pymongo.errors import OperationFailure

from mongo_ops import ConnectionContext, MongoOpsSettings, operations
from mongo_ops.errors import (
    ConfigError,
    InvalidOperationError,
    InvalidQueryError,
    StoreError,
    ValidationError,
)
from mongo_ops.query import QueryDescriptor

from fakes import URI


def _seed(collection, count):
    collection.docs = [{"_id": i, "n": i, "kind": "odd" if i % 2 else "even"} for i in range(1, count + 1)]


def test_context_requires_connection_string(registry):
    with pytest.raises(ConfigError):
        ConnectionContext("", registry)


def test_context_from_settings(registry):
    context = ConnectionContext.from_settings(MongoOpsSettings(uri=URI, pool_size=7), registry)
    assert context.conn_string == URI
    assert context.pool_size == 7
    with pytest.raises(ConfigError):
        ConnectionContext.from_settings(MongoOpsSettings(uri=None), registry)


@pytest.mark.asyncio
async def test_find_applies_filter_sort_and_pagination(context, orders):
    _seed(orders, 30)

    docs = await operations.get_data(
        context,
        "orders",
        {"kind": "even"},
        projection={"n": 1},
        sort={"n": -1},
        pagination={"startIndex": 2, "endIndex": 3},
    )

    assert docs == [{"_id": 28, "n": 28}, {"_id": 26, "n": 26}]
    _, args, kwargs = orders.calls[-1]
    assert args == ({"kind": "even"}, {"n": 1})
    assert kwargs["sort"] == [("n", -1)]
    assert (kwargs["skip"], kwargs["limit"]) == (1, 2)


@pytest.mark.asyncio
async def test_find_defaults_to_everything(context, orders):
    _seed(orders, 3)

    docs = await operations.get_data(context, "orders")

    assert [doc["_id"] for doc in docs] == [1, 2, 3]
    _, args, kwargs = orders.calls[-1]
    assert args == ({}, None)
    assert kwargs["sort"] is None and kwargs["skip"] == 0 and kwargs["limit"] == 0


@pytest.mark.asyncio
async def test_empty_page_short_circuits_without_connecting(context, connector):
    docs = await operations.get_data(
        context, "orders", {}, pagination={"startIndex": 5, "endIndex": 3}
    )

    assert docs == []
    assert connector.connects == []


@pytest.mark.asyncio
async def test_non_integral_pagination_is_unbounded(context, orders):
    _seed(orders, 4)

    docs = await operations.get_data(context, "orders", pagination={"startIndex": 1, "endIndex": "2"})

    assert len(docs) == 4


@pytest.mark.asyncio
async def test_count_ignores_projection_sort_and_pagination(context, orders):
    _seed(orders, 9)

    count = await operations.get_data(
        context,
        "orders",
        {"kind": "odd"},
        mode="count",
        projection={"n": 1},
        sort={"n": 1},
        pagination={"startIndex": 5, "endIndex": 3},
    )

    assert count == 5
    assert orders.calls[-1] == ("count_documents", ({"kind": "odd"},), {})


@pytest.mark.asyncio
async def test_aggregate_runs_pipeline_with_options(context, orders):
    orders.aggregate_results = [{"_id": "odd", "total": 25}]
    pipeline = [{"$group": {"_id": "$kind", "total": {"$sum": "$n"}}}]

    result = await operations.get_data(
        context, "orders", pipeline, mode="aggregate", aggregate_options={"allowDiskUse": True}
    )

    assert result == [{"_id": "odd", "total": 25}]
    assert orders.calls[-1] == ("aggregate", (pipeline,), {"allowDiskUse": True})


@pytest.mark.asyncio
async def test_aggregate_requires_a_pipeline(context, connector):
    with pytest.raises(InvalidQueryError):
        await operations.get_data(context, "orders", {"$match": {}}, mode="aggregate")
    assert connector.connects == []


@pytest.mark.asyncio
async def test_read_accepts_plain_string_modes(context, orders):
    _seed(orders, 4)

    count = await operations.read(context, "orders", QueryDescriptor(query={"kind": "even"}, mode="count"))

    assert count == 2
    assert orders.calls[-1][0] == "count_documents"

    orders.aggregate_results = [{"_id": None, "total": 10}]
    pipeline = [{"$group": {"_id": None, "total": {"$sum": "$n"}}}]
    result = await operations.read(context, "orders", QueryDescriptor(query=pipeline, mode="aggregate"))

    assert result == [{"_id": None, "total": 10}]
    assert orders.calls[-1] == ("aggregate", (pipeline,), {})


@pytest.mark.asyncio
async def test_unknown_read_mode(context):
    with pytest.raises(InvalidOperationError):
        await operations.get_data(context, "orders", mode="explain")


@pytest.mark.asyncio
async def test_missing_collection_is_config_error(context, connector):
    with pytest.raises(ConfigError):
        await operations.get_data(context, "", {})
    assert connector.connects == []


@pytest.mark.asyncio
async def test_insert_then_find_round_trip(context):
    doc = {"_id": "order-1", "sku": "tea", "qty": 2}

    await operations.write_data(context, "insertOne", "orders", doc)
    found = await operations.get_data(context, "orders", {"_id": "order-1"})

    assert found == [{"_id": "order-1", "sku": "tea", "qty": 2}]


@pytest.mark.asyncio
async def test_write_dispatches_each_kind(context, orders):
    _seed(orders, 4)

    await operations.write_data(context, "replaceOne", "orders", {"n": 100}, {"_id": 1})
    await operations.write_data(context, "updateOne", "orders", {"$set": {"flag": 1}}, {"_id": 2})
    await operations.write_data(context, "updateMany", "orders", {"$set": {"seen": True}}, {"kind": "even"})
    await operations.write_data(context, "deleteOne", "orders", {"ignored": True}, {"_id": 3})
    result = await operations.write_data(context, "deleteMany", "orders", filter={"kind": "even"})

    assert [call[0] for call in orders.calls] == [
        "replace_one",
        "update_one",
        "update_many",
        "delete_one",
        "delete_many",
    ]
    assert orders.calls[3] == ("delete_one", ({"_id": 3},), {})
    assert result.deleted_count == 2
    assert orders.docs == [{"_id": 1, "n": 100}]


@pytest.mark.asyncio
async def test_unknown_write_kind_fails_before_any_store_call(context, connector):
    with pytest.raises(InvalidOperationError):
        await operations.write_data(context, "bogusKind", "orders", {"a": 1}, {})
    assert connector.connects == []


@pytest.mark.asyncio
async def test_write_requires_document_and_filter(context, connector):
    with pytest.raises(ValidationError):
        await operations.write_data(context, "insertOne", "orders")
    with pytest.raises(ValidationError):
        await operations.write_data(context, "deleteMany", "orders")
    assert connector.connects == []


@pytest.mark.asyncio
async def test_write_store_failure_surfaces_errmsg(context, orders):
    orders.error = OperationFailure(
        "command failed", code=121, details={"errmsg": "Document failed validation", "code": 121}
    )

    with pytest.raises(StoreError) as excinfo:
        await operations.write_data(context, "insertOne", "orders", {"bad": True})

    assert excinfo.value.message == "Document failed validation"
    assert excinfo.value.code == 121
    assert isinstance(excinfo.value.__cause__, OperationFailure)


@pytest.mark.asyncio
async def test_duplicate_insert_is_store_error(context, orders):
    await operations.write_data(context, "insertOne", "orders", {"_id": 1})

    with pytest.raises(StoreError) as excinfo:
        await operations.write_data(context, "insertOne", "orders", {"_id": 1})

    assert excinfo.value.code == 11000
    assert "duplicate key" in excinfo.value.message


@pytest.mark.asyncio
async def test_bulk_insert_then_count(context):
    result = await operations.write_bulk_data(
        context, "insertBulk", "orders", [{"_id": 1}, {"_id": 2}, {"_id": 3}], ordered=True
    )

    assert result.inserted_count == 3
    assert await operations.get_data(context, "orders", {}, mode="count") == 3


@pytest.mark.asyncio
async def test_ordered_bulk_stops_at_first_failure(context, orders):
    orders.docs = [{"_id": 2}]

    with pytest.raises(StoreError) as excinfo:
        await operations.write_bulk_data(
            context, "insertBulk", "orders", [{"_id": 1}, {"_id": 2}, {"_id": 3}], ordered=True
        )

    assert excinfo.value.result["nInserted"] == 1
    assert excinfo.value.result["writeErrors"][0]["index"] == 1
    assert sorted(doc["_id"] for doc in orders.docs) == [1, 2]


@pytest.mark.asyncio
async def test_unordered_bulk_applies_every_valid_operation(context, orders):
    orders.docs = [{"_id": 2}]

    with pytest.raises(StoreError) as excinfo:
        await operations.write_bulk_data(
            context, "insertBulk", "orders", [{"_id": 1}, {"_id": 2}, {"_id": 3}]
        )

    assert orders.calls[-1][2] == {"ordered": False}
    assert excinfo.value.result["nInserted"] == 2
    assert sorted(doc["_id"] for doc in orders.docs) == [1, 2, 3]


@pytest.mark.asyncio
async def test_unknown_bulk_kind_fails_before_any_store_call(context, connector):
    with pytest.raises(InvalidOperationError):
        await operations.write_bulk_data(context, "mergeBulk", "orders", [{"a": 1}])
    with pytest.raises(ValidationError):
        await operations.write_bulk_data(context, "insertBulk", "orders", [])
    assert connector.connects == []


@pytest.mark.asyncio
async def test_bulk_insert_rejects_non_documents_before_connecting(context, connector):
    with pytest.raises(ValidationError, match="Bulk operation 1"):
        await operations.write_bulk_data(
            context, "insertBulk", "orders", [{"_id": 1}, "not-a-document"], ordered=True
        )
    assert connector.connects == []


@pytest.mark.asyncio
async def test_bulk_driver_type_error_is_validation_error(context, orders):
    orders.error = TypeError("document must be an instance of dict")

    with pytest.raises(ValidationError, match="instance of dict"):
        await operations.write_bulk_data(context, "insertBulk", "orders", [{"_id": 1}])
    assert orders.calls[-1][0] == "bulk_write"


@pytest.mark.asyncio
async def test_search_with_count_and_no_matches(context, orders):
    orders.aggregate_results = [{"metadata": [], "data": []}]

    result = await operations.search(
        context,
        "orders",
        {"text": {"query": "nothing", "path": "sku"}},
        pagination={"startIndex": 1, "endIndex": 10},
        include_count=True,
    )

    assert result == {"metadata": [], "data": []}
    pipeline = orders.calls[-1][1][0]
    assert pipeline[0] == {"$search": {"text": {"query": "nothing", "path": "sku"}}}
    assert "$facet" in pipeline[-1]


@pytest.mark.asyncio
async def test_search_with_count_on_empty_aggregate_output(context, orders):
    orders.aggregate_results = []

    result = await operations.search(context, "orders", {"text": {}}, include_count=True)

    assert result == {"metadata": [], "data": []}


@pytest.mark.asyncio
async def test_search_without_count_returns_documents(context, orders):
    orders.aggregate_results = [{"_id": 1, "score": 2.5}]

    result = await operations.search(context, "orders", {"text": {"query": "tea"}})

    assert result == [{"_id": 1, "score": 2.5}]


@pytest.mark.asyncio
async def test_search_validation(context, connector):
    with pytest.raises(ValidationError):
        await operations.search(context, "orders", None)
    with pytest.raises(ValidationError):
        await operations.search(context, "", {"text": {}})
    with pytest.raises(ValidationError):
        await operations.search("", "orders", {"text": {}})
    assert connector.connects == []


@pytest.mark.asyncio
async def test_search_empty_page_short_circuits(context, connector):
    result = await operations.search(
        context, "orders", {"text": {}}, pagination={"startIndex": 3, "endIndex": 1}
    )
    assert result == []
    assert connector.connects == []


@pytest.mark.asyncio
async def test_close_connections_drains_registry(context, registry):
    await operations.get_data(context, "orders")
    assert len(registry) == 1

    assert await operations.close_connections(context) == []
    assert len(registry) == 0
