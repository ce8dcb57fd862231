from datetime import datetime, timezone
from unittest.mock import MagicMock

from cloud.firestore_store import FirestoreBillStore
from models.sync import RemoteWrite


def store_with_client():
    client = MagicMock()
    return FirestoreBillStore(client=client), client


def bills_collection(client):
    return client.collection.return_value.document.return_value.collection.return_value


async def test_batch_write_commits_one_batch_per_chunk():
    store, client = store_with_client()
    ops = [RemoteWrite(f"b{i}", {"name": f"Bill {i}"}) for i in range(5)] + [RemoteWrite("gone")]

    await store.batch_write("42", ops, max_batch_size=4)

    batch = client.batch.return_value
    assert client.batch.call_count == 2
    assert batch.commit.call_count == 2
    assert batch.set.call_count == 5
    assert batch.delete.call_count == 1
    assert batch.set.call_args.kwargs == {"merge": True}
    client.collection.assert_called_with("users")


async def test_delete_all_removes_bills_then_user_document():
    store, client = store_with_client()
    docs = [MagicMock() for _ in range(3)]
    bills_collection(client).stream.return_value = docs

    removed = await store.delete_all("42", max_batch_size=2)

    assert removed == 3
    assert client.batch.return_value.commit.call_count == 2
    client.collection.return_value.document.return_value.delete.assert_called_once()


async def test_query_filters_on_last_modified():
    store, client = store_with_client()
    doc = MagicMock()
    doc.id = "b1"
    doc.to_dict.return_value = {"name": "Rent"}
    bills = bills_collection(client)
    bills.where.return_value.stream.return_value = [doc]
    since = datetime(2024, 12, 1, tzinfo=timezone.utc)

    result = await store.query("42", modified_after=since)

    assert result == [("b1", {"name": "Rent"})]
    field_filter = bills.where.call_args.kwargs["filter"]
    assert (field_filter.field_path, field_filter.op_string, field_filter.value) == ("lastModified", ">", since)


async def test_query_without_checkpoint_reads_everything():
    store, client = store_with_client()
    bills_collection(client).stream.return_value = []

    assert await store.query("42") == []
    bills_collection(client).where.assert_not_called()


async def test_get_returns_none_for_missing_document():
    store, client = store_with_client()
    snapshot = bills_collection(client).document.return_value.get.return_value
    snapshot.exists = False

    assert await store.get("42", "b1") is None

    snapshot.exists = True
    snapshot.to_dict.return_value = {"name": "Rent"}
    assert await store.get("42", "b1") == {"name": "Rent"}
