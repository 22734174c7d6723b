"""Unit tests for enrollment records and embedding stores."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

import numpy as np
import pytest

from face_login.errors import StoreUnavailable
from face_login.interfaces import as_embedding
from face_login.store import EnrollmentRecord, JsonlEmbeddingStore, MemoryEmbeddingStore


@pytest.fixture
def jsonl_store(tmp_path):
    return JsonlEmbeddingStore(tmp_path / "enrollments.jsonl")


@pytest.fixture(params=["memory", "jsonl"])
def any_store(request, tmp_path):
    """Run a test against both store implementations."""
    if request.param == "memory":
        return MemoryEmbeddingStore()
    return JsonlEmbeddingStore(tmp_path / "enrollments.jsonl")


def test_as_embedding_is_read_only_copy():
    source = np.array([0.1, 0.2, 0.3])
    embedding = as_embedding(source)

    source[0] = 99.0

    assert embedding[0] == 0.1
    assert embedding.dtype == np.float64
    assert not embedding.flags.writeable
    with pytest.raises(ValueError):
        embedding[0] = 1.0


@pytest.mark.parametrize(
    "values",
    [[], [[0.1, 0.2], [0.3, 0.4]], [0.1, float("nan")], [float("inf")]],
)
def test_as_embedding_rejects_invalid(values):
    with pytest.raises(ValueError):
        as_embedding(values)


def test_record_rejects_empty_label():
    with pytest.raises(ValueError, match="label"):
        EnrollmentRecord(label="  ", embedding=[0.1])


def test_record_defaults_to_utc_timestamp():
    record = EnrollmentRecord(label="alice", embedding=[0.1, 0.2])

    assert record.enrolled_at.tzinfo is not None
    assert record.dimension == 2


def test_record_json_round_trip_is_exact(random_embedding):
    """Test that a stored vector reads back bit-for-bit."""
    embedding = random_embedding() + 1e-17
    enrolled_at = datetime(2025, 3, 1, 12, 30, 15, 123456, tzinfo=timezone.utc)
    record = EnrollmentRecord("dr. núñez", embedding, enrolled_at)

    restored = EnrollmentRecord.from_json(record.to_json())

    assert restored.label == "dr. núñez"
    assert restored.enrolled_at == enrolled_at
    assert restored.embedding.tobytes() == record.embedding.tobytes()


@pytest.mark.parametrize(
    "line",
    [
        "not json",
        '{"label": "alice"}',
        '{"label": "alice", "dim": 2, "embedding": "!!!", "enrolled_at": "2025-01-01T00:00:00"}',
        '{"label": "alice", "dim": 3, "embedding": "AAAAAAAAAAA=", "enrolled_at": "2025-01-01T00:00:00"}',
    ],
)
def test_record_from_json_rejects_malformed(line):
    with pytest.raises(ValueError):
        EnrollmentRecord.from_json(line)


def test_append_and_read_in_insertion_order(any_store):
    any_store.append(EnrollmentRecord("bob", [0.2]))
    any_store.append(EnrollmentRecord("alice", [0.1]))
    any_store.append(EnrollmentRecord("bob", [0.3]))

    records = any_store.all_records()

    assert [r.label for r in records] == ["bob", "alice", "bob"]
    assert [r.embedding[0] for r in records] == [0.2, 0.1, 0.3]
    assert any_store.labels() == ["bob", "alice"]


def test_reenrollment_appends(any_store):
    any_store.append(EnrollmentRecord("alice", [0.1]))
    any_store.append(EnrollmentRecord("alice", [0.2]))

    assert any_store.count_for_label("alice") == 2
    assert len(any_store.records_for_label("alice")) == 2
    assert any_store.records_for_label("nobody") == ()


def test_all_records_is_snapshot(any_store):
    any_store.append(EnrollmentRecord("alice", [0.1]))
    snapshot = any_store.all_records()

    any_store.append(EnrollmentRecord("bob", [0.2]))

    assert len(snapshot) == 1
    assert len(any_store.all_records()) == 2
    # Restartable: iterating twice yields the same records
    assert list(snapshot) == list(snapshot)


def test_delete_label(any_store):
    any_store.append(EnrollmentRecord("alice", [0.1]))
    any_store.append(EnrollmentRecord("bob", [0.2]))
    any_store.append(EnrollmentRecord("alice", [0.3]))

    assert any_store.delete_label("alice") == 2
    assert [r.label for r in any_store.all_records()] == ["bob"]
    assert any_store.delete_label("alice") == 0


def test_jsonl_missing_file_reads_empty(jsonl_store):
    assert jsonl_store.all_records() == ()
    assert jsonl_store.labels() == []


def test_jsonl_persists_across_instances(jsonl_store, random_embedding):
    embedding = random_embedding()
    jsonl_store.append(EnrollmentRecord("alice", embedding))

    reopened = JsonlEmbeddingStore(jsonl_store.path)
    records = reopened.all_records()

    assert len(records) == 1
    assert np.array_equal(records[0].embedding, embedding)


def test_jsonl_ignores_partial_trailing_line(jsonl_store):
    jsonl_store.append(EnrollmentRecord("alice", [0.1]))
    with open(jsonl_store.path, "a", encoding="utf-8") as f:
        f.write('{"label": "bob", "dim": 1, "embe')

    records = jsonl_store.all_records()

    assert [r.label for r in records] == ["alice"]


def test_jsonl_append_after_interrupted_append(jsonl_store):
    """Test that a fragment left by a crashed append does not poison the file."""
    jsonl_store.append(EnrollmentRecord("alice", [0.1]))
    with open(jsonl_store.path, "a", encoding="utf-8") as f:
        f.write('{"label": "bob", "dim": 1, "embe')

    jsonl_store.append(EnrollmentRecord("carol", [0.3]))
    records = jsonl_store.all_records()

    assert [r.label for r in records] == ["alice", "carol"]
    assert jsonl_store.path.read_text(encoding="utf-8").endswith("\n")


def test_jsonl_append_after_fragment_only_file(jsonl_store):
    jsonl_store.path.write_text('{"label": "bob"', encoding="utf-8")

    jsonl_store.append(EnrollmentRecord("alice", [0.1]))

    assert [r.label for r in jsonl_store.all_records()] == ["alice"]


def test_jsonl_undecodable_file_raises_store_unavailable(jsonl_store):
    jsonl_store.path.write_bytes(b"\xff\xfe garbage\n")

    with pytest.raises(StoreUnavailable, match="Undecodable"):
        jsonl_store.all_records()


def test_jsonl_corrupt_line_raises(jsonl_store):
    jsonl_store.append(EnrollmentRecord("alice", [0.1]))
    with open(jsonl_store.path, "a", encoding="utf-8") as f:
        f.write("garbage\n")

    with pytest.raises(StoreUnavailable, match=":2"):
        jsonl_store.all_records()


def test_jsonl_append_failure_raises_store_unavailable(tmp_path):
    # A directory cannot be opened for appending
    store = JsonlEmbeddingStore(tmp_path)

    with pytest.raises(StoreUnavailable):
        store.append(EnrollmentRecord("alice", [0.1]))


def test_jsonl_concurrent_appends_do_not_interleave(jsonl_store, random_embedding):
    embeddings = [random_embedding() for _ in range(8)]

    def worker(index: int) -> None:
        for _ in range(25):
            jsonl_store.append(EnrollmentRecord(f"user{index}", embeddings[index]))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    records = jsonl_store.all_records()

    assert len(records) == 200
    for record in records:
        index = int(record.label[len("user"):])
        assert np.array_equal(record.embedding, embeddings[index])


def test_repr(jsonl_store):
    assert "JsonlEmbeddingStore" in repr(jsonl_store)
    assert "MemoryEmbeddingStore(records=0)" == repr(MemoryEmbeddingStore())
