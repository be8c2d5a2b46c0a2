import json
import os

import pytest

from tubequeue.models import DONE, RECORD_KEYS, Job
from tubequeue.store import JobStore, StoreError


def test_empty_store_reads_as_no_jobs(store):
    assert store.read_all() == []
    assert not os.path.exists(store.path)


def test_append_preserves_insertion_order(store):
    for job_id in ("aaaaaaaaaaa", "bbbbbbbbbbb", "ccccccccccc"):
        store.append(Job(id=job_id, origin=1))
    assert [j.id for j in store.read_all()] == ["aaaaaaaaaaa", "bbbbbbbbbbb", "ccccccccccc"]


def test_rewrite_of_read_all_is_byte_for_byte_noop(store):
    store.append(Job(id="aaaaaaaaaaa", origin=42, created_at="x", updated_at="x"))
    store.append(Job(id="bbbbbbbbbbb", origin="chat", status=DONE, attempts=3, last_error=None))
    with open(store.path, "rb") as f:
        before = f.read()

    store.rewrite(store.read_all())

    with open(store.path, "rb") as f:
        assert f.read() == before


def test_rewrite_replaces_contents_and_leaves_no_temp_files(tmp_path):
    store = JobStore(str(tmp_path / "queue.jsonl"))
    store.append(Job(id="aaaaaaaaaaa"))
    store.rewrite([Job(id="zzzzzzzzzzz", attempts=2)])

    jobs = store.read_all()
    assert [(j.id, j.attempts) for j in jobs] == [("zzzzzzzzzzz", 2)]
    assert sorted(os.listdir(tmp_path)) == ["queue.jsonl", "queue.jsonl.lock"]


def test_unreadable_record_raises_store_error(store):
    store.append(Job(id="aaaaaaaaaaa"))
    with open(store.path, "a") as f:
        f.write("{not json\n")
    with pytest.raises(StoreError, match=":2:"):
        store.read_all()


def test_transaction_only_rewrites_when_dirty(store):
    store.append(Job(id="aaaaaaaaaaa"))
    mtime = os.stat(store.path).st_mtime_ns

    assert store.transaction(lambda jobs: (len(jobs), False)) == 1
    assert os.stat(store.path).st_mtime_ns == mtime

    def bump(jobs):
        jobs[0].attempts = 7
        return "ok", True

    assert store.transaction(bump) == "ok"
    assert store.read_all()[0].attempts == 7


def test_append_if_skips_when_predicate_rejects(store):
    assert store.append_if(lambda jobs: not jobs, Job(id="aaaaaaaaaaa")) is True
    assert store.append_if(lambda jobs: not jobs, Job(id="bbbbbbbbbbb")) is False
    assert [j.id for j in store.read_all()] == ["aaaaaaaaaaa"]


def test_failed_rewrite_keeps_old_contents(store, monkeypatch):
    store.append(Job(id="aaaaaaaaaaa"))
    with open(store.path, "rb") as f:
        before = f.read()

    def no_space(src, dst):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr("tubequeue.store.os.replace", no_space)
    with pytest.raises(StoreError, match="Cannot rewrite"):
        store.rewrite([Job(id="zzzzzzzzzzz")])

    with open(store.path, "rb") as f:
        assert f.read() == before
    leftovers = [n for n in os.listdir(os.path.dirname(store.path)) if n.startswith(".tubequeue-")]
    assert leftovers == []


def test_records_use_fixed_key_set(store):
    store.append(Job(id="aaaaaaaaaaa", origin=42))
    with open(store.path) as f:
        record = json.loads(f.readline())
    assert sorted(record) == sorted(RECORD_KEYS)
