import pytest

from tubequeue.store import JobStore


@pytest.fixture
def store(tmp_path):
    return JobStore(str(tmp_path / "queue.jsonl"))
