"""
Durable job log: one JSON object per line.

Every enqueue and every drain step re-reads the whole file; there is no
in-memory index. Mutations hold an exclusive lock on `<store>.lock` so an
append can never be overwritten by a concurrent rewrite, whether it comes
from another thread or another `tubequeue` process.
"""
import fcntl
import json
import logging
import os
import tempfile
from contextlib import contextmanager
from typing import Callable, Iterator, List, Sequence, Tuple, TypeVar

from .models import Job

logger = logging.getLogger("tubequeue.store")

T = TypeVar("T")


class StoreError(RuntimeError):
    pass


def _encode(job: Job) -> str:
    return json.dumps(job.to_record(), ensure_ascii=False, sort_keys=True) + "\n"


class JobStore:
    def __init__(self, path: str):
        self.path = os.path.abspath(path)
        self.lock_path = self.path + ".lock"

    @contextmanager
    def _locked(self) -> Iterator[None]:
        try:
            os.makedirs(os.path.dirname(self.path), exist_ok=True)
            fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise StoreError(f"Cannot open lock file {self.lock_path}: {e}") from e
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            yield
        finally:
            # closing the descriptor releases the flock
            os.close(fd)

    # ---------- raw operations (caller holds the lock) ----------
    def _read(self) -> List[Job]:
        jobs = []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                for lineno, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        jobs.append(Job.from_record(json.loads(line)))
                    except (ValueError, TypeError) as e:
                        raise StoreError(f"{self.path}:{lineno}: unreadable record ({e})") from e
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StoreError(f"Cannot read {self.path}: {e}") from e
        return jobs

    def _append(self, job: Job):
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(_encode(job))
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise StoreError(f"Cannot append to {self.path}: {e}") from e

    def _rewrite(self, jobs: Sequence[Job]):
        directory = os.path.dirname(self.path)
        try:
            fd, tmp = tempfile.mkstemp(prefix=".tubequeue-", suffix=".tmp", dir=directory)
        except OSError as e:
            raise StoreError(f"Cannot create temp file in {directory}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for job in jobs:
                    f.write(_encode(job))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
            logger.debug("Rewrote %s with %d record(s)", self.path, len(jobs))
        except OSError as e:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise StoreError(f"Cannot rewrite {self.path}: {e}") from e

    # ---------- public API ----------
    def read_all(self) -> List[Job]:
        # locked so a half-written append is never observed
        with self._locked():
            return self._read()

    def append(self, job: Job):
        with self._locked():
            self._append(job)

    def rewrite(self, jobs: Sequence[Job]):
        with self._locked():
            self._rewrite(jobs)

    def transaction(self, fn: Callable[[List[Job]], Tuple[T, bool]]) -> T:
        """
        Read-modify-write under the store lock.

        `fn` receives the freshly read job list and may mutate it in place.
        It returns (result, dirty); the list is rewritten only when dirty.
        """
        with self._locked():
            jobs = self._read()
            result, dirty = fn(jobs)
            if dirty:
                self._rewrite(jobs)
            return result

    def append_if(self, predicate: Callable[[List[Job]], bool], job: Job) -> bool:
        """Append `job` unless `predicate(current_jobs)` is false; scan and append share one lock."""
        with self._locked():
            if not predicate(self._read()):
                return False
            self._append(job)
            return True
