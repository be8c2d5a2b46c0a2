from typing import Dict, List, Optional

from .config import RetryPolicy
from .models import Job, PENDING, DONE, FAILED, ACTIVE_STATES, ALL_STATES
from .store import JobStore
from .utils import backoff_delay, epoch_now, now_iso, truncate


def _find(jobs: List[Job], job_id: str, states) -> Optional[Job]:
    # newest record wins: a failed id can be queued again
    for job in reversed(jobs):
        if job.id == job_id and job.status in states:
            return job
    return None


# ---------- Jobs: enqueue / due / complete / retry ----------
def enqueue_job(store: JobStore, *, job_id: str, origin=None) -> bool:
    """
    Queue `job_id` for delivery. Returns False when a pending or done record
    for the id already exists; nothing is written in that case.
    """
    if not job_id or not job_id.strip():
        raise ValueError("Job id cannot be empty.")

    ts = now_iso()
    job = Job(id=job_id.strip(), origin=origin, created_at=ts, updated_at=ts)
    return store.append_if(lambda jobs: _find(jobs, job.id, ACTIVE_STATES) is None, job)


def due_jobs(store: JobStore, now: Optional[float] = None) -> List[Job]:
    now = epoch_now() if now is None else now
    return [j for j in store.read_all() if j.is_due(now)]


def complete(store: JobStore, job_id: str) -> Optional[Job]:
    """
    Mark the pending record for `job_id` done. Returns the updated job, or
    None when there was no pending record (already done by someone else).
    """
    def apply(jobs):
        job = _find(jobs, job_id, (PENDING,))
        if job is None:
            return None, False
        job.status = DONE
        job.attempts += 1
        job.last_error = None
        job.next_attempt_at = 0
        job.updated_at = now_iso()
        return job, True

    return store.transaction(apply)


def schedule_retry(store: JobStore, job_id: str, error: str, policy: RetryPolicy,
                   now: Optional[float] = None) -> Optional[Job]:
    """Record a failed attempt; the job stays pending unless max_attempts is reached."""
    now = epoch_now() if now is None else now

    def apply(jobs):
        job = _find(jobs, job_id, (PENDING,))
        if job is None:
            return None, False
        job.attempts += 1
        job.last_error = truncate(error, policy.error_max_chars)
        job.updated_at = now_iso()
        if policy.max_attempts and job.attempts >= policy.max_attempts:
            job.status = FAILED
            job.next_attempt_at = 0
        else:
            delay = backoff_delay(job.attempts, policy.backoff_base, policy.backoff_growth, policy.backoff_cap)
            job.next_attempt_at = now + delay
        return job, True

    return store.transaction(apply)


# ---------- Queries ----------
def list_jobs(store: JobStore, status: Optional[str] = None) -> List[Job]:
    jobs = store.read_all()
    if status:
        return [j for j in jobs if j.status == status]
    return jobs


def counts(store: JobStore) -> Dict[str, int]:
    out = {s: 0 for s in ALL_STATES}
    for job in store.read_all():
        out[job.status] = out.get(job.status, 0) + 1
    return out


# ---------- Failed (dead-letter) ----------
def failed_list(store: JobStore) -> List[Job]:
    return sorted(list_jobs(store, FAILED), key=lambda j: j.updated_at, reverse=True)


def failed_retry(store: JobStore, job_id: str) -> bool:
    """Put the latest failed record for `job_id` back in the queue. Attempts are kept."""
    if not job_id or not job_id.strip():
        raise ValueError("Job id cannot be empty.")

    def apply(jobs):
        if _find(jobs, job_id, ACTIVE_STATES) is not None:
            return False, False
        job = _find(jobs, job_id, (FAILED,))
        if job is None:
            return False, False
        job.status = PENDING
        job.next_attempt_at = 0
        job.updated_at = now_iso()
        return True, True

    return store.transaction(apply)


def find_pending(store: JobStore, job_id: str) -> Optional[Job]:
    return _find(store.read_all(), job_id, (PENDING,))
