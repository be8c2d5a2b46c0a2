from dataclasses import dataclass
from typing import Any, Dict, Optional

# Job States
PENDING = "pending"
DONE = "done"
FAILED = "failed"  # only with max_attempts > 0

ACTIVE_STATES = (PENDING, DONE)
ALL_STATES = (PENDING, DONE, FAILED)

RECORD_KEYS = (
    "id", "origin", "status", "attempts", "last_error",
    "next_attempt_at", "created_at", "updated_at",
)


@dataclass
class Job:
    id: str
    origin: Any = None
    status: str = PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    next_attempt_at: float = 0
    created_at: str = ""
    updated_at: str = ""

    def is_due(self, now: float) -> bool:
        return self.status == PENDING and (not self.next_attempt_at or now >= self.next_attempt_at)

    def to_record(self) -> Dict[str, Any]:
        return {key: getattr(self, key) for key in RECORD_KEYS}

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Job":
        missing = [k for k in ("id", "status") if k not in record]
        if missing:
            raise ValueError(f"record is missing {', '.join(missing)}")
        return cls(
            id=str(record["id"]),
            origin=record.get("origin"),
            status=record["status"],
            attempts=int(record.get("attempts") or 0),
            last_error=record.get("last_error"),
            next_attempt_at=record.get("next_attempt_at") or 0,
            created_at=record.get("created_at") or "",
            updated_at=record.get("updated_at") or "",
        )
