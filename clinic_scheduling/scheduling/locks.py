"""Per-record mutual exclusion for calendar and catalog writes."""

from contextlib import contextmanager
from threading import Lock
from typing import Iterator


class LockArena:
    """One lock per record id, created on first use.

    Writes to the same record queue behind each other for the whole
    read-check-commit sequence; writes to different records never contend.
    Callers only ask for ids they have already found in the database, so the
    arena grows with the table and not with the requests.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[int, Lock] = {}

    def lock_for(self, record_id: int) -> Lock:
        lock = self._locks.get(record_id)
        if lock is not None:
            return lock

        with self._guard:
            return self._locks.setdefault(record_id, Lock())

    @contextmanager
    def hold(self, record_id: int) -> Iterator[None]:
        with self.lock_for(record_id):
            yield

    def __len__(self) -> int:
        return len(self._locks)


dentist_locks = LockArena()
# Taken before the dentist lock whenever both are needed.
service_locks = LockArena()
