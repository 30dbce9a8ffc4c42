"""Short-lived OTP-guarded records kept in process memory.

Pending registrations and password resets share one implementation. Each
flow gets its own store instance, so their keys never collide. Records are
lost on restart.
"""

import asyncio
import enum
import hmac
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Callable, Generic, Iterable, Optional, Protocol, TypeVar

from seminar_backend.auth.otp import generate_otp

logger = logging.getLogger(__name__)

T = TypeVar('T')

KEY_BYTES = 16


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PendingRecordNotFound(KeyError):
    pass


class VerifyStatus(str, enum.Enum):
    VERIFIED = 'verified'
    INVALID = 'invalid'
    EXPIRED = 'expired'
    MAX_ATTEMPTS_EXCEEDED = 'max_attempts_exceeded'
    NOT_FOUND = 'not_found'


@dataclass(frozen=True)
class VerifyResult:
    status: VerifyStatus
    remaining_attempts: Optional[int] = None
    record: Optional["PendingRecord"] = None

    @property
    def ok(self) -> bool:
        return self.status is VerifyStatus.VERIFIED


@dataclass
class PendingRecord(Generic[T]):
    key: str
    payload: T
    otp: str
    otp_expires_at: datetime
    created_at: datetime
    subject: Optional[str] = None
    attempts: int = 0

    def is_expired(self, now: datetime) -> bool:
        return now >= self.otp_expires_at


class PendingStore(Protocol[T]):
    def create(self, payload: T, subject: Optional[str] = None) -> PendingRecord[T]: ...

    def get(self, key: str) -> Optional[PendingRecord[T]]: ...

    def find_by_subject(self, subject: str) -> Optional[PendingRecord[T]]: ...

    def regenerate_otp(self, key: str) -> PendingRecord[T]: ...

    def verify(self, key: str, otp: str) -> VerifyResult: ...

    def delete(self, key: str) -> None: ...

    def sweep_expired(self, now: Optional[datetime] = None) -> int: ...

    def __len__(self) -> int: ...


@dataclass
class InMemoryPendingStore(Generic[T]):
    name: str
    ttl: timedelta
    max_attempts: int = 3
    clock: Callable[[], datetime] = _utcnow
    otp_factory: Callable[[], str] = generate_otp
    _records: dict[str, PendingRecord[T]] = field(default_factory=dict, init=False, repr=False)
    _subjects: dict[str, str] = field(default_factory=dict, init=False, repr=False)
    _lock: Lock = field(default_factory=Lock, init=False, repr=False)

    def create(self, payload: T, subject: Optional[str] = None) -> PendingRecord[T]:
        now = self.clock()
        key = secrets.token_hex(KEY_BYTES)
        record = PendingRecord(
            key=key,
            payload=payload,
            otp=self.otp_factory(),
            otp_expires_at=now + self.ttl,
            created_at=now,
            subject=subject,
        )
        with self._lock:
            if subject is not None:
                previous_key = self._subjects.get(subject)
                if previous_key is not None:
                    self._remove(previous_key)
                self._subjects[subject] = key
            self._records[key] = record
        return record

    def get(self, key: str) -> Optional[PendingRecord[T]]:
        with self._lock:
            record = self._records.get(key)
        if record is None or record.is_expired(self.clock()):
            return None
        return record

    def find_by_subject(self, subject: str) -> Optional[PendingRecord[T]]:
        with self._lock:
            key = self._subjects.get(subject)
        if key is None:
            return None
        return self.get(key)

    def regenerate_otp(self, key: str) -> PendingRecord[T]:
        with self._lock:
            record = self._records.get(key)
            if record is None:
                raise PendingRecordNotFound(key)
            record.otp = self.otp_factory()
            record.otp_expires_at = self.clock() + self.ttl
            record.attempts = 0
            return record

    def verify(self, key: str, otp: str) -> VerifyResult:
        """Check ``otp`` against the record. A match leaves the record in place."""
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return VerifyResult(VerifyStatus.NOT_FOUND)

            if record.is_expired(self.clock()):
                self._remove(key)
                return VerifyResult(VerifyStatus.EXPIRED)

            if record.attempts >= self.max_attempts:
                self._remove(key)
                return VerifyResult(VerifyStatus.MAX_ATTEMPTS_EXCEEDED, remaining_attempts=0)

            if hmac.compare_digest(record.otp, str(otp).strip()):
                return VerifyResult(VerifyStatus.VERIFIED, record=record)

            record.attempts += 1
            return VerifyResult(
                VerifyStatus.INVALID,
                remaining_attempts=max(self.max_attempts - record.attempts, 0),
            )

    def delete(self, key: str) -> None:
        with self._lock:
            self._remove(key)

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        now = now or self.clock()
        with self._lock:
            expired = [key for key, record in self._records.items() if record.is_expired(now)]
            for key in expired:
                self._remove(key)
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _remove(self, key: str) -> None:
        # Caller holds the lock.
        record = self._records.pop(key, None)
        if record is not None and record.subject is not None:
            if self._subjects.get(record.subject) == key:
                del self._subjects[record.subject]


async def run_periodic_sweep(stores: Iterable[PendingStore], interval_seconds: float) -> None:
    """Sweep every store on a fixed interval until cancelled."""
    stores = list(stores)
    while True:
        await asyncio.sleep(interval_seconds)
        for store in stores:
            try:
                removed = store.sweep_expired()
            except Exception:
                logger.exception('Pending record sweep failed for %r', store)
                continue
            if removed:
                logger.info('Swept %d expired record(s) from %s', removed, getattr(store, 'name', store))
