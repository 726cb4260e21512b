"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.
No behavior, no side effects, no dependencies.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- All types are frozen dataclasses for immutability guarantee
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional, Tuple
from enum import Enum, auto
import hashlib


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    No silent fallbacks - every error state is enumerated.
    """
    # Reference errors (recovered locally)
    RECORD_NOT_FOUND = auto()
    DANGLING_PARENT = auto()
    VERSION_NOT_FOUND = auto()
    REPOSITORY_UNAVAILABLE = auto()

    # Traversal signals
    TRAVERSAL_GUARD_TRIPPED = auto()
    LINEAGE_CYCLE = auto()

    # Data quality
    GENERATION_MISMATCH = auto()
    MALFORMED_SOURCE_EVENT = auto()

    # Write rejections
    RECORD_ARCHIVED = auto()
    VERSION_CONFLICT = auto()
    ALREADY_CURRENT = auto()
    EMPTY_AMENDMENT = auto()
    MISSING_REASON = auto()
    INVALID_AMENDMENT_TYPE = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and queried.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, value),)
        )

    @staticmethod
    def create(code: ErrorCode, message: str, **context: object) -> Error:
        return Error(
            code=code,
            message=message,
            timestamp=utc_now(),
            context=tuple((k, str(v)) for k, v in context.items())
        )


@dataclass(frozen=True)
class Result:
    """
    Generic result type for operations that can fail.
    Either contains a value OR an error, never both.
    """
    value: Optional[object] = None
    error: Optional[Error] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @staticmethod
    def success(value: object) -> Result:
        return Result(value=value, error=None)

    @staticmethod
    def failure(error: Error) -> Result:
        return Result(value=None, error=error)


# =============================================================================
# IDENTITY HELPERS (Deterministic, hash-derived)
# =============================================================================

def make_version_id(record_group_id: str, version: int) -> str:
    """Generate deterministic version ID for a (group, number) pair."""
    seed = f"{record_group_id}|{version}"
    return f"v_{hashlib.sha256(seed.encode('utf-8')).hexdigest()[:12]}"


def make_amendment_id(record_group_id: str, version: int, amended_at: datetime) -> str:
    """Generate deterministic amendment ID."""
    seed = f"{record_group_id}|{version}|{amended_at.isoformat()}"
    return f"amd_{hashlib.sha256(seed.encode('utf-8')).hexdigest()[:12]}"


# =============================================================================
# TEMPORAL HELPERS (All timestamps are UTC, never local time)
# =============================================================================

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: object) -> Optional[datetime]:
    """
    Coerce a loosely-typed source value into an aware UTC datetime.

    Accepts datetimes, dates, ISO-8601 strings (with or without 'Z') and
    epoch seconds. Returns None for anything missing or malformed, so callers
    decide whether absence is fatal.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return to_utc(datetime.fromisoformat(text.replace('Z', '+00:00')))
        except ValueError:
            return None
    return None


def to_iso(value: datetime) -> str:
    """Serialise as ISO-8601 UTC with a trailing 'Z'."""
    return to_utc(value).isoformat().replace('+00:00', 'Z')


@dataclass(frozen=True)
class TimeRange:
    """Immutable, optionally open-ended time range for filters."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self):
        if self.start is not None:
            object.__setattr__(self, 'start', to_utc(self.start))
        if self.end is not None:
            object.__setattr__(self, 'end', to_utc(self.end))
        if self.start and self.end and self.start > self.end:
            raise ValueError("TimeRange start must be before or equal to end")

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, timestamp: datetime) -> bool:
        if self.start is not None and timestamp < self.start:
            return False
        if self.end is not None and timestamp > self.end:
            return False
        return True
