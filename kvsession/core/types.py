"""
Core Type Definitions for the Session Store

Implements Result/Either monads for zero-exception control flow and the
clock abstraction shared by codecs, the lifecycle engine and the reaper.

Design Principles:
- Never use null for absence of an error (use Result)
- Enforce exhaustive pattern matching for all variants
- Time is injected, never read ad hoc, so expiry is testable
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    ClassVar,
    Generic,
    Literal,
    TypeVar,
    Union,
)

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Transform result type


# =============================================================================
# RESULT MONAD: ZERO-EXCEPTION CONTROL FLOW
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Success variant of Result monad.
    
    Immutable container for successful computation results.
    """
    
    value: T
    
    def is_ok(self) -> Literal[True]:
        return True
    
    def is_err(self) -> Literal[False]:
        return False
    
    def unwrap(self) -> T:
        """
        Extract value. Safe to call after is_ok() check.
        
        Returns:
            T: The wrapped success value
        """
        return self.value
    
    def unwrap_or(self, default: T) -> T:
        """Return value, ignoring default."""
        return self.value
    
    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply transformation to success value."""
        return Ok(fn(self.value))
    
    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Monadic bind for chaining fallible operations."""
        return fn(self.value)
    
    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result monad.
    
    Immutable container for error information.
    Carries full error context for exhaustive handling.
    """
    
    error: E
    
    def is_ok(self) -> Literal[False]:
        return False
    
    def is_err(self) -> Literal[True]:
        return True
    
    def unwrap(self) -> Any:
        """
        Attempting to unwrap an error is a programming error.
        
        Raises:
            RuntimeError: Always, with error context
        """
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")
    
    def unwrap_or(self, default: T) -> T:
        """Return default value on error."""
        return default
    
    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        """No-op on error variant - propagates error unchanged."""
        return self
    
    def flat_map(self, fn: Callable[[Any], Result[U, E]]) -> Err[E]:
        """Propagate error through monadic chain."""
        return self
    
    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# CLOCK
# =============================================================================
# Returns Unix time in seconds. Injected into every time-dependent component.
Clock = Callable[[], float]


def system_clock() -> float:
    return time.time()


@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """
    High-precision timestamp for error correlation.
    
    Stores nanoseconds since Unix epoch.
    """
    
    nanos: int
    
    NANOS_PER_SECOND: ClassVar[int] = 1_000_000_000
    
    @classmethod
    def now(cls) -> Timestamp:
        """Capture current time with nanosecond precision."""
        return cls(nanos=time.time_ns())
    
    @classmethod
    def from_seconds(cls, seconds: float) -> Timestamp:
        """Convert floating-point seconds to Timestamp."""
        return cls(nanos=int(seconds * cls.NANOS_PER_SECOND))
    
    @property
    def seconds(self) -> float:
        """Convert to floating-point seconds."""
        return self.nanos / self.NANOS_PER_SECOND
    
    def __sub__(self, other: Timestamp) -> int:
        """Subtract timestamps, returning difference in nanos."""
        return self.nanos - other.nanos
    
    def __repr__(self) -> str:
        return f"Timestamp({self.nanos}ns)"
