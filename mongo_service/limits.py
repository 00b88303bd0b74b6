"""
Limit policy: clamps caller-requested bounds into the safe range.

The clamps never reject input, they only normalize it.  The execution time
ceiling is not caller-adjustable and is attached to every database call.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

# ---------------------- CONSTANTS ----------------------

MAX_TIME_MS = 30_000
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
DEFAULT_SAMPLE_SIZE = 100
MAX_SAMPLE_SIZE = 1000


class QueryLimits(BaseModel):
    """Fixed bounds applied to every tool call."""

    model_config = ConfigDict(frozen=True)

    max_time_ms: int = MAX_TIME_MS
    default_limit: int = DEFAULT_LIMIT
    max_limit: int = MAX_LIMIT
    default_sample_size: int = DEFAULT_SAMPLE_SIZE
    max_sample_size: int = MAX_SAMPLE_SIZE


DEFAULT_LIMITS = QueryLimits()


# ---------------------- CLAMPS ----------------------

def clamp(requested: Optional[int], default: int, maximum: int) -> int:
    """Return ``default`` for a missing or non-positive request, else cap it
    at ``maximum``."""
    if requested is None or requested <= 0:
        return default
    return min(requested, maximum)


def apply_limit(requested: Optional[int], limits: QueryLimits = DEFAULT_LIMITS) -> int:
    return clamp(requested, limits.default_limit, limits.max_limit)


def apply_sample_size(requested: Optional[int], limits: QueryLimits = DEFAULT_LIMITS) -> int:
    return clamp(requested, limits.default_sample_size, limits.max_sample_size)
