import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from errors import ConfigurationMissing
from limits import QueryLimits

load_dotenv()

# ---- Connection target (fixed, never caller-supplied) ----
MONGODB_URI_ENV = "MONGODB_URI"
MONGODB_DB_ENV = "MONGODB_DB"

# ---- HTTP surface ----
API_KEY_ENV = "API_KEY"

# ---- Connection pool ----
MAX_POOL_SIZE = int(os.getenv("MONGODB_MAX_POOL_SIZE", "10"))
MIN_POOL_SIZE = int(os.getenv("MONGODB_MIN_POOL_SIZE", "1"))
MAX_IDLE_TIME_MS = int(os.getenv("MONGODB_MAX_IDLE_TIME_MS", "60000"))
SERVER_SELECTION_TIMEOUT_MS = int(os.getenv("MONGODB_SERVER_SELECTION_TIMEOUT_MS", "10000"))


class Settings(BaseModel):
    """Immutable process configuration, injected into the dispatcher."""

    model_config = ConfigDict(frozen=True)

    mongo_uri: str
    database_name: str
    api_key: Optional[str] = None
    max_pool_size: int = MAX_POOL_SIZE
    min_pool_size: int = MIN_POOL_SIZE
    max_idle_time_ms: int = MAX_IDLE_TIME_MS
    server_selection_timeout_ms: int = SERVER_SELECTION_TIMEOUT_MS
    limits: QueryLimits = Field(default_factory=QueryLimits)


def _require(environ: Mapping[str, str], name: str) -> str:
    value = (environ.get(name) or "").strip()
    if not value:
        raise ConfigurationMissing(name)
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build ``Settings`` from the environment.

    Raises ``ConfigurationMissing`` when ``MONGODB_URI`` or ``MONGODB_DB`` is
    unset.  ``API_KEY`` is optional here and checked by the HTTP layer.
    """
    env = os.environ if environ is None else environ
    return Settings(
        mongo_uri=_require(env, MONGODB_URI_ENV),
        database_name=_require(env, MONGODB_DB_ENV),
        api_key=(env.get(API_KEY_ENV) or "").strip() or None,
    )
