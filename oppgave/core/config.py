"""Configuration for producers, workers and reapers."""

import os
from collections.abc import Mapping

from pydantic import BaseModel, Field


class QueueConfig(BaseModel):
    """Connection and tuning settings shared by the demo programs.

    Attributes:
        redis_url: Store connection URL.
        queue_name: Human-readable queue name.
        key_prefix: Prefix for derived list keys.
        pool_size: Maximum pooled connections; each concurrent blocking pop
            holds one for its duration.
        poll_timeout: Seconds a worker blocks in pop before re-checking its
            stop flag.
        visibility_timeout: Seconds a task may stay in flight before the
            reaper returns it to pending.
        reaper_interval: Seconds between reaper sweeps.
        handler_timeout: Seconds a worker handler may run.
        max_consecutive_store_failures: Worker circuit breaker threshold.
    """

    redis_url: str = "redis://localhost:6379/0"
    queue_name: str = Field(default="default", min_length=1)
    key_prefix: str = Field(default="queue", min_length=1)
    pool_size: int = Field(default=10, ge=1)
    poll_timeout: float = Field(default=1.0, gt=0)
    visibility_timeout: float = Field(default=300.0, gt=0)
    reaper_interval: float = Field(default=30.0, gt=0)
    handler_timeout: float = Field(default=30.0, gt=0)
    max_consecutive_store_failures: int = Field(default=10, ge=1)

    model_config = {
        "extra": "forbid",
        "frozen": True,
    }

    @classmethod
    def from_env(cls, prefix: str = "OPPGAVE_", environ: Mapping[str, str] | None = None) -> "QueueConfig":
        """Build a config from environment variables.

        Each field is read from ``<prefix><FIELD_NAME>``, e.g.
        ``OPPGAVE_REDIS_URL``. Unset variables keep their defaults.

        Raises:
            pydantic.ValidationError: If a variable holds an invalid value.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            key = f"{prefix}{name.upper()}"
            if key in environ:
                values[name] = environ[key]
        return cls(**values)
