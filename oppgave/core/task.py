"""Ready-made task model for use with PydanticCodec."""

import json
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Canonical JSON size limit for a payload (1MB)
MAX_PAYLOAD_SIZE = 1_000_000

_UUID4 = r"(?i)^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$"


class Task(BaseModel):
    """A unit of work: what to do (kind) and what to do it with (payload).

    Validation only ever rejects. A field that passes is kept exactly as it
    arrived, so a task read off the queue describes the entry that is stored.
    Unknown fields from newer producers are ignored on read.

    The generated id makes every instance serialize to distinct bytes, so two
    tasks with the same kind and payload never collide in the in-flight list.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()), pattern=_UUID4)
    kind: str = Field(min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("kind")
    @classmethod
    def _kind_has_no_padding(cls, v: str) -> str:
        if v != v.strip():
            raise ValueError("kind must not have leading or trailing whitespace")
        return v

    @field_validator("payload")
    @classmethod
    def _payload_fits(cls, v: dict[str, Any]) -> dict[str, Any]:
        try:
            encoded = json.dumps(v, sort_keys=True, separators=(",", ":"), allow_nan=False)
        except (TypeError, ValueError) as e:
            raise ValueError(f"payload must be JSON-serializable: {e}") from e

        size = len(encoded.encode("utf-8"))
        if size > MAX_PAYLOAD_SIZE:
            raise ValueError(f"payload is {size} bytes, limit is {MAX_PAYLOAD_SIZE} bytes")
        return v

