"""Payload codecs.

A codec turns a task value into the bytes stored in the list store and back.
The Queue is parameterized by a codec object and performs no task-specific
logic of its own.

Codecs MUST be canonical: encoding the same logical value twice has to produce
identical bytes, because Queue.ack re-serializes the task to find its in-flight
entry. Both shipped codecs satisfy this.
"""

import json
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel, ValidationError
from pydantic_core import PydanticSerializationError

from oppgave.core.errors import DecodeError, SerializationError

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class Codec(Protocol[T]):
    """Protocol for task codecs."""

    def serialize(self, task: T) -> bytes:
        """Encode a task.

        Raises:
            SerializationError: If the value cannot be encoded.
        """
        ...

    def deserialize(self, raw: bytes) -> T:
        """Decode stored bytes into a task.

        Raises:
            DecodeError: If the bytes are not a valid encoding.
        """
        ...


class JSONCodec:
    """Canonical JSON codec for plain JSON values (dicts, lists, scalars).

    Keys are sorted and separators are compact, so ``{"id": 42}`` is always
    stored as ``b'{"id":42}'`` regardless of dict insertion order.
    """

    def serialize(self, task: Any) -> bytes:
        try:
            text = json.dumps(task, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Task is not JSON-serializable: {e}") from e
        return text.encode("utf-8")

    def deserialize(self, raw: bytes) -> Any:
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeError(f"Invalid JSON task: {e}", raw) from e


class PydanticCodec(Generic[M]):
    """Codec for pydantic model tasks.

    Decoding validates against the model: missing required fields fail,
    unknown fields are dropped unless the model itself forbids extras.

    Args:
        model: The pydantic model class tasks are instances of.
    """

    def __init__(self, model: type[M]) -> None:
        self.model = model

    def serialize(self, task: M) -> bytes:
        if not isinstance(task, self.model):
            raise SerializationError(
                f"Expected {self.model.__name__}, got {type(task).__name__}"
            )
        try:
            return task.model_dump_json().encode("utf-8")
        except PydanticSerializationError as e:
            raise SerializationError(f"Cannot serialize {self.model.__name__}: {e}") from e

    def deserialize(self, raw: bytes) -> M:
        try:
            return self.model.model_validate_json(raw)
        except ValidationError as e:
            raise DecodeError(
                f"Invalid {self.model.__name__} task ({e.error_count()} validation errors)", raw
            ) from e
