"""Property-based tests for the Task model."""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from pydantic import ValidationError

from oppgave.core.task import MAX_PAYLOAD_SIZE, Task

valid_kind = st.from_regex(r"[A-Za-z_][A-Za-z0-9_.]*", fullmatch=True)
valid_payload = st.fixed_dictionaries(
    {},
    optional={
        "key1": st.none() | st.booleans() | st.integers(),
        "key2": st.text(max_size=20),
        "count": st.integers(min_value=0, max_value=1000),
    },
)


@given(kind=valid_kind, payload=valid_payload)
def test_task_dump_round_trip(kind: str, payload: dict):
    """Reconstructing a Task from model_dump() yields an equal Task."""
    original = Task(kind=kind, payload=payload)
    reconstructed = Task(**original.model_dump())

    assert reconstructed == original
    assert reconstructed.id == original.id
    assert reconstructed.created_at == original.created_at


@given(count=st.integers(min_value=2, max_value=20))
@settings(max_examples=50)
def test_task_id_uniqueness(count: int):
    """Tasks created without explicit ids get distinct UUID v4 strings."""
    ids = [Task(kind="TEST").id for _ in range(count)]

    assert len(ids) == len(set(ids))
    for task_id in ids:
        assert [len(p) for p in task_id.split("-")] == [8, 4, 4, 4, 12]


def test_identical_tasks_serialize_differently():
    """Two tasks with the same kind and payload never share in-flight bytes."""
    first = Task(kind="resize", payload={"image": 1})
    second = Task(kind="resize", payload={"image": 1})
    assert first.model_dump_json() != second.model_dump_json()


@given(whitespace=st.sampled_from(["", " ", "  ", "\t", "\n", "   \t\n"]))
def test_empty_kind_rejected(whitespace: str):
    with pytest.raises(ValidationError) as exc_info:
        Task(kind=whitespace)

    assert any("kind" in str(e) for e in exc_info.value.errors())


@pytest.mark.parametrize("kind", ["  email.send", "email.send ", "\temail.send\n"])
def test_padded_kind_rejected_not_stripped(kind: str):
    with pytest.raises(ValidationError, match="whitespace"):
        Task(kind=kind)


def test_decoded_task_keeps_fields_as_sent():
    raw = (
        '{"id":"71E421DD-5B1C-4E4B-9C0A-2D7A0F7B9E11","kind":"email",'
        '"payload":{"to":"a@example.com"},"created_at":"2024-01-01T00:00:00Z","priority":1}'
    )
    task = Task.model_validate_json(raw)

    assert task.id == "71E421DD-5B1C-4E4B-9C0A-2D7A0F7B9E11"
    assert task.kind == "email"
    assert task.payload == {"to": "a@example.com"}


def test_unknown_fields_are_ignored():
    task = Task(kind="TEST", priority="high")
    assert not hasattr(task, "priority")
    assert "priority" not in task.model_dump()


class TestUUIDValidation:
    """Tests for UUID v4 validation."""

    def test_uppercase_uuid_accepted_unchanged(self):
        upper_uuid = "550E8400-E29B-41D4-A716-446655440000"
        assert Task(id=upper_uuid, kind="TEST").id == upper_uuid

    @pytest.mark.parametrize(
        "invalid_id",
        [
            "not-a-uuid",
            "550e8400-e29b-41d4-a716",  # Too short
            "550e8400e29b41d4a716446655440000",  # No hyphens
            "gggggggg-gggg-4ggg-8ggg-gggggggggggg",  # Invalid hex
            "550e8400-e29b-11d4-a716-446655440000",  # Version 1
            " 550e8400-e29b-41d4-a716-446655440000",
            "",
        ],
    )
    def test_invalid_uuid_rejected(self, invalid_id: str):
        with pytest.raises(ValidationError):
            Task(id=invalid_id, kind="TEST")


class TestPayloadValidation:
    """Tests for payload validation."""

    def test_non_serializable_payload_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            Task(kind="TEST", payload={"when": object()})
        assert "JSON-serializable" in str(exc_info.value)

    def test_oversized_payload_rejected(self):
        large_payload = {"data": "x" * (MAX_PAYLOAD_SIZE + 1000)}

        with pytest.raises(ValidationError) as exc_info:
            Task(kind="TEST", payload=large_payload)

        assert "bytes" in str(exc_info.value).lower()

    def test_payload_near_limit_accepted(self):
        task = Task(kind="TEST", payload={"d": "x" * (MAX_PAYLOAD_SIZE - 100)})
        assert "d" in task.payload


class TestTaskImmutability:
    """Tests for task immutability."""

    def test_cannot_modify_kind(self):
        task = Task(kind="ORIGINAL")

        with pytest.raises(ValidationError):
            task.kind = "MODIFIED"

    def test_cannot_modify_payload(self):
        task = Task(kind="TEST", payload={"key": "value"})

        with pytest.raises(ValidationError):
            task.payload = {"new": "payload"}
