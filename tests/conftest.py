"""Pytest configuration, Hypothesis profiles and shared fixtures."""

import pytest
from hypothesis import settings
from hypothesis import strategies as st

from oppgave.core.errors import StoreError
from oppgave.core.queue import Queue
from oppgave.stores.memory import InMemoryListStore

# Register Hypothesis profiles
settings.register_profile("ci", max_examples=100)
settings.register_profile("dev", max_examples=20)

# Load dev profile by default, CI can override via --hypothesis-profile=ci
settings.load_profile("dev")


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio as the async backend for pytest-asyncio."""
    return "asyncio"


# =============================================================================
# Strategies
# =============================================================================


json_scalars = (
    st.none()
    | st.booleans()
    | st.integers(min_value=-(2**53), max_value=2**53)
    | st.floats(allow_nan=False, allow_infinity=False)
    | st.text(max_size=20)
)

json_values = st.recursive(
    json_scalars,
    lambda children: st.lists(children, max_size=4)
    | st.dictionaries(st.text(max_size=8), children, max_size=4),
    max_leaves=12,
)


@st.composite
def job_payloads(draw: st.DrawFn) -> dict:
    """Generate small job dicts with a unique-looking integer id."""
    return {
        "id": draw(st.integers(min_value=0, max_value=10**9)),
        "args": draw(st.lists(st.text(max_size=10), max_size=3)),
    }


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store() -> InMemoryListStore:
    return InMemoryListStore()


@pytest.fixture
def queue(store: InMemoryListStore) -> Queue:
    return Queue("default", store)


# =============================================================================
# Store doubles
# =============================================================================


class AlwaysFailingStore:
    """Store whose every operation fails as if the connection were down."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def _fail(self, operation: str):
        self.calls.append(operation)
        raise StoreError(operation, ConnectionError("store unavailable"))

    async def push_right(self, key, value):
        self._fail("push_right")

    async def blocking_pop_and_move(self, src, dst, timeout=None):
        self._fail("blocking_pop_and_move")

    async def remove_one(self, key, value):
        self._fail("remove_one")

    async def requeue(self, src, dst, value):
        self._fail("requeue")

    async def length(self, key):
        self._fail("length")

    async def items(self, key):
        self._fail("items")

    async def stamp_claims(self, index_key, values, at):
        self._fail("stamp_claims")

    async def claim_stamps(self, index_key):
        self._fail("claim_stamps")

    async def clear_claims(self, index_key, values):
        self._fail("clear_claims")

    async def ping(self):
        self._fail("ping")

    async def close(self):
        pass


class FlakyPopStore(InMemoryListStore):
    """In-memory store whose first N blocking pops fail."""

    def __init__(self, fail_count: int) -> None:
        super().__init__()
        self._fail_count = fail_count
        self.pop_attempts = 0

    async def blocking_pop_and_move(self, src, dst, timeout=None):
        self.pop_attempts += 1
        if self.pop_attempts <= self._fail_count:
            raise StoreError("blocking_pop_and_move", ConnectionError(f"Failure {self.pop_attempts}"))
        return await super().blocking_pop_and_move(src, dst, timeout)
