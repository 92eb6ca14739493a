import pytest

from canvas_engine.engine import ExecutionEngine
from tests.helpers import FakeChatModel, ManualScheduler


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def engine() -> ExecutionEngine:
    return ExecutionEngine(start_delay=0, settle_delay=0)


@pytest.fixture
def fake_llm() -> FakeChatModel:
    return FakeChatModel()
