from collections.abc import Iterator

import pytest

from dlengine.engine import EngineState, use_engine

from .common import make_engine


# every test gets its own process wide engine, so nothing leaks between tests
@pytest.fixture(autouse=True)
def engine() -> Iterator[EngineState]:
    with use_engine(make_engine(cores=4)) as e:
        yield e
