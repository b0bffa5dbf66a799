from __future__ import annotations

import os
from collections.abc import Iterator, Mapping
from contextlib import contextmanager

from dlengine.config import Config
from dlengine.engine import EngineState


@contextmanager
def tmp_environ_set(key: str, value: str | None) -> Iterator[None]:
    prev_value = os.environ.get(key)
    if value is None:
        os.environ.pop(key, None)
    else:
        os.environ[key] = value
    try:
        yield
    finally:
        if prev_value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = prev_value


class RecordingVerifier:
    '''
    Stands in for the spark session check, counts calls and optionally fails
    '''

    def __init__(self, error: Exception | None = None) -> None:
        self.calls = 0
        self.error = error

    def __call__(self) -> None:
        self.calls += 1
        if self.error is not None:
            raise self.error


def make_engine(
    cores: int = 4,
    *,
    properties: Mapping[str, str] | None = None,
    verifier: RecordingVerifier | None = None,
) -> EngineState:
    return EngineState(
        Config(core_number=cores),
        properties={} if properties is None else properties,
        verifier=RecordingVerifier() if verifier is None else verifier,
    )
