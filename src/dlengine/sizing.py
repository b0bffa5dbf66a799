'''
Thread pool sizing policy: turns the per node core count into the sizes of the
default and compute thread pools
'''

from __future__ import annotations

import re
from collections.abc import Mapping
from enum import Enum
from typing import NamedTuple

from .errors import InvalidTopology, UnknownEngineType

# default pool is mostly blocked on io/parallel map tasks, so it's heavily oversubscribed
DEFAULT_POOL_FACTOR = 50

DEFAULT_POOL_SIZE_PROPERTY = 'dlengine.engine.defaultPoolSize'

_DIGITS = re.compile(r'[0-9]+')


def parse_count(value: str) -> int:
    '''
    Strict decimal parsing for counts coming from the environment or submit properties.
    Unlike int(), rejects signs, surrounding whitespace, underscores and non-ascii digits.
    '''
    if _DIGITS.fullmatch(value) is None:
        raise ValueError(f'invalid count: {value!r}')
    return int(value)


class EngineType(Enum):
    # single threaded native blas, parallelism comes from the compute pool threads of the whole cluster
    MKL_BLAS = 'mklblas'

    def compute_pool_size(self, core_number: int) -> int:
        if self is EngineType.MKL_BLAS:
            # mkl manages its own threads, wrapping it in an outer pool would only oversubscribe
            return 1
        return core_number


def parse_engine_type(value: str | None) -> EngineType:
    '''
    Parses DL_ENGINE_TYPE, unset or empty means the default engine (mklblas)
    '''
    if value is None or value == '':
        return EngineType.MKL_BLAS
    try:
        return EngineType(value.lower())
    except ValueError as e:
        raise UnknownEngineType(value) from e


class PoolSizes(NamedTuple):
    default: int
    compute: int


def default_pool_override(properties: Mapping[str, str]) -> int | None:
    raw = properties.get(DEFAULT_POOL_SIZE_PROPERTY)
    if raw is None:
        return None
    try:
        size = parse_count(raw)
    except ValueError as e:
        raise InvalidTopology(f"{DEFAULT_POOL_SIZE_PROPERTY} should be an integer, but it is '{raw}'.") from e
    if size <= 0:
        raise InvalidTopology(f'{DEFAULT_POOL_SIZE_PROPERTY} should be positive, but it is {size}.')
    return size


def pool_sizes(core_number: int, engine_type: EngineType, default_override: int | None = None) -> PoolSizes:
    if core_number <= 0:
        raise InvalidTopology(f'core number should be positive, but it is {core_number}.')
    if default_override is None:
        default = core_number * DEFAULT_POOL_FACTOR
    else:
        default = default_override
    return PoolSizes(
        default=default,
        compute=engine_type.compute_pool_size(core_number),
    )


def test_pool_sizes() -> None:
    assert pool_sizes(4, EngineType.MKL_BLAS) == (200, 1)
    assert pool_sizes(4, EngineType.MKL_BLAS, default_override=7) == PoolSizes(default=7, compute=1)
