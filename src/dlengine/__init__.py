# this file only keeps the most common types/functions

from .engine import (
    EngineState,
    check_singleton,
    compute_pool,
    core_number,
    default_pool,
    engine_type,
    get_engine,
    init,
    is_initialized,
    node_number,
    on_spark,
    reset_singleton_flag,
    use_engine,
)
from .errors import EngineError
from .logging import make_logger
from .session import SessionConf, spark_conf
from .sizing import EngineType
from .threadpool import ThreadPool
from .topology import Topology

__all__ = [
    'EngineError',
    'EngineState',
    'EngineType',
    'SessionConf',
    'ThreadPool',
    'Topology',
    'check_singleton',
    'compute_pool',
    'core_number',
    'default_pool',
    'engine_type',
    'get_engine',
    'init',
    'is_initialized',
    'make_logger',
    'node_number',
    'on_spark',
    'reset_singleton_flag',
    'spark_conf',
    'use_engine',
]
