'''
Process wide engine state: node/core topology, engine type and the two shared thread pools

init() has to be called before anything else, typically at the very start of the driver program:

    conf = dlengine.init()  # figures out the topology from spark-submit properties, or runs locally
    sc = SparkContext.getOrCreate(conf.to_spark_conf())

After that, dlengine.core_number()/dlengine.node_number() and the pools can be used from anywhere in the process.
'''

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Callable, cast

from .config import Config, SystemProperties
from .errors import InvalidTopology, UninitializedAccess, with_help
from .logging import make_logger
from .session import SessionConf, check_spark_context, spark_conf
from .singleton import SingletonGuard
from .sizing import EngineType, PoolSizes, default_pool_override, pool_sizes
from .threadpool import ThreadPool
from .topology import Topology, is_submitted, resolve_topology

logger = make_logger(__name__)

Verifier = Callable[[], None]


def _check_positive(what: str, n: int) -> None:
    if n <= 0:
        raise InvalidTopology(f'{what} should be positive, but it is {n}.')


class EngineState:
    '''
    Mutations (init, the test only setters and reset) are serialized by a single lock.
    Accessors don't take the lock, they read whatever was published by the last successful init.
    '''

    def __init__(
        self,
        config: Config | None = None,
        *,
        properties: Mapping[str, str] | None = None,
        verifier: Verifier | None = None,
    ) -> None:
        if config is None:
            config = Config.from_env()
        # None means read submission properties from the process environment every time
        self._properties = properties
        self._verifier: Verifier = check_spark_context if verifier is None else verifier

        self._lock = threading.Lock()
        self._singleton = SingletonGuard()

        self._initialized = False
        self._on_spark = config.on_spark
        # node and core number are published together, readers never see a mixed pair
        self._topology = Topology(node_number=-1, core_number=config.core_number)
        self._engine_type = config.engine_type

        self._default: ThreadPool | None = None
        self._compute = ThreadPool(1, name='dlengine-compute').set_mkl_thread(1)

    @property
    def properties(self) -> Mapping[str, str]:
        if self._properties is None:
            return SystemProperties()
        return self._properties

    ## accessors
    def is_initialized(self) -> bool:
        return self._initialized

    def on_spark(self) -> bool:
        '''
        Whether the process is a part of a cluster session
        '''
        return self._on_spark

    def _require_initialized(self, what: str = 'Engine') -> None:
        if not self._initialized:
            raise UninitializedAccess(what)

    def core_number(self) -> int:
        self._require_initialized()
        return self._topology.core_number

    def node_number(self) -> int:
        self._require_initialized()
        return self._topology.node_number

    def default_pool(self) -> ThreadPool:
        self._require_initialized('Default thread pool')
        pool = self._default
        assert pool is not None  # always created by init
        return pool

    def compute_pool(self) -> ThreadPool:
        self._require_initialized('Compute thread pool')
        return self._compute

    def engine_type(self) -> EngineType:
        return self._engine_type
    ##

    def check_singleton(self) -> bool:
        return self._singleton.check()

    def reset_singleton_flag(self) -> None:
        self._singleton.reset()

    def _pool_sizes(self, core_number: int) -> PoolSizes:
        return pool_sizes(core_number, self._engine_type, default_override=default_pool_override(self.properties))

    # NOTE: should be called under self._lock
    def _apply_pool_sizes(self, sizes: PoolSizes) -> None:
        if self._default is None:
            self._default = ThreadPool(sizes.default, name='dlengine-default')
        elif self._default.resize(sizes.default):
            logger.debug(f'default pool resized to {sizes.default}')
        if self._compute.resize(sizes.compute):
            logger.debug(f'compute pool resized to {sizes.compute}')
            self._compute.set_mkl_thread(1)

    def init(
        self,
        node_number: int | None = None,
        core_number: int | None = None,
        *,
        on_spark: bool | None = None,
        create_config: bool = True,
        verify_consistency: bool | None = None,
    ) -> SessionConf | None:
        '''
        Sets the topology and sizes the thread pools. Can be called again, e.g. to change topology between runs.

        With no node/core numbers, they are detected from the environment (see auto_init), on_spark is decided
        by the detection then, and the session is verified unless verify_consistency=False.
        With explicit numbers, on_spark and verify_consistency default to False.
        Returns the session config if on_spark and create_config, otherwise None.
        If anything fails, the previous state is left as it was.
        '''
        if node_number is None and core_number is None:
            if on_spark is not None:
                raise TypeError('on_spark can only be passed together with node and core number')
            return self.auto_init(
                create_config=create_config,
                verify_consistency=True if verify_consistency is None else verify_consistency,
            )
        if node_number is None or core_number is None:
            raise InvalidTopology('node number and core number should be passed together.')
        on_spark = bool(on_spark)
        verify_consistency = bool(verify_consistency)

        with self._lock:
            _check_positive('node number', node_number)
            _check_positive('core number', core_number)
            if not on_spark and node_number != 1:
                raise InvalidTopology(with_help(f'In local mode, the node number should be 1, but it is {node_number}.'))
            if on_spark and verify_consistency:
                self._verifier()
            sizes = self._pool_sizes(core_number)
            conf = spark_conf() if on_spark and create_config else None

            ## nothing can fail past this point
            topology = Topology(node_number=node_number, core_number=core_number)
            if self._initialized and self._topology != topology:
                logger.info(f're-initializing engine: {self._topology} -> {topology}')
            self._topology = topology
            self._on_spark = on_spark
            self._apply_pool_sizes(sizes)
            self._initialized = True

        logger.info(f'engine initialized: nodes={node_number} cores={core_number} on_spark={on_spark} pools={sizes}')
        return conf

    def auto_init(self, *, create_config: bool = True, verify_consistency: bool = True) -> SessionConf | None:
        '''
        If the application was launched by spark-submit, extracts the topology from the submit properties.
        Otherwise, assumes a single node without spark, using all physical cores.
        (note that spark local mode still has to go through spark-submit --master local[N])
        '''
        properties = self.properties
        if is_submitted(properties):
            topology = resolve_topology(properties, physical_cores=self._topology.core_number)
            logger.info(f'detected {topology} from spark-submit properties')
            return self.init(
                topology.node_number,
                topology.core_number,
                on_spark=True,
                create_config=create_config,
                verify_consistency=verify_consistency,
            )
        return self.init(1, self._topology.core_number, on_spark=False, create_config=False)

    def topology(self) -> Topology:
        self._require_initialized()
        return self._topology

    ## only meant to be used in tests
    def set_core_number(self, n: int) -> None:
        _check_positive('core number', n)
        with self._lock:
            sizes = self._pool_sizes(n)
            self._topology = self._topology._replace(core_number=n)
            self._apply_pool_sizes(sizes)

    def set_node_number(self, n: int) -> None:
        _check_positive('node number', n)
        with self._lock:
            self._topology = self._topology._replace(node_number=n)

    def set_node_and_core(self, node_number: int, core_number: int) -> None:
        self.set_node_number(node_number)
        self.set_core_number(core_number)

    def set_engine_type(self, engine_type: EngineType) -> None:
        with self._lock:
            self._engine_type = engine_type

    def reset(self) -> None:
        '''
        Back to a degenerate uninitialized state.
        Engine type, thread pools and the singleton counter are kept as they are.
        '''
        with self._lock:
            self._on_spark = False
            self._initialized = False
            self._topology = Topology(node_number=1, core_number=1)
    ##


## process wide default instance, created on first use
_NOT_SET = cast(EngineState, object())
_INSTANCE: EngineState = _NOT_SET
_INSTANCE_LOCK = threading.Lock()


def get_engine() -> EngineState:
    global _INSTANCE
    if _INSTANCE is _NOT_SET:
        with _INSTANCE_LOCK:
            if _INSTANCE is _NOT_SET:
                _INSTANCE = EngineState()
    return _INSTANCE


@contextmanager
def use_engine(state: EngineState) -> Iterator[EngineState]:
    '''
    Temporarily replaces the process wide engine, mostly for tests
    '''
    global _INSTANCE
    with _INSTANCE_LOCK:
        prev = _INSTANCE
        _INSTANCE = state
    try:
        yield state
    finally:
        with _INSTANCE_LOCK:
            _INSTANCE = prev


def init(
    node_number: int | None = None,
    core_number: int | None = None,
    *,
    on_spark: bool | None = None,
    create_config: bool = True,
    verify_consistency: bool | None = None,
) -> SessionConf | None:
    return get_engine().init(
        node_number,
        core_number,
        on_spark=on_spark,
        create_config=create_config,
        verify_consistency=verify_consistency,
    )


def core_number() -> int:
    return get_engine().core_number()


def node_number() -> int:
    return get_engine().node_number()


def is_initialized() -> bool:
    return get_engine().is_initialized()


def on_spark() -> bool:
    return get_engine().on_spark()


def engine_type() -> EngineType:
    return get_engine().engine_type()


def default_pool() -> ThreadPool:
    return get_engine().default_pool()


def compute_pool() -> ThreadPool:
    return get_engine().compute_pool()


def check_singleton() -> bool:
    return get_engine().check_singleton()


def reset_singleton_flag() -> None:
    get_engine().reset_singleton_flag()
