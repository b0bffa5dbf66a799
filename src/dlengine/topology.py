'''
Figures out how many nodes (executors) and cores per node the job was granted

Different cluster managers expose the same two numbers through different spark-submit properties,
this module normalizes them into a single Topology.
Nothing here talks to the cluster manager, it only reads what the launcher already put in the properties.
'''

from __future__ import annotations

import re
from collections.abc import Mapping
from enum import Enum
from typing import Callable, NamedTuple

from .errors import (
    InconsistentAllocationBounds,
    IndivisibleCoreBudget,
    InvalidTopology,
    MissingRequiredProperty,
    UnparseableDeploymentDescriptor,
    UnsupportedAllocationMode,
    with_help,
)
from .sizing import parse_count

Properties = Mapping[str, str]

# set by spark-submit, if it's missing the job wasn't submitted to a cluster
SUBMIT_MARKER = 'SPARK_SUBMIT'

MASTER = 'spark.master'
EXECUTOR_CORES = 'spark.executor.cores'
CORES_MAX = 'spark.cores.max'
EXECUTOR_INSTANCES = 'spark.executor.instances'
DYNAMIC_ALLOCATION_ENABLED = 'spark.dynamicAllocation.enabled'
DYNAMIC_ALLOCATION_MIN = 'spark.dynamicAllocation.minExecutors'
DYNAMIC_ALLOCATION_MAX = 'spark.dynamicAllocation.maxExecutors'
MESOS_COARSE = 'spark.mesos.coarse'


class Topology(NamedTuple):
    node_number: int
    core_number: int


class DeploymentMode(Enum):
    LOCAL      = 'local'
    STANDALONE = 'spark'
    YARN       = 'yarn'
    MESOS      = 'mesos'

    @property
    def prefix(self) -> str:
        return self.value


def detect_mode(master: str) -> DeploymentMode:
    lmaster = master.lower()
    for mode in DeploymentMode:
        if lmaster.startswith(mode.prefix):
            return mode
    raise UnparseableDeploymentDescriptor(with_help(f'Unsupported master format {master}.'))


def is_submitted(properties: Properties) -> bool:
    return SUBMIT_MARKER in properties


def _required(properties: Properties, key: str, hint: str) -> str:
    value = properties.get(key)
    if value is None:
        raise MissingRequiredProperty(key, hint)
    return value


def _to_int(key: str, value: str) -> int:
    try:
        return parse_count(value)
    except ValueError as e:
        raise InvalidTopology(with_help(f"{key} should be an integer, but it is '{value}'.")) from e


def _executor_cores(properties: Properties) -> int:
    raw = _required(properties, EXECUTOR_CORES, 'do you submit with --executor-cores option?')
    return _to_int(EXECUTOR_CORES, raw)


def dynamic_allocation_executors(properties: Properties) -> int | None:
    '''
    None if dynamic allocation is off. Otherwise, the executor number can't change during the run,
    so min and max executors have to be the same.
    '''
    if properties.get(DYNAMIC_ALLOCATION_ENABLED) != 'true':
        return None
    max_executors = _to_int(DYNAMIC_ALLOCATION_MAX, properties.get(DYNAMIC_ALLOCATION_MAX, '1'))
    min_executors = _to_int(DYNAMIC_ALLOCATION_MIN, properties.get(DYNAMIC_ALLOCATION_MIN, '1'))
    if max_executors != min_executors:
        raise InconsistentAllocationBounds(with_help(
            f'{DYNAMIC_ALLOCATION_MAX}({max_executors}) and {DYNAMIC_ALLOCATION_MIN}({min_executors}) '
            'must be identical when dynamic allocation is enabled.'
        ))
    return min_executors


def nodes_from_core_budget(total: int, cores: int) -> int:
    if not (total > cores and total % cores == 0):
        raise IndivisibleCoreBudget(total=total, cores=cores)
    return total // cores


def _nodes_from_budget_or_allocation(properties: Properties, cores: int) -> int:
    nodes = dynamic_allocation_executors(properties)
    if nodes is not None:
        return nodes
    raw = _required(properties, CORES_MAX, 'do you submit with --total-executor-cores option?')
    return nodes_from_core_budget(_to_int(CORES_MAX, raw), cores)


_LOCAL_N = re.compile(r'local\[(\d+)\]')
_LOCAL_STAR = re.compile(r'local\[\*\]')


def _resolve_local(master: str, properties: Properties, physical_cores: int) -> Topology:
    m = _LOCAL_N.fullmatch(master)
    if m is not None:
        n = int(m.group(1))
        if n > 0:
            return Topology(node_number=1, core_number=n)
    elif _LOCAL_STAR.fullmatch(master) is not None:
        return Topology(node_number=1, core_number=physical_cores)
    raise UnparseableDeploymentDescriptor(with_help(
        f"Can't parse master {master}, expected local[N] with positive N or local[*]."
    ))


def _resolve_standalone(master: str, properties: Properties, physical_cores: int) -> Topology:
    cores = _executor_cores(properties)
    return Topology(node_number=_nodes_from_budget_or_allocation(properties, cores), core_number=cores)


def _resolve_yarn(master: str, properties: Properties, physical_cores: int) -> Topology:
    cores = _executor_cores(properties)
    nodes = dynamic_allocation_executors(properties)
    if nodes is None:
        raw = _required(properties, EXECUTOR_INSTANCES, 'do you submit with --num-executors option?')
        nodes = _to_int(EXECUTOR_INSTANCES, raw)
    return Topology(node_number=nodes, core_number=cores)


def _resolve_mesos(master: str, properties: Properties, physical_cores: int) -> Topology:
    if properties.get(MESOS_COARSE) == 'false':
        raise UnsupportedAllocationMode(with_help(
            f'Mesos fine-grained mode is not supported, please unset {MESOS_COARSE} or set it to true.'
        ))
    cores = _executor_cores(properties)
    return Topology(node_number=_nodes_from_budget_or_allocation(properties, cores), core_number=cores)


Resolver = Callable[[str, Properties, int], Topology]

RESOLVERS: dict[DeploymentMode, Resolver] = {
    DeploymentMode.LOCAL     : _resolve_local,
    DeploymentMode.STANDALONE: _resolve_standalone,
    DeploymentMode.YARN      : _resolve_yarn,
    DeploymentMode.MESOS     : _resolve_mesos,
}


def resolve_topology(
    properties: Properties,
    physical_cores: int,
    *,
    node_number: int | None = None,
    core_number: int | None = None,
) -> Topology:
    '''
    Explicitly passed node/core numbers win, otherwise they're extracted from the spark-submit properties.
    physical_cores is only used for local[*].
    '''
    if node_number is not None or core_number is not None:
        if node_number is None or core_number is None:
            raise InvalidTopology('node number and core number should be passed together.')
        return Topology(node_number=node_number, core_number=core_number)

    master = _required(properties, MASTER, 'do you start your application without spark-submit?')
    mode = detect_mode(master)
    return RESOLVERS[mode](master, properties, physical_cores)
