from __future__ import annotations

import pytest

from dlengine.errors import (
    InconsistentAllocationBounds,
    IndivisibleCoreBudget,
    InvalidTopology,
    MissingRequiredProperty,
    UnparseableDeploymentDescriptor,
    UnsupportedAllocationMode,
)
from dlengine.topology import (
    DeploymentMode,
    Topology,
    detect_mode,
    dynamic_allocation_executors,
    is_submitted,
    resolve_topology,
)

PHYSICAL = 6


def submitted(master: str, **extra: str) -> dict[str, str]:
    return {'SPARK_SUBMIT': 'true', 'spark.master': master, **extra}


@pytest.mark.parametrize('master, mode', [
    ('local[4]'              , DeploymentMode.LOCAL),
    ('LOCAL[*]'              , DeploymentMode.LOCAL),
    ('spark://master:7077'   , DeploymentMode.STANDALONE),
    ('Spark://master:7077'   , DeploymentMode.STANDALONE),
    ('yarn'                  , DeploymentMode.YARN),
    ('yarn-client'           , DeploymentMode.YARN),
    ('mesos://zk://host:2181', DeploymentMode.MESOS),
])
def test_detect_mode(master: str, mode: DeploymentMode) -> None:
    assert detect_mode(master) is mode


def test_unsupported_master() -> None:
    with pytest.raises(UnparseableDeploymentDescriptor, match=r'Unsupported master format k8s://https://host:443'):
        resolve_topology(submitted('k8s://https://host:443'), physical_cores=PHYSICAL)


@pytest.mark.parametrize('n', [1, 2, 4, 17, 128])
def test_local_n(n: int) -> None:
    assert resolve_topology(submitted(f'local[{n}]'), physical_cores=PHYSICAL) == Topology(node_number=1, core_number=n)


def test_local_star() -> None:
    assert resolve_topology(submitted('local[*]'), physical_cores=PHYSICAL) == (1, PHYSICAL)


@pytest.mark.parametrize('master', ['local', 'local[0]', 'local[x]', 'local[-2]', 'local[4', 'local[2,3]'])
def test_local_malformed(master: str) -> None:
    with pytest.raises(UnparseableDeploymentDescriptor, match=r"Can't parse master"):
        resolve_topology(submitted(master), physical_cores=PHYSICAL)


def test_missing_master() -> None:
    with pytest.raises(MissingRequiredProperty, match=r"Can't find spark.master") as excinfo:
        resolve_topology({'SPARK_SUBMIT': 'true'}, physical_cores=PHYSICAL)
    assert excinfo.value.key == 'spark.master'


def test_explicit_counts_win() -> None:
    # properties are ignored completely if counts are passed
    assert resolve_topology({}, physical_cores=PHYSICAL, node_number=3, core_number=5) == (3, 5)
    with pytest.raises(InvalidTopology):
        resolve_topology({}, physical_cores=PHYSICAL, node_number=3)


@pytest.mark.parametrize('master', ['spark://master:7077', 'mesos://master:5050'])
@pytest.mark.parametrize('total, cores, nodes', [
    (8  , 4 , 2),
    (12 , 3 , 4),
    (100, 10, 10),
    (2  , 1 , 2),
])
def test_core_budget(master: str, total: int, cores: int, nodes: int) -> None:
    props = submitted(master, **{'spark.executor.cores': str(cores), 'spark.cores.max': str(total)})
    assert resolve_topology(props, physical_cores=PHYSICAL) == Topology(node_number=nodes, core_number=cores)


@pytest.mark.parametrize('master', ['spark://master:7077', 'mesos://master:5050'])
@pytest.mark.parametrize('total, cores', [
    (4 , 4),  # a single executor isn't enough
    (3 , 4),
    (10, 4),
    (7 , 2),
])
def test_core_budget_indivisible(master: str, total: int, cores: int) -> None:
    props = submitted(master, **{'spark.executor.cores': str(cores), 'spark.cores.max': str(total)})
    with pytest.raises(IndivisibleCoreBudget, match=rf'total core number\({total}\)') as excinfo:
        resolve_topology(props, physical_cores=PHYSICAL)
    assert (excinfo.value.total, excinfo.value.cores) == (total, cores)


@pytest.mark.parametrize('master', ['spark://master:7077', 'mesos://master:5050'])
def test_core_budget_missing(master: str) -> None:
    props = submitted(master, **{'spark.executor.cores': '4'})
    with pytest.raises(MissingRequiredProperty, match=r'--total-executor-cores'):
        resolve_topology(props, physical_cores=PHYSICAL)


@pytest.mark.parametrize('master', ['spark://master:7077', 'yarn', 'mesos://master:5050'])
def test_executor_cores_missing(master: str) -> None:
    props = submitted(master, **{'spark.cores.max': '8', 'spark.executor.instances': '2'})
    with pytest.raises(MissingRequiredProperty, match=r'--executor-cores'):
        resolve_topology(props, physical_cores=PHYSICAL)


def test_yarn() -> None:
    props = submitted('yarn', **{'spark.executor.cores': '8', 'spark.executor.instances': '3'})
    assert resolve_topology(props, physical_cores=PHYSICAL) == (3, 8)

    del props['spark.executor.instances']
    with pytest.raises(MissingRequiredProperty, match=r'--num-executors'):
        resolve_topology(props, physical_cores=PHYSICAL)


def test_not_an_integer() -> None:
    props = submitted('yarn', **{'spark.executor.cores': 'four', 'spark.executor.instances': '3'})
    with pytest.raises(InvalidTopology, match=r"spark.executor.cores should be an integer, but it is 'four'"):
        resolve_topology(props, physical_cores=PHYSICAL)


@pytest.mark.parametrize('instances', ['1_6', ' 3', '+3', '-3'])
def test_lenient_integers_rejected(instances: str) -> None:
    props = submitted('yarn', **{'spark.executor.cores': '4', 'spark.executor.instances': instances})
    with pytest.raises(InvalidTopology, match=r'spark.executor.instances should be an integer'):
        resolve_topology(props, physical_cores=PHYSICAL)


def test_mesos_fine_grained() -> None:
    props = submitted('mesos://master:5050', **{
        'spark.mesos.coarse': 'false',
        'spark.executor.cores': '4',
        'spark.cores.max': '8',
    })
    with pytest.raises(UnsupportedAllocationMode, match=r'fine-grained'):
        resolve_topology(props, physical_cores=PHYSICAL)

    props['spark.mesos.coarse'] = 'true'
    assert resolve_topology(props, physical_cores=PHYSICAL) == (2, 4)


def dynamic(min_executors: int, max_executors: int) -> dict[str, str]:
    return {
        'spark.dynamicAllocation.enabled': 'true',
        'spark.dynamicAllocation.minExecutors': str(min_executors),
        'spark.dynamicAllocation.maxExecutors': str(max_executors),
    }


def test_dynamic_allocation_off() -> None:
    assert dynamic_allocation_executors({}) is None
    assert dynamic_allocation_executors({'spark.dynamicAllocation.enabled': 'false'}) is None
    # both bounds default to 1
    assert dynamic_allocation_executors({'spark.dynamicAllocation.enabled': 'true'}) == 1


@pytest.mark.parametrize('master', ['spark://master:7077', 'yarn', 'mesos://master:5050'])
def test_dynamic_allocation(master: str) -> None:
    # the total core budget/instances aren't needed
    props = submitted(master, **{'spark.executor.cores': '4', **dynamic(5, 5)})
    assert resolve_topology(props, physical_cores=PHYSICAL) == (5, 4)


@pytest.mark.parametrize('master', ['spark://master:7077', 'yarn', 'mesos://master:5050'])
@pytest.mark.parametrize('lo, hi', [(1, 2), (4, 3), (2, 10)])
def test_dynamic_allocation_bounds_differ(master: str, lo: int, hi: int) -> None:
    props = submitted(master, **{
        'spark.executor.cores': '4',
        'spark.cores.max': '8',
        'spark.executor.instances': '2',
        **dynamic(lo, hi),
    })
    with pytest.raises(InconsistentAllocationBounds, match=r'must be identical'):
        resolve_topology(props, physical_cores=PHYSICAL)


def test_is_submitted() -> None:
    assert not is_submitted({})
    assert not is_submitted({'spark.master': 'local[2]'})
    assert is_submitted({'SPARK_SUBMIT': ''})
