'''
Startup configuration of the engine: what the process environment says before anyone called init

Environment variables:
- DL_CORE_NUMBER: cores per node to use, instead of detecting physical cores
- DL_ENGINE_TYPE: native compute backend, only 'mklblas' (the default) is supported
- ON_SPARK      : if present (value is ignored), the process is a part of a cluster session
'''

from __future__ import annotations

import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

import psutil

from . import warnings
from .errors import InvalidTopology
from .sizing import EngineType, parse_count, parse_engine_type


def physical_core_number() -> int:
    physical = psutil.cpu_count(logical=False)
    if physical is not None:
        return max(1, physical)
    # psutil can't tell on some platforms, assume hyperthreading is enabled
    logical = psutil.cpu_count(logical=True) or os.cpu_count() or 1
    cores = max(1, logical // 2)
    warnings.medium(f"Couldn't detect physical core number, assuming {cores}. Set DL_CORE_NUMBER to override.")
    return cores


def parse_core_number(value: str) -> int:
    try:
        cores = parse_count(value)
    except ValueError as e:
        raise InvalidTopology(f"DL_CORE_NUMBER should be a positive integer, but it is '{value}'.") from e
    if cores <= 0:
        raise InvalidTopology(f"DL_CORE_NUMBER should be a positive integer, but it is '{value}'.")
    logical = psutil.cpu_count(logical=True)
    if logical is not None and cores > logical:
        warnings.high(f'DL_CORE_NUMBER={cores} is more than {logical} cpus available on this machine, threads will be oversubscribed.')
    return cores


@dataclass
class Config:
    core_number: int
    engine_type: EngineType = EngineType.MKL_BLAS
    on_spark: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Config:
        if environ is None:
            environ = os.environ
        env_cores = environ.get('DL_CORE_NUMBER')
        core_number = physical_core_number() if env_cores is None else parse_core_number(env_cores)
        return cls(
            core_number=core_number,
            engine_type=parse_engine_type(environ.get('DL_ENGINE_TYPE')),
            on_spark='ON_SPARK' in environ,
        )


def shell_key(key: str) -> str:
    # shell doesn't allow dots in var names without escaping, so spark.executor.cores is also looked up as SPARK_EXECUTOR_CORES
    return key.upper().replace('.', '_')


class SystemProperties(Mapping[str, str]):
    '''
    Submission properties, as set by the job launcher in the process environment.
    Keys are dotted property names, e.g. 'spark.master'.
    '''

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self.environ = os.environ if environ is None else environ

    def __getitem__(self, key: str) -> str:
        if key in self.environ:
            return self.environ[key]
        skey = shell_key(key)
        if skey in self.environ:
            return self.environ[skey]
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self.environ)

    def __len__(self) -> int:
        return len(self.environ)
