'''
Cluster session configuration the engine relies on

The required properties are shipped with the package (spark-dlengine.conf). They are used both
to build the configuration for a new session and to check the configuration of an already running one.
'''

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from functools import lru_cache
from importlib import resources
from typing import Any, Protocol, TypeVar

from more_itertools import first_true

from .errors import ConfigMismatch
from .logging import make_logger

logger = make_logger(__name__)

CONF_RESOURCE = 'spark-dlengine.conf'


def parse_conf(text: str) -> list[tuple[str, str]]:
    pairs = []
    for line in text.splitlines():
        if not line.startswith('spark'):
            continue
        key, value = line.split(maxsplit=1)
        pairs.append((key, value.strip()))
    return pairs


@lru_cache(maxsize=1)
def _read_conf() -> tuple[tuple[str, str], ...]:
    text = resources.files('dlengine').joinpath(CONF_RESOURCE).read_text(encoding='utf8')
    return tuple(parse_conf(text))


def read_conf() -> list[tuple[str, str]]:
    '''
    Required session properties, in the order they're listed in the resource
    '''
    return list(_read_conf())


class SessionConf:
    '''
    Ordered key/value configuration for a cluster session, what init() hands back to the caller.
    '''

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        self._conf: dict[str, str] = {}
        for k, v in pairs:
            self.set(k, v)

    def set(self, key: str, value: str) -> SessionConf:
        self._conf[key] = value
        return self

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._conf.get(key, default)

    def contains(self, key: str) -> bool:
        return key in self._conf

    def get_all(self) -> list[tuple[str, str]]:
        return list(self._conf.items())

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._conf.items())

    def __len__(self) -> int:
        return len(self._conf)

    def to_spark_conf(self) -> Any:
        from pyspark import SparkConf  # only available with dlengine[spark]

        return SparkConf().setAll(self.get_all())

    def __repr__(self) -> str:
        return f'SessionConf({self.get_all()!r})'


class SupportsSet(Protocol):
    def set(self, key: str, value: str) -> Any: ...


C = TypeVar('C', bound=SupportsSet)


def spark_conf(conf: C | None = None) -> C | SessionConf:
    '''
    Populates conf (e.g. a SessionConf or a pyspark.SparkConf) with the required properties,
    overwriting the values which are already there
    '''
    res: SupportsSet = SessionConf() if conf is None else conf
    for k, v in read_conf():
        res.set(k, v)
    return res  # type: ignore[return-value]


def verify_conf(existing: Iterable[tuple[str, str]], required: Sequence[tuple[str, str]] | None = None) -> None:
    '''
    Raises ConfigMismatch on the first required property that's missing or has a different value
    '''
    if required is None:
        required = read_conf()
    existing = list(existing)
    for key, value in required:
        found = first_true(existing, pred=lambda kv, key=key: kv[0] == key)
        if found is None:
            raise ConfigMismatch(key=key, expected=value, actual=None)
        actual = found[1]
        if actual != value:
            raise ConfigMismatch(key=key, expected=value, actual=actual)


def check_spark_context() -> None:
    '''
    Checks the conf of the running spark context, if there is one.
    '''
    from pyspark import SparkConf, SparkContext  # only available with dlengine[spark]

    # if the marker is present, the context was just created by us, i.e. there was nothing running
    tmp_context = SparkContext.getOrCreate(SparkConf().set('tmpContext', 'true'))
    conf = tmp_context.getConf()
    if conf.contains('tmpContext'):
        tmp_context.stop()
        return
    logger.info('found existing spark context, checking the spark conf...')
    verify_conf(conf.getAll())
