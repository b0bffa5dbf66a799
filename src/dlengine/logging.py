'''
Loggers for the engine modules

Levels can be changed without touching the code, via environment variables:
- LOGGING_LEVEL_dlengine_engine=debug: a single module
- LOGGING_LEVEL_DLENGINE=debug: all engine modules (that's what 'dlengine --debug' sets)
'''

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Union

import colorlog

DEFAULT_LEVEL = 'INFO'
FORMAT = '{start}[%(levelname)-7s %(asctime)s %(name)s %(filename)s:%(lineno)-4d]{end} %(message)s'
FORMAT_NOCOLOR = FORMAT.format(start='', end='')
FORMAT_COLOR = FORMAT.format(start='%(log_color)s', end='%(reset)s')

ENV_PREFIX = 'LOGGING_LEVEL_'
ENV_ALL = ENV_PREFIX + 'DLENGINE'


Level = int
LevelIsh = Union[Level, str, None]


def mklevel(level: LevelIsh) -> Level:
    if level is None:
        return logging.NOTSET
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper())


def get_env_level(name: str) -> Level | None:
    # module loggers are dotted, which is awkward in var names, so dlengine_engine works too
    for key in (ENV_PREFIX + name, ENV_PREFIX + name.replace('.', '_'), ENV_ALL):
        lvl = os.environ.get(key)
        if lvl:
            return mklevel(lvl)
    return None


def setup_logger(logger: str | logging.Logger, *, level: LevelIsh = None) -> None:
    if isinstance(logger, str):
        logger = logging.getLogger(logger)

    env_level = get_env_level(logger.name)
    lvl = env_level if env_level is not None else mklevel(DEFAULT_LEVEL if level is None else level)

    # an application that configured our loggers explicitly wins over the defaults
    if logger.level == logging.NOTSET:
        logger.setLevel(lvl)

    _setup_handlers_and_formatters(name=logger.name)


# a second handler on the same logger would print every record twice
@lru_cache(None)
def _setup_handlers_and_formatters(name: str) -> None:
    logger = logging.getLogger(name)
    logger.addFilter(AddExceptionTraceback())

    handler = logging.StreamHandler()
    if handler.stream.isatty():
        handler.setFormatter(colorlog.ColoredFormatter(FORMAT_COLOR))
    else:
        handler.setFormatter(logging.Formatter(FORMAT_NOCOLOR))
    logger.addHandler(handler)

    # spark drivers often call basicConfig, records shouldn't show up again through the root logger
    logger.propagate = False


class AddExceptionTraceback(logging.Filter):
    '''
    Attaches the traceback when an exception object itself is logged, e.g. logger.error(e) outside of an except block
    '''

    def filter(self, record: logging.LogRecord) -> bool:
        exc = record.msg
        if record.levelno >= logging.ERROR and isinstance(exc, BaseException):
            if record.exc_info is None or record.exc_info == (None, None, None):
                record.exc_info = (type(exc), exc, exc.__traceback__)
        return True


def make_logger(name: str, *, level: LevelIsh = None) -> logging.Logger:
    logger = logging.getLogger(name)
    setup_logger(logger, level=level)
    return logger
