'''
Warnings about the environment the engine runs in (core detection, oversubscription)

These usually end up in executor logs next to a lot of spark output, hence the colors.
'''

from __future__ import annotations

import sys
import warnings

import click


def _colorize(x: str, color: str | None = None) -> str:
    if color is None or not sys.stderr.isatty():
        return x
    return click.style(x, fg=color)


def _warn(message: str, *args, color: str | None = None, **kwargs) -> None:
    # point at whoever called medium()/high(), not at this module
    kwargs['stacklevel'] = kwargs.get('stacklevel', 1) + 2
    warnings.warn(_colorize(message, color=color), *args, **kwargs)  # noqa: B028


def medium(message: str, *args, **kwargs) -> None:
    _warn(message, *args, color='yellow', **kwargs)


def high(message: str, *args, **kwargs) -> None:
    '''
    The job will still run, but likely much slower than it could
    '''
    _warn(message, *args, color='red', **kwargs)
