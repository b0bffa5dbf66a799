from __future__ import annotations

import os
import sys
import traceback

import click


# diagnostics go to stderr, so stdout of topology/conf stays parseable
def eprint(x: str) -> None:
    click.echo(x, err=True)


def indent(x: str) -> str:
    return ''.join('   ' + l for l in x.splitlines(keepends=True))


PASS = '✅'
FAIL = '❌'
NOTE = '❗'


def info(x: str) -> None:
    eprint(f'{PASS} {x}')


def error(x: str) -> None:
    eprint(f'{FAIL} {x}')


def warning(x: str) -> None:
    eprint(f'{NOTE} {x}')


def tb(e: Exception) -> None:
    eprint(indent(''.join(traceback.format_exception(type(e), e, e.__traceback__))))


def show_topology() -> None:
    from .config import Config, SystemProperties
    from .topology import MASTER, detect_mode, is_submitted, resolve_topology

    properties = SystemProperties()
    config = Config.from_env()
    if not is_submitted(properties):
        warning('not submitted by spark-submit, running on a single node without spark')
        click.echo(f'mode: none\nnodes: 1\ncores: {config.core_number}')
        return
    master = properties.get(MASTER)
    mode = 'unknown' if master is None else detect_mode(master).name.lower()
    topology = resolve_topology(properties, physical_cores=config.core_number)
    click.echo(f'mode: {mode}\nnodes: {topology.node_number}\ncores: {topology.core_number}')


def engine_doctor(*, verbose: bool) -> bool:
    from .engine import get_engine
    from .errors import EngineError

    try:
        # startup config (DL_CORE_NUMBER, DL_ENGINE_TYPE) is parsed when the engine is created
        engine = get_engine()
        info(f'engine type : {engine.engine_type().value}')
        engine.auto_init(create_config=False, verify_consistency=False)
    except EngineError as e:
        error(f'{click.style("FAIL", fg="red")}: engine init failed')
        eprint(indent(str(e)))
        if verbose:
            tb(e)
        return False
    info(f'on spark    : {engine.on_spark()}')
    info(f'topology    : nodes={engine.node_number()} cores={engine.core_number()}')
    info(f'pools       : default={engine.default_pool().size} compute={engine.compute_pool().size}')
    return True


def show_conf(*, submit_args: bool) -> None:
    from .session import read_conf

    for k, v in read_conf():
        if submit_args:
            click.echo(f'--conf {k}={v}')
        else:
            click.echo(f'{k} {v}')


@click.group()
@click.option("--debug", is_flag=True, default=False, help="Show debug logs")
def main(*, debug: bool) -> None:
    '''
    Tool for dlengine

    Inspect the topology and thread pools the engine would use in the current environment
    '''
    # takes over whatever LOGGING_LEVEL_DLENGINE was set to
    if debug:
        os.environ['LOGGING_LEVEL_DLENGINE'] = 'debug'


@main.command(name='topology', short_help='print detected nodes and cores')
def topology_cmd() -> None:
    '''
    Prints the deployment mode, node number and cores per node, as detected from spark-submit properties
    '''
    from .errors import EngineError

    try:
        show_topology()
    except EngineError as e:
        error(str(e))
        sys.exit(1)


@main.command(name='doctor', short_help='initialize the engine and report')
@click.option('--verbose/--quiet', default=False, help='Print more diagnostic information')
def doctor_cmd(*, verbose: bool) -> None:
    '''
    Initializes the engine the same way an application would (without checking the spark session) and reports the result
    '''
    if not engine_doctor(verbose=verbose):
        sys.exit(1)


@main.command(name='conf', short_help='print required session properties')
@click.option('--submit-args', is_flag=True, help='Print as --conf arguments for spark-submit')
def conf_cmd(*, submit_args: bool) -> None:
    show_conf(submit_args=submit_args)


if __name__ == '__main__':
    # keep the console script name in usage messages under python -m dlengine
    main(prog_name='dlengine')
