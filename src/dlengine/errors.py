"""
Errors raised by the engine

All of them are reported straight to the caller of init (or of the accessor),
there are no retries and no silent defaults. Messages are meant for whoever
launched the job, so they name the offending value and what to pass instead.
"""

from __future__ import annotations

DOCTOR_HINT = "Run 'dlengine doctor --verbose' to check how the engine sees your environment."
CONF_HINT = "Run 'dlengine conf --submit-args' to get the expected values."


def with_help(message: str, *, hint: str = DOCTOR_HINT) -> str:
    return f'{message} {hint}'


class EngineError(Exception):
    '''
    Base class for everything the engine raises on purpose
    '''


class UninitializedAccess(EngineError, RuntimeError):
    def __init__(self, what: str = 'Engine') -> None:
        super().__init__(with_help(f'{what} is not initialized. Have you called dlengine.init()?'))


class InvalidTopology(EngineError, ValueError):
    pass


class UnparseableDeploymentDescriptor(EngineError, ValueError):
    pass


class MissingRequiredProperty(EngineError, ValueError):
    def __init__(self, key: str, hint: str) -> None:
        self.key = key
        super().__init__(with_help(f"Can't find {key}, {hint}"))


class InconsistentAllocationBounds(EngineError, ValueError):
    pass


class IndivisibleCoreBudget(EngineError, ValueError):
    def __init__(self, total: int, cores: int) -> None:
        self.total = total
        self.cores = cores
        super().__init__(with_help(
            f"total core number({total}) can't be divided by single core number({cores}) provided to spark-submit."
        ))


class UnsupportedAllocationMode(EngineError, ValueError):
    pass


class ConfigMismatch(EngineError, ValueError):
    def __init__(self, key: str, expected: str, actual: str | None) -> None:
        self.key = key
        self.expected = expected
        self.actual = actual
        if actual is None:
            msg = f'Can not find {key}.'
        else:
            msg = f'{key} should be {expected}, but it is {actual}.'
        super().__init__(with_help(msg, hint=CONF_HINT))


class UnknownEngineType(EngineError, ValueError):
    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(with_help(
            f"Unknown DL_ENGINE_TYPE '{value}', the only supported value is 'mklblas'. "
            "Current environment variables look incorrect, please unset DL_ENGINE_TYPE or fix its value."
        ))
