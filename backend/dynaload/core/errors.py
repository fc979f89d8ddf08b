"""Exception hierarchy for the loader.

Pre-flight errors (config, contract, arguments) abort a call before anything
touches the search directory. Materialization and invocation errors are
per-file / per-module and are logged by the stage that caught them.
"""
from __future__ import annotations

from typing import Any


class LoaderError(RuntimeError):
    """Base class for every error raised by dynaload."""


class ConfigError(LoaderError, ValueError):
    """The configuration bag cannot be turned into a usable LoaderConfig."""


class ContractError(LoaderError, TypeError):
    """A capability contract is unknown or does not expose exactly one operation."""


class ArgumentError(LoaderError, TypeError):
    """Caller arguments do not match the contract signature."""


class ArgumentCountError(ArgumentError):
    def __init__(self, expected: int, actual: int):
        super().__init__(f"wrong number of args: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class TypeMismatchError(ArgumentError):
    def __init__(self, position: int, expected: str, actual: str):
        super().__init__(f"arg {position} is wrong type: expected {expected}, got {actual}")
        self.position = position
        self.expected = expected
        self.actual = actual


class ModuleMaterializationError(LoaderError):
    """A discovered file could not be turned into a usable value."""

    reason = 'materialization failed'

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class ModuleLoadError(ModuleMaterializationError):
    """The file raised, did not parse, or did not export a value."""

    reason = 'malformed module'


class ContractViolationError(ModuleMaterializationError):
    """The file produced a value that does not honor the contract."""

    reason = 'contract violation'


class ModuleInvocationError(LoaderError):
    def __init__(self, path: str, cause: BaseException):
        super().__init__(f"error running '{path}': {cause.__class__.__name__}: {cause}")
        self.path = path
        self.cause = cause


class CacheWriteError(LoaderError):
    def __init__(self, path: Any, cause: BaseException):
        super().__init__(f"failed writing cache artifact {path}: {cause}")
        self.path = path
        self.cause = cause


class CacheLoadError(LoaderError):
    """The cache artifact exists but cannot be loaded or replayed."""
