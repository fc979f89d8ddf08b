from __future__ import annotations

from typing import Any, Sequence, Tuple

from dynaload.core.errors import ArgumentCountError, TypeMismatchError
from dynaload.loader.state import ContractSignature, type_token


def match_arguments(signature: ContractSignature, args: Sequence[Any]) -> Tuple[Any, ...]:
    """Check caller args against the contract signature and return them bound.

    Types are compared by exact classification: no coercion and no subclass
    acceptance, so ``True`` does not satisfy an ``int`` parameter.
    """
    actual = tuple(args)
    if len(actual) != signature.arity:
        raise ArgumentCountError(signature.arity, len(actual))
    for position, (param, value) in enumerate(zip(signature.parameters, actual)):
        if param.is_any:
            continue
        got = type_token(type(value))
        if got != param.token:
            raise TypeMismatchError(position, param.token, got)
    return actual
