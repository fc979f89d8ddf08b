from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Sequence

from dynaload.core.errors import ModuleInvocationError
from dynaload.loader.contracts import bound_operation
from dynaload.loader.state import ContractSignature, DiscoveredModule, InvocationReport

_log = logging.getLogger(__name__)


def invoke_one(path: str, value: Any, operation: str, args: Sequence[Any]) -> Any:
    target = bound_operation(value, operation)
    if target is None:
        raise ModuleInvocationError(path, TypeError(f"no callable '{operation}'"))
    try:
        return target(*args)
    except Exception as e:  # noqa: BLE001 - isolate module failures
        raise ModuleInvocationError(path, e) from e


def invoke_all(
    modules: Mapping[str, DiscoveredModule],
    signature: ContractSignature,
    args: Sequence[Any],
) -> InvocationReport:
    """Run every verified module in sorted order; failures are logged and excluded."""
    succeeded: List[str] = []
    failed: Dict[str, str] = {}
    for path in sorted(modules):
        try:
            invoke_one(path, modules[path].value, signature.operation, args)
        except ModuleInvocationError as e:
            _log.error("%s", e, exc_info=e.cause)
            failed[path] = str(e)
            continue
        succeeded.append(path)
    _log.info("invoked %d module(s): ok=%d failed=%d", len(modules), len(succeeded), len(failed))
    return InvocationReport(succeeded=tuple(succeeded), failed=failed)
