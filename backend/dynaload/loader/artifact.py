"""Cache artifacts: a declarative YAML manifest plus a fixed replay routine.

The manifest records the contract signature and the ordered, source-root
relative paths of every module that ran successfully. Replaying it skips the
directory walk and contract verification; module paths are resolved against
the source root at replay time so the whole tree can be relocated.
"""
from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Sequence

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from dynaload import __version__
from dynaload.core.compat import ARTIFACT_FORMAT, SUPPORTED_FORMATS, artifact_format_supported, is_dev_build
from dynaload.core.errors import (
    CacheLoadError,
    CacheWriteError,
    ModuleInvocationError,
    ModuleMaterializationError,
)
from dynaload.loader.invoker import invoke_one
from dynaload.loader.scanner import materialize
from dynaload.loader.state import CacheArtifact, ContractSignature, InvocationReport

_log = logging.getLogger(__name__)

GENERATOR = 'dynaload'


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


class _ArtifactDocument(BaseModel):
    generator: str
    generator_version: str
    format: str
    created_at: str
    contract: str
    operation: str
    parameters: List[Dict[str, str]]
    modules: List[str]

    model_config = {'extra': 'ignore'}

    @field_validator('format', 'generator_version', mode='before')
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        # YAML reads an unquoted 1.0 as a float
        return str(v) if isinstance(v, (int, float)) else v

    @field_validator('modules')
    @classmethod
    def _relative_only(cls, v: List[str]) -> List[str]:
        for rel in v:
            p = PurePosixPath(rel)
            if not rel or p.is_absolute() or '..' in p.parts:
                raise ValueError(f"module path must be relative to the source root: {rel!r}")
        return v


def build_artifact(signature: ContractSignature, modules: Sequence[str]) -> CacheArtifact:
    return CacheArtifact(
        generator=GENERATOR,
        generator_version=__version__,
        format=ARTIFACT_FORMAT,
        created_at=datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S'),
        contract=signature.identifier,
        operation=signature.operation,
        parameters=tuple(signature.describe()),
        modules=tuple(modules),
    )


def render_artifact(artifact: CacheArtifact) -> str:
    doc = {
        'generator': artifact.generator,
        'generator_version': artifact.generator_version,
        'format': artifact.format,
        'created_at': artifact.created_at,
        'contract': artifact.contract,
        'operation': artifact.operation,
        'parameters': [dict(p) for p in artifact.parameters],
        'modules': list(artifact.modules),
    }
    header = f"# Created by {artifact.generator} {artifact.generator_version} on {artifact.created_at}\n"
    return header + yaml.safe_dump(doc, sort_keys=False, default_flow_style=False)


def write_artifact(path: Path, artifact: CacheArtifact) -> bool:
    """Atomically persist *artifact* at *path* unless a file is already there.

    Returns False when an artifact already exists. Concurrent writers race on
    the final rename; the last one wins and nobody sees a partial file.
    """
    if path.exists():
        _log.info("cache artifact %s already exists, not overwriting", path)
        return False
    text = render_artifact(artifact)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix='.tmp', dir=path.parent)
        with os.fdopen(fd, 'w', encoding='utf-8') as fh:
            # mkstemp creates 0600; readers running as another user need the umask default
            os.fchmod(fh.fileno(), 0o666 & ~_current_umask())
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise CacheWriteError(path, e) from e
    finally:
        if tmp_name is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
    _log.info("wrote cache artifact %s (%d module(s))", path, len(artifact.modules))
    return True


def read_artifact(path: Path) -> CacheArtifact:
    """Load an artifact. ``OSError`` from opening the file propagates as is so
    callers can treat it as a transient miss; anything wrong with the content
    is a ``CacheLoadError``."""
    try:
        text = path.read_text(encoding='utf-8')
    except UnicodeDecodeError as e:
        raise CacheLoadError(f"failed to decode cached file {path}: {e}") from e
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise CacheLoadError(f"failed to parse cached file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise CacheLoadError(f"failed to load cached file {path}: expected a mapping")
    try:
        doc = _ArtifactDocument.model_validate(raw)
    except ValidationError as e:
        raise CacheLoadError(f"failed to load cached file {path}: {e}") from e
    if not artifact_format_supported(doc.format):
        raise CacheLoadError(
            f"cached file {path} has format {doc.format}, supported: {SUPPORTED_FORMATS}"
        )
    if doc.generator_version != __version__ and not is_dev_build(__version__):
        _log.warning("cached file %s written by %s %s, running %s",
                     path, doc.generator, doc.generator_version, __version__)
    return CacheArtifact(
        generator=doc.generator,
        generator_version=doc.generator_version,
        format=doc.format,
        created_at=doc.created_at,
        contract=doc.contract,
        operation=doc.operation,
        parameters=tuple(doc.parameters),
        modules=tuple(doc.modules),
    )


def check_compatible(artifact: CacheArtifact, signature: ContractSignature, path: Path) -> None:
    if artifact.contract != signature.identifier or artifact.operation != signature.operation:
        raise CacheLoadError(
            f"cached file {path} was built for {artifact.contract}.{artifact.operation}, "
            f"not {signature.identifier}.{signature.operation}"
        )
    if list(artifact.parameters) != signature.describe():
        raise CacheLoadError(f"cached file {path} parameters {list(artifact.parameters)} "
                             f"do not match {signature.describe()}")


def replay(artifact: CacheArtifact, args: Sequence[Any], source_root: Path) -> InvocationReport:
    """Run every module listed in *artifact*, in stored order, isolating failures."""
    succeeded: List[str] = []
    failed: Dict[str, str] = {}
    for rel in artifact.modules:
        try:
            value = materialize(source_root / rel, rel, execute=True)
            invoke_one(rel, value, artifact.operation, args)
        except (ModuleMaterializationError, ModuleInvocationError) as e:
            _log.error("Error running '%s' : %s", rel, e, exc_info=e.__cause__)
            failed[rel] = str(e)
            continue
        succeeded.append(rel)
    return InvocationReport(succeeded=tuple(succeeded), failed=failed)
