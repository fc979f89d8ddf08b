from pathlib import Path
from pydantic import BaseModel
import os
from dynaload import __version__
# Optionally load a config.env file so local runs can keep their loader
# settings next to the project instead of exporting them by hand.
from dotenv import load_dotenv

_cfg_override = os.getenv('DYNALOAD_CONFIG_FILE')
_env_candidates = []
if _cfg_override:
    _env_candidates.append(Path(_cfg_override))
_env_candidates.append(Path.cwd() / 'config.env')

for _p in _env_candidates:
    if _p.is_file():
        load_dotenv(str(_p))
        break

"""Central configuration.

All paths are resolved once at import time. Hosts that need different roots
(tests, embedded use) build their own ``Settings`` and pass it explicitly to
the loader functions; the module-level ``settings`` is only the default.

Env vars:
  DYNALOAD_SRC_DIR    - source root every module path is expressed against
  DYNALOAD_CACHE_DIR  - directory holding cache artifacts (created)
  DYNALOAD_APP_ENV    - 'dev' or 'prod'; dev clears the cache on bootstrap
  DYNALOAD_LOG_LEVEL  - logging level name
  DYNALOAD_HOST / DYNALOAD_PORT - entrypoint bind address
"""

APP_ENVS = ('dev', 'prod')

_diagnostics: list[str] = []


def _resolve_app_env(raw: str | None) -> str:
    value = (raw or 'prod').strip().lower()
    if value not in APP_ENVS:
        _diagnostics.append(f"app_env must be 'dev' or 'prod', got {raw!r}; using 'prod'")
        return 'prod'
    return value


def _resolve_dir(env_name: str, default: Path) -> Path:
    raw = os.getenv(env_name)
    path = Path(raw) if raw else default
    path = path.expanduser().resolve()
    _diagnostics.append(f"{env_name.lower()}={path}")
    return path


# Route and plugin modules ship next to the package unless mounted elsewhere.
src_dir = _resolve_dir('DYNALOAD_SRC_DIR', Path(__file__).resolve().parent.parent.parent / 'src')
cache_dir = _resolve_dir('DYNALOAD_CACHE_DIR', Path.cwd() / 'var' / 'cache')
app_env = _resolve_app_env(os.getenv('DYNALOAD_APP_ENV'))


class Settings(BaseModel):
    app_name: str = 'dynaload'
    version: str = os.getenv('DYNALOAD_VERSION', __version__)
    src_dir: Path = src_dir
    cache_dir: Path = cache_dir
    app_env: str = app_env
    # Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = os.getenv('DYNALOAD_LOG_LEVEL', 'INFO')
    host: str = os.getenv('DYNALOAD_HOST', '0.0.0.0')
    port: int = int(os.getenv('DYNALOAD_PORT', '4153'))
    diagnostics: list[str] | None = _diagnostics

    @property
    def is_production(self) -> bool:
        return self.app_env == 'prod'

    def ensure_cache_dir(self) -> Path:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        return self.cache_dir

settings = Settings()
