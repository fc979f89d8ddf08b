import logging
import sys
import pathlib
import shutil
import pytest

# Ensure backend root (containing the 'dynaload' package) is on sys.path
BACKEND_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from dynaload.core.config import Settings

FIXTURE_MODULES = pathlib.Path(__file__).resolve().parent / 'fixture_modules'


@pytest.fixture
def source_root(tmp_path):
    root = tmp_path / 'src'
    root.mkdir()
    return root


@pytest.fixture
def cache_dir(tmp_path):
    path = tmp_path / 'cache'
    path.mkdir()
    return path


@pytest.fixture
def loader_settings(source_root, cache_dir):
    return Settings(src_dir=source_root, cache_dir=cache_dir, app_env='dev', diagnostics=[])


@pytest.fixture
def write_module(source_root):
    def _write(rel: str, text: str) -> pathlib.Path:
        path = source_root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
        return path
    return _write


@pytest.fixture
def example_tree(source_root):
    """Copy of fixture_modules/example: x.plug (valid), y.plug (violation), z.other."""
    shutil.copytree(FIXTURE_MODULES / 'example', source_root, dirs_exist_ok=True)
    return source_root


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """Undo root-logger changes (e.g. from entrypoint.main) between tests."""
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    yield
    root.setLevel(level)
    root.handlers[:] = handlers
