import sys
from pathlib import Path

import pytest

# Ensure the `catalog_sync` package is importable when running pytest from the repo root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from catalog_sync.core import config, store as store_module  # noqa: E402
from catalog_sync.core.memory_store import MemoryStore  # noqa: E402
from tests.factories import make_settings  # noqa: E402


@pytest.fixture
def memory_store():
    store = MemoryStore()
    store_module.set_store(store)
    yield store
    store_module.set_store(None)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture(autouse=True)
def clear_settings_cache():
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()
