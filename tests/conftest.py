import os
import tempfile

# The journal engine binds at import time; point it at a throwaway SQLite file
# before any test module imports modules.persistence.db.
_DB_DIR = tempfile.mkdtemp(prefix="mintforge-tests-")
os.environ["MF_DB_URL"] = f"sqlite+pysqlite:///{_DB_DIR}/journal.sqlite3"
os.environ.setdefault("MF_FAKE_RUNNER", "1")

import pytest  # noqa: E402

from services.config import get_settings  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
