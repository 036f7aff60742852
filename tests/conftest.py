import os
import tempfile

import pytest

# Must be set before config/database are imported by any test module
_DB_DIR = tempfile.mkdtemp(prefix="field-scheduling-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"


@pytest.fixture(scope="session")
def client():
    from fastapi.testclient import TestClient

    from main import app

    with TestClient(app) as test_client:
        yield test_client
