# Ensure 'moodboard' package (backend/moodboard) is importable when running tests from repo root,
# and point storage + database at a throwaway directory before the package is imported.
import sys, os, tempfile
BACKEND_DIR = os.path.abspath(os.path.dirname(__file__))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

_TEST_STORAGE = tempfile.mkdtemp(prefix="moodboard-tests-")
os.environ.setdefault("STORAGE_PATH", _TEST_STORAGE)
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_TEST_STORAGE, 'app.db')}")
os.environ["RUN_MIGRATIONS"] = "0"

import pytest


@pytest.fixture(scope="session", autouse=True)
def _schema():
    from moodboard.models import create_db
    create_db()


@pytest.fixture(autouse=True)
def clean_db(_schema):
    """Empty the three tables before each test."""
    from sqlalchemy import delete
    from moodboard.models import Board, Image, StoredFile, get_session
    with get_session() as session:
        for model in (Board, Image, StoredFile):
            session.execute(delete(model))
        session.commit()
