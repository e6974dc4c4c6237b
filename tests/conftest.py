import sys

import pytest

# Ensure project root is importable (so `import regsync` / `import main` work without installing)
import os as _os
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from regsync import db  # noqa: E402
from regsync.settings import Settings  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_journal(tmp_path, monkeypatch):
    """Point the event journal at a throwaway sqlite file for every test."""
    monkeypatch.setattr(db, "settings", Settings(db_path=str(tmp_path / "journal.db")))
    db.init_db()
    yield

