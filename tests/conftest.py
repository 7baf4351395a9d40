"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Importing the ORM models registers their tables on the shared metadata.
from app import db_models  # noqa: E402,F401
from app.database import Database  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.fixture
async def database(tmp_path: Path, anyio_backend: str):
    """A throwaway SQLite database with every table created."""

    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'streamwave.db'}")
    await db.create_all()
    try:
        yield db
    finally:
        await db.dispose()
