# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Shared test setup: point the service at an in-memory SQLite database
before anything from patrol_service is imported, and reset it per test.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from sqlalchemy import delete  # noqa: E402

from patrol_service.core.database import (  # noqa: E402
    engine, incidents, init_schema, patrol_group_events, patrol_group_staff,
    patrol_groups, staff_members,
)

init_schema(engine)


@pytest.fixture(autouse=True)
def reset_db():
    """Empty every table before each test."""
    with engine.begin() as conn:
        for table in (patrol_group_events, patrol_group_staff, patrol_groups,
                      incidents, staff_members):
            conn.execute(delete(table))
    yield
