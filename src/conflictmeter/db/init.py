from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from conflictmeter.db import models  # noqa: F401
from conflictmeter.db.base import Base

LOGGER = logging.getLogger(__name__)


def init_db(engine: Engine) -> list[str]:
    """Create the cache tables if missing and return the tables now present."""
    Base.metadata.create_all(bind=engine)
    tables = sorted(inspect(engine).get_table_names())
    LOGGER.debug("Database schema ready tables=%s", tables)
    return tables
