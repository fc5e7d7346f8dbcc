from __future__ import annotations

from typing import Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from descuentosya.database import engine as default_engine


def check_database_health(bind: Optional[Engine] = None) -> Dict[str, str]:
    """Attempt a lightweight DB query against the catalog store."""
    try:
        with (bind or default_engine).connect() as connection:
            connection.execute(text("SELECT 1"))
        return {"status": "UP"}
    except OperationalError as exc:
        return {"status": "DOWN", "detail": str(exc)}
