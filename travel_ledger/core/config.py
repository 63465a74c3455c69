"""
Runtime configuration read from the environment.
"""

import os
from decimal import Decimal

DATABASE_TYPE = os.getenv("DATABASE_TYPE", "sqlite")
DATABASE_PATH = os.getenv("DATABASE_PATH", "./data/ledger.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

FINANCE_MAP_CACHE_TTL_SECONDS = float(os.getenv("FINANCE_MAP_CACHE_TTL_SECONDS", "15"))
SEQUENCE_MAX_RETRIES = int(os.getenv("SEQUENCE_MAX_RETRIES", "10"))
BALANCE_TOLERANCE = Decimal(os.getenv("BALANCE_TOLERANCE", "0.0001"))
DEFAULT_LEDGER_CURRENCY = os.getenv("DEFAULT_LEDGER_CURRENCY", "USD")


def get_engine_url(database_type: str | None = None) -> str:
    """Build the SQLAlchemy database URL."""
    db_type = database_type or DATABASE_TYPE

    if db_type == "sqlite":
        return f"sqlite:///{DATABASE_PATH}"
    elif db_type == "postgresql":
        host = os.getenv("DB_HOST", "localhost")
        port = os.getenv("DB_PORT", "5432")
        dbname = os.getenv("DB_NAME", "ledger")
        user = os.getenv("DB_USER", "postgres")
        password = os.getenv("DB_PASSWORD", "postgres")
        return f"postgresql://{user}:{password}@{host}:{port}/{dbname}"
    else:
        raise ValueError(f"Unsupported database type: {db_type}")
