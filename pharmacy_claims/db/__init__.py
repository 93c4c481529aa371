"""
Database module for the claims core.

Exports database connection utilities.
"""

from pharmacy_claims.db.connection import (
    check_db_connection,
    close_db_connection,
    create_engine_from_url,
    create_tables,
    get_engine,
    get_session,
    get_session_maker,
    make_session_maker,
)

__all__ = [
    "get_engine",
    "get_session_maker",
    "get_session",
    "create_engine_from_url",
    "make_session_maker",
    "create_tables",
    "close_db_connection",
    "check_db_connection",
]
