"""Storage adapter package."""

from daily_vibe.db.session import Database, QueryResult, get_database

__all__ = ["Database", "QueryResult", "get_database"]
