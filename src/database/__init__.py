"""
Database 모듈 - PostgreSQL 클라이언트, Data Access 포트 및 설정 관리
"""
from .data_access import DataAccess
from .postgres_client import get_postgresql_client, PostgreSQLClient
from .config import (
    config,
    get_postgres_config,
    get_polling_config,
    get_watch_tables
)

# Public API
__all__ = [
    # Data Access
    "DataAccess",

    # PostgreSQL
    "get_postgresql_client",
    "PostgreSQLClient",

    # Config
    "config",
    "get_postgres_config",
    "get_polling_config",
    "get_watch_tables"
]
