"""
Database Connectors

Provides the interface to the shared database server used by sandboxes.
"""

from sqlsandbox.connectors.base import BaseConnector, ConnectionPool, ExecResult, QueryResult
from sqlsandbox.connectors.mysql import MySQLConnector

__all__ = [
    "BaseConnector",
    "ConnectionPool",
    "ExecResult",
    "QueryResult",
    "MySQLConnector",
]
