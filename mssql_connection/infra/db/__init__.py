"""
Database abstractions for SQL Server connections.

This subpackage defines a small wrapper around either the ``pymssql`` or
``pyodbc`` libraries.  It exposes a ``connect`` function that returns a
``Db`` object with ``query``, ``execute``, ``insert_identity``,
``transaction`` and ``close`` methods, and ``get_connection`` which opens
a ``DBConnection`` from the environment configuration.
"""

from .mssql import connect, Db  # noqa: F401
from .connection_factory import get_connection  # noqa: F401
