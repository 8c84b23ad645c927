"""
Error types raised by the data access layer.

Every failure coming out of the SQL Server driver is converted into one
of the classes below at the ``Db`` boundary, so callers only need to
catch ``DBConnectionError`` (or one of its subclasses) and never the
driver specific ``pymssql.Error`` / ``pyodbc.Error``.
"""

from __future__ import annotations

from typing import Any


class DBConnectionError(Exception):
    """Base class for all data access errors."""


class ConnectionFailed(DBConnectionError):
    """Opening the connection or probing the server failed."""

    def __init__(self, error: str) -> None:
        self.error = error
        super().__init__(f"Connection failed with error: {error}")


class QueryFailed(DBConnectionError):
    """A SELECT or INSERT statement could not be executed."""

    def __init__(self, error: str, sql_key: str | None = None) -> None:
        self.error = error
        self.sql_key = sql_key
        prefix = f"Query {sql_key} failed" if sql_key else "Query failed"
        super().__init__(f"{prefix} with error: {error}")


class InsertFailed(QueryFailed):
    """Inserting a Command row failed."""


class KeyGenerationFailed(DBConnectionError):
    """An identity insert succeeded but the server returned no key."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f"MSSQL did not return id for {table}")


def driver_error_text(exc: BaseException) -> str:
    """Concatenate the messages carried by a driver exception.

    pymssql and pyodbc both put one or more messages in ``args``; these
    may be strings, bytes or ``(code, message)`` tuples.  Numeric codes
    and a leading pyodbc SQLSTATE are dropped.
    """
    args = [a for a in exc.args if not isinstance(a, int)]
    if len(args) > 1 and isinstance(args[0], str) and len(args[0]) == 5:
        args = args[1:]
    text = "".join(_message(a) for a in args)
    return text or exc.__class__.__name__


def _message(arg: Any) -> str:
    if isinstance(arg, bytes):
        return arg.decode("utf-8", errors="replace")
    if isinstance(arg, tuple):
        return "".join(_message(a) for a in arg if not isinstance(a, int))
    if arg is None:
        return ""
    return str(arg)
