"""
SQL Server connection utilities.

This module connects using either ``pymssql`` or ``pyodbc``.  ``pymssql``
is tried first; if it is not installed the ``pyodbc`` driver is used
with the Microsoft ODBC driver.  If neither is available ``connect``
raises an ``ImportError``.

The ``connect`` function returns an instance of ``Db``, which exposes
``query``, ``execute``, ``insert_identity``, ``server_info``,
``transaction`` and ``close``.  SQL strings use named parameters
prefixed with ``@`` (e.g. ``@packetId``).  When using ``pymssql`` these
are rewritten to ``%(packetId)s`` placeholders; with ``pyodbc`` they are
replaced with ``?`` and the values passed positionally in order of
appearance.  System functions such as ``@@VERSION`` are left alone.

Every driver exception is converted to one of the error types in
``mssql_connection.exceptions`` before it leaves this module.

Example usage::

    from mssql_connection.infra.db import connect
    db = connect('localhost', 'Packets', 'sa', 'secret')
    rows = db.query("SELECT Field, Value FROM Data WHERE DataId = @dataId",
                    {'dataId': 12})['rows']
    db.close()
"""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ...config.queries import server_info as server_info_sql
from ...exceptions import ConnectionFailed, QueryFailed, driver_error_text

_PARAM = re.compile(r"(?<![@\w])@([A-Za-z_][A-Za-z0-9_]*)")

ODBC_DRIVER = 'ODBC Driver 17 for SQL Server'


def _driver_error_types(driver: str) -> Tuple[type, ...]:
    if driver == "pymssql":
        import pymssql  # type: ignore[import]
        return (pymssql.Error,)
    if driver == "pyodbc":
        import pyodbc  # type: ignore[import]
        return (pyodbc.Error,)
    raise RuntimeError(f"Unsupported driver: {driver}")


class Db:
    """Lightweight wrapper around one DB-API connection.

    Instances are returned by ``connect``.  A ``Db`` owns its connection
    exclusively and is not safe to share between threads.
    """

    def __init__(self, conn: Any, driver: str, error_types: Optional[Tuple[type, ...]] = None) -> None:
        if driver not in ("pymssql", "pyodbc"):
            raise RuntimeError(f"Unsupported driver: {driver}")
        self._conn = conn
        self._driver = driver
        self._error_types = error_types or _driver_error_types(driver)
        self._in_transaction = False

    @property
    def driver(self) -> str:
        return self._driver

    @property
    def closed(self) -> bool:
        return self._conn is None

    def query(self, sql: str, params: Optional[Dict[str, Any]] = None, sql_key: Optional[str] = None) -> Dict[str, Any]:
        """Execute a query and return a dict with a ``rows`` list.

        Args:
            sql: The SQL statement with named ``@`` parameters.
            params: A mapping of parameter names (without the ``@``) to values.
            sql_key: Name of the statement, used in logs and errors.

        Returns:
            A dictionary containing a ``rows`` key whose value is a list of
            rows returned by the query.  Each row is a mapping from column
            name to value.

        Raises:
            QueryFailed: If the driver rejects the statement.
        """
        with self._cursor(sql_key) as cursor:
            self._execute(cursor, sql, params, sql_key)
            rows = self._fetch_rows(cursor)
        return {"rows": rows}

    def execute(self, sql: str, params: Optional[Dict[str, Any]] = None, sql_key: Optional[str] = None) -> int:
        """Execute a statement that returns no rows; return the row count."""
        with self._cursor(sql_key) as cursor:
            self._execute(cursor, sql, params, sql_key)
            return cursor.rowcount

    def insert_identity(self, sql: str, params: Optional[Dict[str, Any]] = None, sql_key: Optional[str] = None) -> Optional[int]:
        """Run an insert batch ending in ``SELECT SCOPE_IDENTITY()``.

        Result sets without columns (row counts) are skipped until the
        identity row is found.  Returns ``None`` when the batch produced
        no identity value.
        """
        with self._cursor(sql_key) as cursor:
            self._execute(cursor, sql, params, sql_key)
            try:
                row = None
                while True:
                    if cursor.description:
                        row = cursor.fetchone()
                        break
                    if not cursor.nextset():
                        break
            except self._error_types as exc:
                raise QueryFailed(driver_error_text(exc), sql_key) from exc
        if row is None:
            return None
        value = row["id"] if isinstance(row, dict) else row[0]
        return int(value) if value is not None else None

    def server_info(self) -> Dict[str, Any]:
        """Return ``CurrentDatabase``, ``SQLServerVersion`` and ``SQLServerName``.

        Raises:
            ConnectionFailed: If the info query cannot be executed.
        """
        try:
            rows = self.query(server_info_sql(), sql_key="server_info")["rows"]
        except QueryFailed as exc:
            raise ConnectionFailed(exc.error) from exc
        if not rows:
            raise ConnectionFailed("server returned no info")
        return rows[0]

    @contextmanager
    def transaction(self) -> Iterator["Db"]:
        """Run the enclosed statements in one transaction.

        Commits on successful exit, rolls back and re-raises on any
        exception.  Nested use joins the outer transaction.
        """
        if self._in_transaction:
            yield self
            return
        self._require_open()
        try:
            self._set_autocommit(False)
        except self._error_types as exc:
            raise ConnectionFailed(driver_error_text(exc)) from exc
        self._in_transaction = True
        try:
            yield self
            self._conn.commit()
        except self._error_types as exc:
            self._rollback()
            raise QueryFailed(driver_error_text(exc), "commit") from exc
        except Exception:
            self._rollback()
            raise
        finally:
            self._in_transaction = False
            self._restore_autocommit()

    def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            conn.close()
        except self._error_types as exc:
            logging.warning("[DB] close failed", extra={"error": driver_error_text(exc)})

    # -- internals -----------------------------------------------------

    def _require_open(self) -> None:
        if self._conn is None:
            raise ConnectionFailed("connection is closed")

    @contextmanager
    def _cursor(self, sql_key: Optional[str]) -> Iterator[Any]:
        self._require_open()
        try:
            if self._driver == "pymssql":
                cursor = self._conn.cursor(as_dict=True)
            else:
                cursor = self._conn.cursor()
        except self._error_types as exc:
            raise QueryFailed(driver_error_text(exc), sql_key) from exc
        try:
            yield cursor
        finally:
            try:
                cursor.close()
            except self._error_types as exc:
                logging.warning("[DB] cursor close failed", extra={"error": driver_error_text(exc)})

    def _execute(self, cursor: Any, sql: str, params: Optional[Dict[str, Any]], sql_key: Optional[str]) -> None:
        query, args = self._prepare(sql, params or {})
        logging.info(f"[DB] {sql_key or 'query'} executing", extra={"sql": sql, "params": params})
        try:
            cursor.execute(query, args)
        except self._error_types as exc:
            logging.error(f"[DB] {sql_key or 'query'} failed", extra={"error": driver_error_text(exc)})
            raise QueryFailed(driver_error_text(exc), sql_key) from exc

    def _prepare(self, sql: str, params: Dict[str, Any]) -> Tuple[str, Any]:
        if self._driver == "pymssql":
            # Replace @param tokens with %(param)s placeholders
            return _PARAM.sub(lambda m: f"%({m.group(1)})s", sql), params
        # Extract parameter names in order of appearance
        names = _PARAM.findall(sql)
        missing = [n for n in names if n not in params]
        if missing:
            raise KeyError(f"Missing SQL parameter(s): {', '.join(missing)}")
        return _PARAM.sub("?", sql), [params[name] for name in names]

    def _fetch_rows(self, cursor: Any) -> List[Dict[str, Any]]:
        if not cursor.description:
            return []
        try:
            if self._driver == "pymssql":
                return list(cursor.fetchall() or [])
            columns = [col[0] for col in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        except self._error_types as exc:
            raise QueryFailed(driver_error_text(exc)) from exc

    def _set_autocommit(self, flag: bool) -> None:
        if self._driver == "pymssql":
            self._conn.autocommit(flag)
        else:
            self._conn.autocommit = flag

    def _restore_autocommit(self) -> None:
        if self._conn is None:
            return
        try:
            self._set_autocommit(True)
        except self._error_types as exc:
            logging.error("[DB] autocommit restore failed", extra={"error": driver_error_text(exc)})

    def _rollback(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.rollback()
        except self._error_types as exc:
            logging.error("[DB] rollback failed", extra={"error": driver_error_text(exc)})


def connect(
    server: str,
    database: str,
    uid: str,
    pwd: str,
    port: Optional[int] = None,
    encrypt: bool = True,
    trust_server_certificate: bool = True,
) -> Db:
    """Connect to a SQL Server database.

    This function attempts to create a connection using either
    ``pymssql`` or ``pyodbc``.  Both connections run in autocommit mode;
    ``Db.transaction`` switches it off for the duration of a block.
    ``encrypt`` and ``trust_server_certificate`` only apply to ``pyodbc``.

    Returns:
        A ``Db`` instance.

    Raises:
        ConnectionFailed: If the driver cannot open the connection.
        ImportError: If neither driver is installed.
    """
    # Try pymssql first
    try:
        import pymssql  # type: ignore[import]
    except ImportError:
        pymssql = None
    if pymssql is not None:
        try:
            conn = pymssql.connect(
                server=server,
                user=uid,
                password=pwd,
                database=database,
                port=port or 1433,
                autocommit=True,
            )
        except pymssql.Error as exc:
            raise ConnectionFailed(driver_error_text(exc)) from exc
        return Db(conn, "pymssql", (pymssql.Error,))
    # Fallback to pyodbc
    try:
        import pyodbc  # type: ignore[import]
    except ImportError:
        raise ImportError(
            "Neither pymssql nor pyodbc is installed. Install one of them to connect to SQL Server."
        )
    server_expr = f"{server},{port}" if port else server
    conn_str = (
        f"DRIVER={{{ODBC_DRIVER}}};"
        f"SERVER={server_expr};"
        f"DATABASE={database};"
        f"UID={uid};PWD={pwd};"
        f"Encrypt={'yes' if encrypt else 'no'};"
        f"TrustServerCertificate={'yes' if trust_server_certificate else 'no'};"
    )
    try:
        conn = pyodbc.connect(conn_str, autocommit=True)
    except pyodbc.Error as exc:
        raise ConnectionFailed(driver_error_text(exc)) from exc
    return Db(conn, "pyodbc", (pyodbc.Error,))
