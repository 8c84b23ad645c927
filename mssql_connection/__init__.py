"""
Data access layer for the SQL Server command/packet schema.

``DBConnection`` opens one connection and exposes read queries for the
Command, PacketHeader, PacketTable, PacketTblLines and Data tables, plus
writers for commands and packets.  See ``mssql_connection.dao``.
"""

from .dao import DBConnection  # noqa: F401
from .exceptions import (  # noqa: F401
    ConnectionFailed,
    DBConnectionError,
    InsertFailed,
    KeyGenerationFailed,
    QueryFailed,
)
