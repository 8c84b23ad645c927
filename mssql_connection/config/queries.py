"""
SQL statement templates for the packet/command schema.

Each function returns a raw T-SQL string containing named parameters
prefixed with ``@`` (``@limit``, ``@address`` ...).  The ``Db`` wrapper
rewrites them into the placeholder style of the active driver; see
``mssql_connection.infra.db.mssql``.

Statements that mint an identity use ``SET NOCOUNT ON`` so that the
``SELECT SCOPE_IDENTITY()`` result is the first result set the driver
sees.
"""

from __future__ import annotations

from typing import Callable, Dict


def server_info() -> str:
    return """
        SELECT DB_NAME()     AS CurrentDatabase,
               @@VERSION     AS SQLServerVersion,
               @@SERVERNAME  AS SQLServerName;
    """.strip()


def list_command() -> str:
    return "SELECT TOP (@limit) * FROM Command;"


def list_packet_header() -> str:
    return "SELECT TOP (@limit) * FROM PacketHeader;"


def list_packet_table() -> str:
    return "SELECT TOP (@limit) * FROM PacketTable;"


def list_packet_tbl_lines() -> str:
    return "SELECT TOP (@limit) * FROM PacketTblLines;"


def list_data() -> str:
    return "SELECT TOP (@limit) * FROM Data;"


def new_command_by_address() -> str:
    return """
        SELECT TOP 1 Sender, ServiceModule, Command, id, InPacket
        FROM Command
        WHERE Completed = 'N'
          AND Status    = 'R'
          AND Address   = @address
        ORDER BY Priority DESC,
                 id       ASC;
    """.strip()


def await_response_command_by_address() -> str:
    return """
        SELECT TOP 1
               id, Command, Status, ServiceModule,
               COALESCE(Comment,   '') AS Comment,
               COALESCE(OutPacket, -1) AS OutPacket
        FROM Command
        WHERE Completed = 'N'
          AND Sender    = @address
          AND Status    IN ('E', 'S')
        ORDER BY Completed, Sender, Status,
                 Priority DESC,
                 id       ASC;
    """.strip()


def packet_header_by_packet_id() -> str:
    return "SELECT DataId FROM PacketHeader WHERE PacketId = @packetId;"


def packet_table_by_packet_id() -> str:
    return "SELECT TableId, TableName FROM PacketTable WHERE PacketId = @packetId;"


def packet_tbl_lines_by_packet_id_and_table_name() -> str:
    return """
        SELECT PacketTblLines.DataId, PacketTblLines.LineNum
        FROM PacketTblLines
        JOIN PacketTable ON PacketTable.TableId = PacketTblLines.TableId
        WHERE PacketTable.PacketId  = @packetId
          AND PacketTable.TableName = @tableName
        ORDER BY PacketTblLines.LineNum ASC;
    """.strip()


def data_by_data_id() -> str:
    return "SELECT Field, Value FROM Data WHERE DataId = @dataId;"


def insert_command() -> str:
    return """
        INSERT INTO Command (Command, ServiceModule, Priority, Sender, Address,
                             DateCreated, Status, Completed, InPacket)
        VALUES (@command, @serviceModule, @priority, @sender, @address,
                @dateCreated, @status, @completed, @inPacket);
    """.strip()


def insert_data_key() -> str:
    return """
        SET NOCOUNT ON;
        INSERT INTO DataKey (Dummy) VALUES ('Y');
        SELECT SCOPE_IDENTITY() AS id;
    """.strip()


def insert_packet_key() -> str:
    return """
        SET NOCOUNT ON;
        INSERT INTO PacketKey (Dummy) VALUES ('Y');
        SELECT SCOPE_IDENTITY() AS id;
    """.strip()


def insert_data_row() -> str:
    return "INSERT INTO Data (DataId, Field, Value) VALUES (@dataId, @field, @value);"


def insert_packet_header() -> str:
    return "INSERT INTO PacketHeader (PacketId, DataId) VALUES (@packetId, @dataId);"


def insert_packet_table() -> str:
    return """
        SET NOCOUNT ON;
        INSERT INTO PacketTable (PacketId, TableName) VALUES (@packetId, @tableName);
        SELECT SCOPE_IDENTITY() AS id;
    """.strip()


def insert_packet_tbl_lines_row() -> str:
    return """
        INSERT INTO PacketTblLines (TableId, LineNum, DataId)
        VALUES (@tableId, @lineNum, @dataId);
    """.strip()


# Statements are referenced by key so that log lines and errors can name
# them without repeating the SQL text.
queries: Dict[str, Callable[[], str]] = {
    "server_info": server_info,
    "list_command": list_command,
    "list_packet_header": list_packet_header,
    "list_packet_table": list_packet_table,
    "list_packet_tbl_lines": list_packet_tbl_lines,
    "list_data": list_data,
    "new_command_by_address": new_command_by_address,
    "await_response_command_by_address": await_response_command_by_address,
    "packet_header_by_packet_id": packet_header_by_packet_id,
    "packet_table_by_packet_id": packet_table_by_packet_id,
    "packet_tbl_lines_by_packet_id_and_table_name": packet_tbl_lines_by_packet_id_and_table_name,
    "data_by_data_id": data_by_data_id,
    "insert_command": insert_command,
    "insert_data_key": insert_data_key,
    "insert_packet_key": insert_packet_key,
    "insert_data_row": insert_data_row,
    "insert_packet_header": insert_packet_header,
    "insert_packet_table": insert_packet_table,
    "insert_packet_tbl_lines_row": insert_packet_tbl_lines_row,
}
