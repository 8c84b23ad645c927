"""
Data access object for the command and packet tables.

``DBConnection`` owns one ``Db`` handle and exposes one method per
statement in ``mssql_connection.config.queries``.  Read methods return a
list of row dicts; write methods return ``True`` or the new identity.
Failures are raised as the typed errors in
``mssql_connection.exceptions``.

A packet is stored as:

* one ``PacketKey`` identity (the packet id),
* a ``PacketHeader`` row pointing at a ``Data`` blob with the header
  fields,
* one ``PacketTable`` row per body table, each with a ``PacketTblLines``
  row pointing at a ``Data`` blob with that table's values.

``create_packet`` writes all of it inside a single transaction.

The DAO is not thread safe; callers sharing an instance must serialise
access themselves.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .config.queries import queries
from .exceptions import ConnectionFailed, InsertFailed, KeyGenerationFailed, QueryFailed
from .infra.db.mssql import Db, connect

Row = Dict[str, Any]
FieldValue = Mapping[str, Any]
BodyTable = Mapping[str, Any]

SERVICE_MODULE = 'W'
DATE_CREATED_FORMAT = "%b %d %Y %H:%M"

# English abbreviations so the stored date does not depend on LC_TIME.
_MONTHS = ('Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
           'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec')

_KEY_TABLES = {
    'data': ('DataKey', 'insert_data_key'),
    'packet': ('PacketKey', 'insert_packet_key'),
}


def format_date_created(moment: datetime) -> str:
    """Format ``moment`` as ``"Mon DD YYYY HH:MM"`` (e.g. ``Oct 19 2026 09:05``)."""
    return f"{_MONTHS[moment.month - 1]} {moment:%d %Y %H:%M}"


class DBConnection:
    """Connection lifecycle plus the read and write operations of the schema."""

    def __init__(self, connector: Callable[..., Db] = connect, clock: Callable[[], datetime] = datetime.now) -> None:
        self._connector = connector
        self._clock = clock
        self._connection: Optional[Db] = None

    def __enter__(self) -> "DBConnection":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -- connection lifecycle ------------------------------------------

    def create_connection(self, server_name: str, db_name: str, uid: str, pwd: str, **options: Any) -> bool:
        """Open the connection used by every other method.

        Extra keyword ``options`` (``port``, ``encrypt``...) are passed to
        the connector unchanged.

        Raises:
            ConnectionFailed: With the driver messages if the server refuses.
        """
        logging.info("[dao] create_connection", extra={"server": server_name, "database": db_name})
        if self._connection is not None:
            self.close()
        self._connection = self._connector(server_name, db_name, uid, pwd, **options)
        return True

    def get_connection(self) -> Optional[Db]:
        return self._connection

    def test_connection(self) -> Row:
        """Query the server and return its info record."""
        return self._db().server_info()

    def close(self) -> None:
        """Release the connection.  Safe to call more than once."""
        if self._connection is None:
            return
        conn, self._connection = self._connection, None
        conn.close()
        logging.info("[dao] connection closed")

    # -- read queries --------------------------------------------------

    def list_command(self, limit: int = 10) -> List[Row]:
        return self._list('list_command', limit)

    def list_packet_header(self, limit: int = 10) -> List[Row]:
        return self._list('list_packet_header', limit)

    def list_packet_table(self, limit: int = 10) -> List[Row]:
        return self._list('list_packet_table', limit)

    def list_packet_tbl_lines(self, limit: int = 10) -> List[Row]:
        return self._list('list_packet_tbl_lines', limit)

    def list_data(self, limit: int = 10) -> List[Row]:
        return self._list('list_data', limit)

    def get_new_command_by_address(self, address: str) -> List[Row]:
        """Return the next ready command addressed to ``address``.

        At most one row: ``Completed='N'`` and ``Status='R'``, highest
        ``Priority`` first, oldest ``id`` on ties.
        """
        return self._fetch('new_command_by_address', {'address': address})

    def get_await_response_command_by_address(self, address: str) -> List[Row]:
        """Return the oldest open command sent by ``address`` in status E or S.

        ``Comment`` is ``''`` and ``OutPacket`` is ``-1`` when NULL.
        """
        return self._fetch('await_response_command_by_address', {'address': address})

    def get_packet_header_by_packet_id(self, packet_id: int) -> List[Row]:
        return self._fetch('packet_header_by_packet_id', {'packetId': packet_id})

    def get_list_packet_table_by_packet_id(self, packet_id: int) -> List[Row]:
        return self._fetch('packet_table_by_packet_id', {'packetId': packet_id})

    def get_packet_tbl_lines_by_packet_id_and_table_name(self, packet_id: int, table_name: str) -> List[Row]:
        """Return ``DataId``/``LineNum`` rows of one table, ordered by ``LineNum``."""
        return self._fetch(
            'packet_tbl_lines_by_packet_id_and_table_name',
            {'packetId': packet_id, 'tableName': table_name},
        )

    def get_data_by_data_id(self, data_id: int) -> List[Row]:
        return self._fetch('data_by_data_id', {'dataId': data_id})

    # -- writers -------------------------------------------------------

    def create_command(self, command: Mapping[str, Any]) -> bool:
        """Insert one Command row.

        ``command`` must provide ``command``, ``sender`` and ``address``;
        ``priority`` (0), ``status`` ('R'), ``completed`` ('N') and
        ``in_packet`` (NULL) are optional.  ``ServiceModule`` is always
        ``'W'`` and ``DateCreated`` is the current local time.

        Raises:
            ValueError: If a required key is missing.
            InsertFailed: If the insert is rejected.
        """
        missing = [k for k in ('command', 'sender', 'address') if command.get(k) is None]
        if missing:
            raise ValueError(f"Command is missing required field(s): {', '.join(missing)}")
        params = {
            'command': command['command'],
            'serviceModule': SERVICE_MODULE,
            'priority': _default(command.get('priority'), 0),
            'sender': command['sender'],
            'address': command['address'],
            'dateCreated': format_date_created(self._clock()),
            'status': _default(command.get('status'), 'R'),
            'completed': _default(command.get('completed'), 'N'),
            'inPacket': command.get('in_packet'),
        }
        try:
            self._db().execute(queries['insert_command'](), params, sql_key='insert_command')
        except QueryFailed as exc:
            raise InsertFailed(exc.error, exc.sql_key) from exc
        logging.info("[dao] command created", extra={"command": params['command'], "address": params['address']})
        return True

    def create_packet(
        self,
        header_data: Iterable[FieldValue],
        body_data: Union[Iterable[BodyTable], Mapping[int, BodyTable]],
    ) -> int:
        """Store a packet and return its id.

        ``header_data`` is an iterable of ``{'field': ..., 'value': ...}``.
        ``body_data`` is a sequence of ``{'tableName': ..., 'values': [...]}``
        whose position gives the line number, or a mapping of line number
        to table.  Fields and values are stored as strings.

        Runs in one transaction: on any failure nothing is kept and the
        original error is re-raised.
        """
        header = list(header_data)
        body = _numbered_tables(body_data)
        db = self._db()
        with db.transaction():
            packet_id = self.mint_key('packet')
            data_key_header = self.mint_key('data')
            for item in header:
                self.create_data_row(data_key_header, item['field'], item['value'])
            self.create_packet_header(packet_id, data_key_header)
            for line, table in body:
                packet_table_key = self.create_packet_table(packet_id, _table_name(table))
                data_key_body = self.mint_key('data')
                for value in table.get('values') or []:
                    self.create_data_row(data_key_body, value['field'], value['value'])
                self.create_packet_tbl_lines_row(packet_table_key, line, data_key_body)
        logging.info("[dao] packet created", extra={"packet_id": packet_id, "tables": len(body)})
        return packet_id

    def mint_key(self, kind: str) -> int:
        """Insert a marker row into ``DataKey``/``PacketKey`` and return its identity.

        Raises:
            ValueError: For a ``kind`` other than ``'data'`` or ``'packet'``.
            QueryFailed: If the insert fails.
            KeyGenerationFailed: If the server returns no identity.
        """
        try:
            table, sql_key = _KEY_TABLES[kind]
        except KeyError:
            raise ValueError(f"Unknown key kind: {kind!r}") from None
        key = self._db().insert_identity(queries[sql_key](), sql_key=sql_key)
        if key is None:
            raise KeyGenerationFailed(table)
        return key

    create_table_key = mint_key

    def create_data_row(self, data_id: int, field: Any, value: Any) -> bool:
        self._db().execute(
            queries['insert_data_row'](),
            {'dataId': int(data_id), 'field': str(field), 'value': str(value)},
            sql_key='insert_data_row',
        )
        return True

    def create_packet_header(self, packet_id: int, data_id: int) -> bool:
        self._db().execute(
            queries['insert_packet_header'](),
            {'packetId': int(packet_id), 'dataId': int(data_id)},
            sql_key='insert_packet_header',
        )
        return True

    def create_packet_table(self, packet_id: int, table_name: str) -> int:
        """Insert a PacketTable row and return its ``TableId``."""
        table_id = self._db().insert_identity(
            queries['insert_packet_table'](),
            {'packetId': int(packet_id), 'tableName': table_name},
            sql_key='insert_packet_table',
        )
        if table_id is None:
            raise KeyGenerationFailed('PacketTable')
        return table_id

    def create_packet_tbl_lines_row(self, table_id: int, line: int, data_id: int) -> bool:
        self._db().execute(
            queries['insert_packet_tbl_lines_row'](),
            {'tableId': int(table_id), 'lineNum': int(line), 'dataId': int(data_id)},
            sql_key='insert_packet_tbl_lines_row',
        )
        return True

    # -- internals -----------------------------------------------------

    def _db(self) -> Db:
        if self._connection is None or self._connection.closed:
            raise ConnectionFailed("connection is not open")
        return self._connection

    def _fetch(self, sql_key: str, params: Optional[Dict[str, Any]] = None) -> List[Row]:
        rows = self._db().query(queries[sql_key](), params, sql_key=sql_key).get('rows', [])
        logging.info(f"[dao] {sql_key} returned rows", extra={"count": len(rows)})
        return rows

    def _list(self, sql_key: str, limit: int) -> List[Row]:
        # TOP (0) or a negative TOP is either empty or an error on the server
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            return []
        return self._fetch(sql_key, {'limit': limit})


def _default(value: Any, fallback: Any) -> Any:
    return fallback if value is None else value


def _table_name(table: BodyTable) -> str:
    name = table.get('tableName', table.get('table_name'))
    if name is None:
        raise ValueError("Body table is missing 'tableName'")
    return str(name)


def _numbered_tables(body_data: Union[Iterable[BodyTable], Mapping[int, BodyTable]]) -> List[Tuple[int, BodyTable]]:
    if isinstance(body_data, Mapping):
        return [(int(line), table) for line, table in body_data.items()]
    return list(enumerate(body_data))
