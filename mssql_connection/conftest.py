# mssql_connection/conftest.py
"""
Pytest configuration and shared fixtures.

Tests are co-located with implementation files using the *_test.py suffix.
No SQL Server is needed: ``FakeDb`` stands in for ``infra.db.mssql.Db``
and answers each statement (by its key in ``config.queries``) from
in-memory tables, including identity generation and transaction rollback.
"""

import copy
from datetime import datetime

import pytest

from mssql_connection.dao import DBConnection
from mssql_connection.exceptions import ConnectionFailed, QueryFailed


class FakeDb:
    """In-memory double of ``Db`` for the packet/command schema."""

    def __init__(self):
        self.tables = {
            "Command": [],
            "DataKey": [],
            "PacketKey": [],
            "PacketHeader": [],
            "PacketTable": [],
            "PacketTblLines": [],
            "Data": [],
        }
        self.identities = {"Command": 0, "DataKey": 0, "PacketKey": 0, "PacketTable": 0}
        self.executed = []
        self.fail_on = {}
        self.no_identity_for = set()
        self.commits = 0
        self.rollbacks = 0
        self.closed = False
        self._in_transaction = False

    # -- Db interface ---------------------------------------------------

    def query(self, sql, params=None, sql_key=None):
        return {"rows": self._run(sql_key, params or {})}

    def execute(self, sql, params=None, sql_key=None):
        self._run(sql_key, params or {})
        return 1

    def insert_identity(self, sql, params=None, sql_key=None):
        return self._run(sql_key, params or {})

    def server_info(self):
        if self.closed:
            raise ConnectionFailed("connection is closed")
        return {"CurrentDatabase": "Packets", "SQLServerVersion": "16.0", "SQLServerName": "fake"}

    def transaction(self):
        db = self

        class _Tx:
            def __enter__(self):
                db._snapshot = copy.deepcopy((db.tables, db.identities))
                db._in_transaction = True
                return db

            def __exit__(self, exc_type, exc, tb):
                db._in_transaction = False
                if exc_type is None:
                    db.commits += 1
                    return False
                db.tables, db.identities = db._snapshot
                db.rollbacks += 1
                return False

        return _Tx()

    def close(self):
        self.closed = True

    # -- helpers ----------------------------------------------------------

    def add_command(self, **fields):
        self.identities["Command"] += 1
        row = {
            "id": self.identities["Command"],
            "Command": "noop",
            "ServiceModule": "W",
            "Priority": 0,
            "Sender": "sender",
            "Address": "address",
            "DateCreated": "Jan 01 2026 00:00",
            "Status": "R",
            "Completed": "N",
            "InPacket": None,
            "Comment": None,
            "OutPacket": None,
        }
        row.update(fields)
        self.tables["Command"].append(row)
        return row

    def _identity(self, table, row):
        if table in self.no_identity_for:
            return None
        self.identities[table] += 1
        row = dict(row, id=self.identities[table])
        self.tables[table].append(row)
        return row["id"]

    def _run(self, sql_key, params):
        if self.closed:
            raise ConnectionFailed("connection is closed")
        self.executed.append((sql_key, dict(params)))
        remaining = self.fail_on.get(sql_key)
        if remaining is not None:
            if remaining <= 1:
                raise QueryFailed("forced failure", sql_key)
            self.fail_on[sql_key] = remaining - 1
        handler = getattr(self, f"_{sql_key}")
        return handler(params)

    def _list_command(self, p):
        return self.tables["Command"][: p["limit"]]

    def _list_packet_header(self, p):
        return self.tables["PacketHeader"][: p["limit"]]

    def _list_packet_table(self, p):
        return self.tables["PacketTable"][: p["limit"]]

    def _list_packet_tbl_lines(self, p):
        return self.tables["PacketTblLines"][: p["limit"]]

    def _list_data(self, p):
        return self.tables["Data"][: p["limit"]]

    def _new_command_by_address(self, p):
        rows = [
            r for r in self.tables["Command"]
            if r["Completed"] == "N" and r["Status"] == "R" and r["Address"] == p["address"]
        ]
        rows.sort(key=lambda r: (-r["Priority"], r["id"]))
        keys = ("Sender", "ServiceModule", "Command", "id", "InPacket")
        return [{k: r[k] for k in keys} for r in rows[:1]]

    def _await_response_command_by_address(self, p):
        rows = [
            r for r in self.tables["Command"]
            if r["Completed"] == "N" and r["Sender"] == p["address"] and r["Status"] in ("E", "S")
        ]
        rows.sort(key=lambda r: (r["Completed"], r["Sender"], r["Status"], -r["Priority"], r["id"]))
        return [
            {
                "id": r["id"],
                "Command": r["Command"],
                "Status": r["Status"],
                "ServiceModule": r["ServiceModule"],
                "Comment": "" if r["Comment"] is None else r["Comment"],
                "OutPacket": -1 if r["OutPacket"] is None else r["OutPacket"],
            }
            for r in rows[:1]
        ]

    def _packet_header_by_packet_id(self, p):
        return [{"DataId": r["DataId"]} for r in self.tables["PacketHeader"] if r["PacketId"] == p["packetId"]]

    def _packet_table_by_packet_id(self, p):
        return [
            {"TableId": r["id"], "TableName": r["TableName"]}
            for r in self.tables["PacketTable"] if r["PacketId"] == p["packetId"]
        ]

    def _packet_tbl_lines_by_packet_id_and_table_name(self, p):
        table_ids = {
            r["id"] for r in self.tables["PacketTable"]
            if r["PacketId"] == p["packetId"] and r["TableName"] == p["tableName"]
        }
        lines = [r for r in self.tables["PacketTblLines"] if r["TableId"] in table_ids]
        lines.sort(key=lambda r: r["LineNum"])
        return [{"DataId": r["DataId"], "LineNum": r["LineNum"]} for r in lines]

    def _data_by_data_id(self, p):
        return [{"Field": r["Field"], "Value": r["Value"]} for r in self.tables["Data"] if r["DataId"] == p["dataId"]]

    def _insert_command(self, p):
        self.identities["Command"] += 1
        self.tables["Command"].append({
            "id": self.identities["Command"],
            "Command": p["command"],
            "ServiceModule": p["serviceModule"],
            "Priority": p["priority"],
            "Sender": p["sender"],
            "Address": p["address"],
            "DateCreated": p["dateCreated"],
            "Status": p["status"],
            "Completed": p["completed"],
            "InPacket": p["inPacket"],
            "Comment": None,
            "OutPacket": None,
        })

    def _insert_data_key(self, p):
        return self._identity("DataKey", {"Dummy": "Y"})

    def _insert_packet_key(self, p):
        return self._identity("PacketKey", {"Dummy": "Y"})

    def _insert_data_row(self, p):
        self.tables["Data"].append({"DataId": p["dataId"], "Field": p["field"], "Value": p["value"]})

    def _insert_packet_header(self, p):
        self.tables["PacketHeader"].append({"PacketId": p["packetId"], "DataId": p["dataId"]})

    def _insert_packet_table(self, p):
        return self._identity("PacketTable", {"PacketId": p["packetId"], "TableName": p["tableName"]})

    def _insert_packet_tbl_lines_row(self, p):
        self.tables["PacketTblLines"].append(
            {"TableId": p["tableId"], "LineNum": p["lineNum"], "DataId": p["dataId"]}
        )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_db():
    """Provide an empty in-memory database."""
    return FakeDb()


@pytest.fixture
def fixed_now():
    """Provide the wall-clock time the ``dao`` fixture reports."""
    return datetime(2026, 3, 7, 14, 5)


@pytest.fixture
def dao(fake_db, fixed_now):
    """Provide a DBConnection already connected to ``fake_db``."""
    conn = DBConnection(connector=lambda *args, **kwargs: fake_db, clock=lambda: fixed_now)
    conn.create_connection("localhost", "Packets", "sa", "secret")
    yield conn
    conn.close()


@pytest.fixture
def sample_packet():
    """Header and body in the shape accepted by ``create_packet``."""
    header = [
        {"field": "From", "value": "node-1"},
        {"field": "To", "value": "node-2"},
        {"field": "Kind", "value": "order"},
    ]
    body = [
        {"tableName": "Items", "values": [{"field": "Sku", "value": "A-1"}, {"field": "Qty", "value": 3}]},
        {"tableName": "Items", "values": [{"field": "Sku", "value": "B-2"}, {"field": "Qty", "value": 1}]},
        {"tableName": "Notes", "values": [{"field": "Text", "value": "leave at door"}]},
    ]
    return header, body
