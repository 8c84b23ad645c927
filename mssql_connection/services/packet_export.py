"""
Read a stored packet back into its nested form.

``load_packet`` walks header, tables, lines and data blobs using only the
DAO's read methods, producing the same shape ``create_packet`` accepts::

    {
        "packetId": 7,
        "header": [{"field": "From", "value": "node-1"}, ...],
        "tables": [
            {"tableName": "Items",
             "lines": [{"lineNum": 0, "values": [{"field": ..., "value": ...}]}]},
        ],
    }
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..dao import DBConnection
from ..infra.reporting.json_reporter import write_json


def _values(dao: DBConnection, data_id: int) -> List[Dict[str, Any]]:
    return [{"field": r["Field"], "value": r["Value"]} for r in dao.get_data_by_data_id(data_id)]


def load_packet(dao: DBConnection, packet_id: int) -> Dict[str, Any]:
    """Reassemble packet ``packet_id``.

    Raises:
        LookupError: If the packet has no header row.
    """
    headers = dao.get_packet_header_by_packet_id(packet_id)
    if not headers:
        raise LookupError(f"Packet {packet_id} not found")
    tables = []
    # Each body line has its own PacketTable row; lines are fetched per name.
    names = list(dict.fromkeys(t["TableName"] for t in dao.get_list_packet_table_by_packet_id(packet_id)))
    for name in names:
        lines = [
            {"lineNum": line["LineNum"], "values": _values(dao, line["DataId"])}
            for line in dao.get_packet_tbl_lines_by_packet_id_and_table_name(packet_id, name)
        ]
        tables.append({"tableName": name, "lines": lines})
    packet = {
        "packetId": packet_id,
        "header": _values(dao, headers[0]["DataId"]),
        "tables": tables,
    }
    logging.info("[packet_export] packet loaded", extra={"packet_id": packet_id, "tables": len(tables)})
    return packet


def export_packet(dao: DBConnection, packet_id: int, file_path: Optional[str] = None) -> Dict[str, Any]:
    """Write packet ``packet_id`` as JSON to ``file_path`` (stdout if ``None``)."""
    packet = load_packet(dao, packet_id)
    write_json(file_path, packet)
    return packet
