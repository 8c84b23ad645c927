"""
Dump a stored packet as JSON.

Reads the header, tables, lines and data of ``--packet-id`` and writes
the reassembled packet to ``--out`` (stdout if omitted).
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from ..config.env import config
from ..infra.db import get_connection
from ..services.packet_export import export_packet


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Dump a packet as JSON')
    parser.add_argument('--packet-id', type=int, required=True, help='PacketId to read')
    parser.add_argument('--out', type=str, help='Output file (stdout if omitted)')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL)
    logging.info('[cli/dump_packet] Parsed arguments', extra={'packet_id': args.packet_id, 'out': args.out})
    with get_connection() as dao:
        export_packet(dao, args.packet_id, args.out)


if __name__ == '__main__':
    try:
        main()
    except Exception as err:
        logging.error('Error executing cli/dump_packet', exc_info=err)
        sys.exit(2)
