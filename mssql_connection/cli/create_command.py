"""
Insert a Command row from the command line.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from ..config.env import config
from ..infra.db import get_connection


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Create a command')
    parser.add_argument('--command', type=str, required=True, help='Command text')
    parser.add_argument('--sender', type=str, required=True, help='Sending node')
    parser.add_argument('--address', type=str, required=True, help='Target node')
    parser.add_argument('--priority', type=int, default=0, help='Higher runs first')
    parser.add_argument('--in-packet', type=int, help='PacketId carrying the command input')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL)
    logging.info('[cli/create_command] Parsed arguments', extra={'command': args.command, 'address': args.address})
    with get_connection() as dao:
        dao.create_command({
            'command': args.command,
            'sender': args.sender,
            'address': args.address,
            'priority': args.priority,
            'in_packet': args.in_packet,
        })


if __name__ == '__main__':
    try:
        main()
    except Exception as err:
        logging.error('Error executing cli/create_command', exc_info=err)
        sys.exit(2)
