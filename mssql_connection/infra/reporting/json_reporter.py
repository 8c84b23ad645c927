"""
JSON reporting utilities.

Small wrappers for ensuring a directory exists and writing JSON files.
Values the ``json`` module cannot encode natively (``Decimal`` identity
values, ``datetime`` columns) are written with ``str``.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional


def ensure_dir(directory: str) -> None:
    """Ensure a directory exists, creating it recursively if necessary."""
    if not directory:
        return
    logging.info("[jsonReporter] ensure_dir", extra={"dir": directory})
    Path(directory).mkdir(parents=True, exist_ok=True)


def write_json(file_path: Optional[str], data: Any) -> None:
    """Write an object as JSON to ``file_path``, or to stdout when it is ``None``."""
    if file_path is None:
        json.dump(data, sys.stdout, indent=2, ensure_ascii=False, default=str)
        sys.stdout.write("\n")
        return
    ensure_dir(os.path.dirname(file_path))
    logging.info("[jsonReporter] write_json", extra={"file": file_path})
    with open(file_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
