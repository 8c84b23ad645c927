"""
Environment configuration loader.

The data access layer itself never reads configuration; this module
exists for the command line tools and for host applications that want
to build a connection from the environment.  Values are read from the
process environment after ``load_dotenv`` has merged a local ``.env``
file.

Supported variables:

* ``MSSQL_URL`` – optional connection string (``mssql://`` URL or
  ``Server=...;Database=...`` pairs).  Individual variables below
  override the parts it provides.
* ``MSSQL_SERVER`` – server host name.
* ``MSSQL_PORT`` – server port (default ``1433``).
* ``MSSQL_ENCRYPT`` – ``yes``/``no`` (default from ``MSSQL_URL``, else ``yes``).
* ``MSSQL_TRUST_SERVER_CERTIFICATE`` – ``yes``/``no``, same default rule.
* ``MSSQL_DATABASE`` – database name.
* ``MSSQL_UID`` – login name.
* ``MSSQL_PWD`` – login password.
* ``LOG_LEVEL`` – logging level for the CLIs (default ``'INFO'``).

The resulting ``config`` instance can be imported from
``mssql_connection.config.env``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Tuple
from dotenv import load_dotenv

from .connection_string import parse_connection_string

load_dotenv()

@dataclass
class Config:
    """Holds environment configuration for the application."""

    MSSQL_SERVER: Optional[str] = None
    MSSQL_DATABASE: Optional[str] = None
    MSSQL_UID: Optional[str] = None
    MSSQL_PWD: Optional[str] = None
    MSSQL_PORT: int = 1433
    MSSQL_ENCRYPT: bool = True
    MSSQL_TRUST_SERVER_CERTIFICATE: bool = True
    LOG_LEVEL: str = "INFO"

    def credentials(self) -> Tuple[str, str, str, str]:
        """Return ``(server, database, uid, pwd)`` for ``create_connection``.

        Raises:
            ValueError: If one of the four values is missing.
        """
        values = (
            ("MSSQL_SERVER", self.MSSQL_SERVER),
            ("MSSQL_DATABASE", self.MSSQL_DATABASE),
            ("MSSQL_UID", self.MSSQL_UID),
            ("MSSQL_PWD", self.MSSQL_PWD),
        )
        for name, value in values:
            if not value:
                raise ValueError(f"Environment variable {name} is required")
        return tuple(v for _, v in values)  # type: ignore[return-value]


def _flag(name: str, fallback: bool) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return fallback
    return value.strip().lower() in ("true", "yes", "1")


def _load_env() -> Config:
    """Load configuration from environment variables.

    Raises:
        ValueError: If ``MSSQL_URL`` or ``MSSQL_PORT`` cannot be parsed.

    Returns:
        Config: A populated configuration dataclass.
    """
    parsed = {}
    raw_url = os.environ.get("MSSQL_URL")
    if raw_url:
        parsed = parse_connection_string(raw_url)

    port_raw = os.environ.get("MSSQL_PORT") or parsed.get("port") or 1433
    try:
        port = int(port_raw)
    except (TypeError, ValueError):
        raise ValueError(f"MSSQL_PORT must be an integer, got {port_raw!r}") from None

    return Config(
        MSSQL_SERVER=os.environ.get("MSSQL_SERVER") or parsed.get("server"),
        MSSQL_DATABASE=os.environ.get("MSSQL_DATABASE") or parsed.get("database"),
        MSSQL_UID=os.environ.get("MSSQL_UID") or parsed.get("user"),
        MSSQL_PWD=os.environ.get("MSSQL_PWD") or parsed.get("password"),
        MSSQL_PORT=port,
        MSSQL_ENCRYPT=_flag("MSSQL_ENCRYPT", parsed.get("encrypt", True)),
        MSSQL_TRUST_SERVER_CERTIFICATE=_flag(
            "MSSQL_TRUST_SERVER_CERTIFICATE", parsed.get("trustServerCertificate", True)
        ),
        LOG_LEVEL=os.environ.get("LOG_LEVEL", "INFO").upper(),
    )


# Create a single configuration instance when this module is imported.
config: Config = _load_env()
