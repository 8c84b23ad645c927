"""
Database connection factory.

Builds an open ``DBConnection`` from the environment configuration.
See ``mssql_connection.config.env.Config`` for the variables read.  The
environment is loaded on the first call, not at import.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

from .mssql import Db, connect

if TYPE_CHECKING:
    from ...config.env import Config


def get_connection(cfg: Optional["Config"] = None, connector: Callable[..., Db] = connect):
    """Open a new ``DBConnection`` using ``cfg`` (the loaded config by default).

    Returns:
        A ``DBConnection`` with its connection already open.

    Raises:
        ValueError: If a required variable is not configured.
        ConnectionFailed: If the server refuses the connection.
    """
    # Imported here: dao imports this subpackage.
    from ...dao import DBConnection

    if cfg is None:
        from ...config.env import config as cfg
    server, database, uid, pwd = cfg.credentials()
    dao = DBConnection(connector=connector)
    dao.create_connection(
        server,
        database,
        uid,
        pwd,
        port=cfg.MSSQL_PORT,
        encrypt=cfg.MSSQL_ENCRYPT,
        trust_server_certificate=cfg.MSSQL_TRUST_SERVER_CERTIFICATE,
    )
    return dao
