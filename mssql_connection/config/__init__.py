"""
Configuration for the command line tools and SQL statement templates.

The package itself loads nothing.  The environment is only read when
``mssql_connection.config.env`` is imported. Example:

    from mssql_connection.config.env import config
    server, database, uid, pwd = config.credentials()
"""
