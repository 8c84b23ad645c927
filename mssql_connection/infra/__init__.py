"""
Infrastructure adapters.

``infra.db`` wraps the SQL Server drivers and ``infra.reporting`` writes
JSON output for the command line tools.
"""
