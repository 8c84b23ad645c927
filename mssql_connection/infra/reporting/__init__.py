"""
Output helpers for the command line tools.

``json_reporter.write_json`` writes to a file or to standard output.
"""
