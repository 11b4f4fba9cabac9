"""
Ingestion layer: turning roster export files into ``Snapshot`` records.

Modules:
  roster_csv — CSV / semicolon-delimited roster export parser.
"""
