"""
Reporting layer: terminal tables and file exports for computed results.

Submodules:
  formatters — ASCII tables for the CLI (delta leaderboard, history, totals)
  export     — flat CSV / JSON exports of delta reports and series
"""
