"""Snapshot diffing and progression engine.

Modules
-------
normalizer   — header alias resolution + cell parsing into PlayerRecords
player_index — per-request cross-snapshot identity lookup
delta        — start→end per-player deltas, summary and leaderboard order
progression  — per-player honor history and event-wide totals
service      — ProgressionService: store-backed request operations
"""
