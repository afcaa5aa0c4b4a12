"""Sync infrastructure for lifelog.

Modules:
    orchestrator — Per-record reconcile loop (store upserts, calendar events)
    retry        — Bounded exponential backoff for transient failures
    dedup        — In-run duplicate unique-id detection
"""
