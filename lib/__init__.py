"""Shared ingestion, export and logging helpers."""
