"""
Tax Module

Deterministic capital gains engine for crypto transaction histories.

Features:
- FIFO lot matching per symbol
- Short/long-term classification (> 365 days is long-term)
- Jurisdiction rate tables passed in explicitly
- SHA256 sealed calculations

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__all__ = ['engine', 'aggregator', 'jurisdictions', 'tax_events', 'hashing', 'precision', 'config']
