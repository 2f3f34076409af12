"""
Modules Package

Business logic layer.

Modules:
- tax: FIFO lot matching, jurisdiction rates and aggregation

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__all__ = ['tax']
