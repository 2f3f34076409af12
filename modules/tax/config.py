"""
Tax Engine Configuration

Constants shared by the matcher, aggregator and report export.
Override the default jurisdiction with the KRYPTOGAIN_JURISDICTION env var.
"""

import os

# Holding period: strictly more than this many days is long-term
LONG_TERM_THRESHOLD_DAYS = 365

# Significant digits for all intermediate Decimal arithmetic
DECIMAL_PRECISION = 50

# Presentation rounding (ROUND_HALF_UP)
MONEY_PLACES = 2
QUANTITY_PLACES = 8

DEFAULT_JURISDICTION = os.getenv("KRYPTOGAIN_JURISDICTION", "us-short")
