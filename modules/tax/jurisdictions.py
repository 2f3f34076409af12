"""
Tax Jurisdiction Table

Each jurisdiction is a pair of percentage rates: one for short-term gains
(held <= 365 days) and one for long-term gains. The table is static data
passed into the matcher explicitly; nothing here is global engine state.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from decimal import Decimal
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, field_validator

from modules.tax.config import DEFAULT_JURISDICTION
from modules.tax.precision import to_decimal


class Jurisdiction(BaseModel):
    """Short/long-term capital gains rates, in percent (0-100)."""

    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    short_term_rate: Decimal
    long_term_rate: Decimal
    description: str = ""

    @field_validator('code', mode='before')
    @classmethod
    def normalize_code(cls, v):
        return str(v).strip().lower()

    @field_validator('short_term_rate', 'long_term_rate', mode='before')
    @classmethod
    def parse_rate(cls, v):
        return to_decimal(v)

    @field_validator('short_term_rate', 'long_term_rate')
    @classmethod
    def rate_in_range(cls, v):
        if v < 0 or v > 100:
            raise ValueError(f"Tax rate must be between 0 and 100, got {v}")
        return v

    def rate_for(self, long_term: bool) -> Decimal:
        """Return the rate that applies to a holding period."""
        return self.long_term_rate if long_term else self.short_term_rate


# Registry of available jurisdictions
_JURISDICTION_REGISTRY: Dict[str, Jurisdiction] = {}


def register_jurisdiction(jurisdiction: Jurisdiction) -> Jurisdiction:
    """
    Add or replace a jurisdiction in the lookup table.

    Usage:
        register_jurisdiction(Jurisdiction(
            code="pt", name="Portugal", short_term_rate=28, long_term_rate=0
        ))
    """
    _JURISDICTION_REGISTRY[jurisdiction.code] = jurisdiction
    return jurisdiction


def get_jurisdiction(code: str = DEFAULT_JURISDICTION) -> Jurisdiction:
    """
    Look up a jurisdiction by code (case-insensitive).

    Raises:
        ValueError: If jurisdiction is not registered
    """
    key = str(code).strip().lower()

    if key not in _JURISDICTION_REGISTRY:
        available = ", ".join(list_available_jurisdictions())
        raise ValueError(
            f"Tax jurisdiction '{code}' not found. "
            f"Available: {available}"
        )

    return _JURISDICTION_REGISTRY[key]


def list_available_jurisdictions() -> List[str]:
    """Get sorted list of registered jurisdiction codes."""
    return sorted(_JURISDICTION_REGISTRY.keys())


register_jurisdiction(Jurisdiction(
    code="us-short",
    name="US Short-Term Capital Gains",
    short_term_rate=37,
    long_term_rate=20,
    description="Assets held < 1 year",
))
register_jurisdiction(Jurisdiction(
    code="us-long",
    name="US Long-Term Capital Gains",
    short_term_rate=20,
    long_term_rate=20,
    description="Assets held > 1 year",
))
register_jurisdiction(Jurisdiction(
    code="flat-30",
    name="Flat Rate 30%",
    short_term_rate=30,
    long_term_rate=30,
    description="Standard flat rate",
))
register_jurisdiction(Jurisdiction(
    code="flat-20",
    name="Flat Rate 20%",
    short_term_rate=20,
    long_term_rate=20,
    description="Lower flat rate",
))
