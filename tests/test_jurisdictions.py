"""
Unit Tests for the Tax Jurisdiction Table

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from modules.tax.jurisdictions import (
    Jurisdiction,
    get_jurisdiction,
    list_available_jurisdictions,
    register_jurisdiction,
)


class TestBuiltinJurisdictions:
    """Rates shipped with the engine."""

    @pytest.mark.parametrize("code,short_rate,long_rate", [
        ("us-short", "37", "20"),
        ("us-long", "20", "20"),
        ("flat-30", "30", "30"),
        ("flat-20", "20", "20"),
    ])
    def test_rates(self, code, short_rate, long_rate):
        jurisdiction = get_jurisdiction(code)
        assert jurisdiction.short_term_rate == Decimal(short_rate)
        assert jurisdiction.long_term_rate == Decimal(long_rate)

    def test_list_available(self):
        available = list_available_jurisdictions()
        assert {"us-short", "us-long", "flat-30", "flat-20"} <= set(available)
        assert available == sorted(available)

    def test_default_lookup(self):
        assert get_jurisdiction().code in list_available_jurisdictions()


class TestLookup:

    def test_case_insensitive(self):
        assert get_jurisdiction("US-Short") == get_jurisdiction("us-short")
        assert get_jurisdiction("  FLAT-20 ") == get_jurisdiction("flat-20")

    def test_unknown_code(self):
        with pytest.raises(ValueError, match="not found"):
            get_jurisdiction("atlantis")

    def test_error_lists_available(self):
        with pytest.raises(ValueError, match="us-short"):
            get_jurisdiction("atlantis")


class TestRegistration:

    def test_register_custom(self):
        register_jurisdiction(Jurisdiction(
            code="PT-Test", name="Portugal", short_term_rate=28, long_term_rate=0
        ))

        jurisdiction = get_jurisdiction("pt-test")
        assert jurisdiction.name == "Portugal"
        assert jurisdiction.long_term_rate == Decimal("0")
        assert "pt-test" in list_available_jurisdictions()


class TestValidation:

    @pytest.mark.parametrize("rate", ["-1", "100.01", "250"])
    def test_rate_out_of_range(self, rate):
        with pytest.raises(ValidationError):
            Jurisdiction(code="bad", name="Bad", short_term_rate=rate, long_term_rate=10)

    def test_rate_not_a_number(self):
        with pytest.raises(ValidationError):
            Jurisdiction(code="bad", name="Bad", short_term_rate="abc", long_term_rate=10)

    def test_boundaries_accepted(self):
        jurisdiction = Jurisdiction(code="edge", name="Edge", short_term_rate=0, long_term_rate=100)
        assert jurisdiction.short_term_rate == 0
        assert jurisdiction.long_term_rate == 100

    def test_rate_for(self):
        jurisdiction = get_jurisdiction("us-short")
        assert jurisdiction.rate_for(long_term=True) == Decimal("20")
        assert jurisdiction.rate_for(long_term=False) == Decimal("37")

    def test_immutable(self):
        jurisdiction = get_jurisdiction("flat-30")
        with pytest.raises(ValidationError):
            jurisdiction.short_term_rate = Decimal("10")
