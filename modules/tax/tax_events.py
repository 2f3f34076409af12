"""
Tax Lot, Taxable Event and Summary Data Models

Defines the core data structures for FIFO lot matching:
- TaxLot: Remaining quantity of one BUY (mutable, engine-internal)
- TaxableEvent: One matched (lot, disposal portion) pair with gain and tax
- TaxSummary: Aggregate gains and tax owed for a set of events

TaxableEvent and TaxSummary are immutable so that callers holding results
from an earlier run are never affected by a recomputation.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from modules.tax.config import LONG_TERM_THRESHOLD_DAYS


class HoldingPeriod(str, Enum):
    """Holding-period classification of a realized gain."""
    SHORT_TERM = "SHORT_TERM"
    LONG_TERM = "LONG_TERM"

    @classmethod
    def classify(cls, holding_period_days: int) -> 'HoldingPeriod':
        """Strictly more than the threshold is long-term; exactly 365 days is short-term."""
        if holding_period_days > LONG_TERM_THRESHOLD_DAYS:
            return cls.LONG_TERM
        return cls.SHORT_TERM


@dataclass
class TaxLot:
    """
    Unconsumed remainder of a single BUY.

    Key Invariant: acquisition_date and cost_basis are FIXED at creation.
    Only quantity decreases as SELLs consume the lot.
    """

    lot_id: str
    symbol: str
    acquisition_date: datetime
    quantity: Decimal
    original_quantity: Decimal
    cost_basis: Decimal  # unit acquisition price

    def consume(self, quantity: Decimal) -> None:
        """Remove quantity from the lot."""
        self.quantity -= quantity

    def is_exhausted(self) -> bool:
        """Check if lot has been fully sold."""
        return self.quantity <= 0

    def remaining_cost(self) -> Decimal:
        """Total cost of the unconsumed quantity."""
        return self.quantity * self.cost_basis


class TaxableEvent(BaseModel):
    """
    Realized gain/loss for one portion of a SELL.

    pnl = sell_amount * (sell_price - cost_basis)
    tax_amount = pnl * tax_rate / 100 when pnl > 0, else 0

    An event with no acquisition_date is the unmatched remainder of an
    over-disposal: cost basis zero, always short-term.
    """

    model_config = ConfigDict(frozen=True)

    date: datetime
    symbol: str
    classification: HoldingPeriod
    sell_amount: Decimal
    sell_price: Decimal
    cost_basis: Decimal
    pnl: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    is_taxable: bool

    acquisition_date: Optional[datetime] = None
    holding_period_days: Optional[int] = None
    lot_id: Optional[str] = None

    @property
    def proceeds(self) -> Decimal:
        return self.sell_amount * self.sell_price

    @property
    def cost(self) -> Decimal:
        return self.sell_amount * self.cost_basis

    @property
    def is_unmatched(self) -> bool:
        """True for the zero-cost-basis remainder of an over-disposal."""
        return self.acquisition_date is None

    @property
    def is_long_term(self) -> bool:
        return self.classification == HoldingPeriod.LONG_TERM


class TaxSummary(BaseModel):
    """
    Aggregate realized gains and tax for a set of events.

    net_after_tax is derived on access, never stored.
    """

    model_config = ConfigDict(frozen=True)

    short_term_gains: Decimal = Decimal(0)
    long_term_gains: Decimal = Decimal(0)
    total_tax: Decimal = Decimal(0)
    event_count: int = 0
    unmatched_count: int = 0

    @property
    def total_gains(self) -> Decimal:
        return self.short_term_gains + self.long_term_gains

    @property
    def net_after_tax(self) -> Decimal:
        return self.short_term_gains + self.long_term_gains - self.total_tax
