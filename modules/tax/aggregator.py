"""
Aggregation of taxable events into summary figures.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from modules.tax.precision import ZERO, engine_context
from modules.tax.tax_events import HoldingPeriod, TaxableEvent, TaxSummary


def filter_events_by_year(
    events: Iterable[TaxableEvent],
    tax_year: int
) -> List[TaxableEvent]:
    """
    Filter events to only include those in the specified tax year.

    Args:
        events: All taxable events
        tax_year: Year to filter for

    Returns:
        Events whose sell date falls in tax_year
    """
    return [
        event for event in events
        if event.date.year == tax_year
    ]


def aggregate(
    events: Iterable[TaxableEvent],
    tax_year: Optional[int] = None
) -> TaxSummary:
    """
    Sum gains by holding period and total tax owed.

    Args:
        events: Taxable events from the matcher
        tax_year: Only include events sold in this calendar year

    Returns:
        TaxSummary (all zero for empty input)
    """
    if tax_year is not None:
        events = filter_events_by_year(events, tax_year)

    short_term = ZERO
    long_term = ZERO
    total_tax = ZERO
    count = 0
    unmatched = 0

    with engine_context():
        for event in events:
            if event.classification == HoldingPeriod.LONG_TERM:
                long_term += event.pnl
            else:
                short_term += event.pnl
            total_tax += event.tax_amount
            count += 1
            if event.is_unmatched:
                unmatched += 1

    return TaxSummary(
        short_term_gains=short_term,
        long_term_gains=long_term,
        total_tax=total_tax,
        event_count=count,
        unmatched_count=unmatched,
    )


def aggregate_by_symbol(events: Iterable[TaxableEvent]) -> Dict[str, TaxSummary]:
    """Aggregate separately for every symbol, keyed by symbol."""
    grouped: Dict[str, List[TaxableEvent]] = defaultdict(list)
    for event in events:
        grouped[event.symbol].append(event)

    return {symbol: aggregate(group) for symbol, group in sorted(grouped.items())}


def total_proceeds(events: Iterable[TaxableEvent]) -> Decimal:
    """Total sale proceeds across events."""
    with engine_context():
        return sum((event.proceeds for event in events), start=ZERO)
