"""
FIFO Lot Matching Engine

Turns a date-ordered stream of BUY/SELL records into TaxableEvents:
1. Each BUY opens a lot at the tail of its symbol's queue
2. Each SELL consumes lots from the head of the queue (oldest first)
3. Each (lot, portion) pair becomes one TaxableEvent with gain and tax

Tax rates come from the Jurisdiction passed in. Lot queues are created per
run and never shared, so concurrent runs over the same records are safe.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Deque, Dict, Iterable, List, Optional, Union

from lib.parsers.transaction import TransactionRecord, TransactionType
from lib.utils.logging_config import get_perf_logger, setup_logger
from modules.tax.jurisdictions import Jurisdiction, get_jurisdiction
from modules.tax.precision import HUNDRED, ZERO, engine_context
from modules.tax.tax_events import HoldingPeriod, TaxableEvent, TaxLot

logger = setup_logger(__name__)


def calculate_tax(pnl: Decimal, rate: Decimal) -> Decimal:
    """Tax on a gain at a percentage rate. Losses are never taxed."""
    if pnl > 0:
        return pnl * rate / HUNDRED
    return ZERO


@dataclass
class MatchResult:
    """Output of one matcher run."""

    events: List[TaxableEvent] = field(default_factory=list)
    skipped: int = 0
    open_lots: Dict[str, List[TaxLot]] = field(default_factory=dict)
    jurisdiction: Optional[Jurisdiction] = None

    def get_realized_events(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> List[TaxableEvent]:
        """Get realized events, optionally filtered by sell date (inclusive)."""
        events = self.events

        if start_date:
            events = [e for e in events if e.date.date() >= start_date]

        if end_date:
            events = [e for e in events if e.date.date() <= end_date]

        return events

    def get_open_lots(self, symbol: Optional[str] = None) -> List[TaxLot]:
        """Get lots still open after the run, optionally for one symbol."""
        if symbol:
            return self.open_lots.get(symbol.upper(), [])

        all_lots = []
        for lots in self.open_lots.values():
            all_lots.extend(lots)
        return all_lots


class FIFOLotMatcher:
    """
    First-In, First-Out lot matcher.

    Usage:
        matcher = FIFOLotMatcher(get_jurisdiction("us-short"))
        result = matcher.run(records)
        result.events, result.skipped
    """

    def __init__(self, jurisdiction: Union[Jurisdiction, str]):
        if isinstance(jurisdiction, str):
            jurisdiction = get_jurisdiction(jurisdiction)
        self.jurisdiction = jurisdiction

    def run(self, transactions: Iterable[TransactionRecord]) -> MatchResult:
        """
        Match all SELLs against open lots.

        Records are ordered by (date, input position), so records sharing a
        timestamp are processed in the order they were given.
        """
        ordered = self._order(list(transactions))

        lots: Dict[str, Deque[TaxLot]] = defaultdict(deque)
        buy_counts: Dict[str, int] = defaultdict(int)
        result = MatchResult(jurisdiction=self.jurisdiction)

        with get_perf_logger(logger, "FIFO match", threshold_ms=1000, items=len(ordered)):
            with engine_context():
                for txn in ordered:
                    if not self._is_matchable(txn):
                        result.skipped += 1
                        logger.warning(
                            f"Skipping unmatchable record: {txn.symbol} {txn.type.value} "
                            f"amount={txn.amount} price={txn.price}",
                            extra={'context': {'row': txn.source_row}}
                        )
                        continue

                    if txn.type == TransactionType.BUY:
                        buy_counts[txn.symbol] += 1
                        self._handle_buy(txn, lots[txn.symbol], buy_counts[txn.symbol])
                    elif txn.type == TransactionType.SELL:
                        result.events.extend(self._match_sell(txn, lots[txn.symbol]))

        result.open_lots = {
            symbol: [replace(lot) for lot in queue] for symbol, queue in lots.items() if queue
        }

        logger.info(
            f"Generated {len(result.events)} taxable events with {self.jurisdiction.code} "
            f"({result.skipped} records skipped)"
        )
        return result

    def _order(self, transactions: List[TransactionRecord]) -> List[TransactionRecord]:
        indexed = list(enumerate(transactions))
        ordered = sorted(indexed, key=lambda pair: (pair[1].date, pair[0]))

        if [i for i, _ in ordered] != list(range(len(indexed))):
            logger.debug("Input was not sorted by date; re-sorted preserving input order for ties")

        return [txn for _, txn in ordered]

    @staticmethod
    def _is_matchable(txn: TransactionRecord) -> bool:
        return (
            txn.amount.is_finite() and txn.amount > 0
            and txn.price.is_finite() and txn.price > 0
        )

    def _handle_buy(self, txn: TransactionRecord, queue: Deque[TaxLot], ordinal: int):
        """Open a new lot at the tail of the queue."""
        lot = TaxLot(
            lot_id=f"{txn.symbol}-{ordinal}",
            symbol=txn.symbol,
            acquisition_date=txn.date,
            quantity=txn.amount,
            original_quantity=txn.amount,
            cost_basis=txn.price,
        )
        queue.append(lot)
        logger.debug(f"Opened lot {lot.lot_id}: {lot.quantity} @ {lot.cost_basis}")

    def _match_sell(self, txn: TransactionRecord, queue: Deque[TaxLot]) -> List[TaxableEvent]:
        """Consume lots oldest-first until the SELL is fully matched."""
        remaining = txn.amount
        events = []

        while remaining > 0 and queue:
            lot = queue[0]
            matched = min(remaining, lot.quantity)

            holding_period_days = (txn.date - lot.acquisition_date).days
            classification = HoldingPeriod.classify(holding_period_days)
            rate = self.jurisdiction.rate_for(classification == HoldingPeriod.LONG_TERM)
            pnl = matched * (txn.price - lot.cost_basis)

            events.append(TaxableEvent(
                date=txn.date,
                symbol=txn.symbol,
                classification=classification,
                sell_amount=matched,
                sell_price=txn.price,
                cost_basis=lot.cost_basis,
                pnl=pnl,
                tax_rate=rate,
                tax_amount=calculate_tax(pnl, rate),
                is_taxable=pnl > 0,
                acquisition_date=lot.acquisition_date,
                holding_period_days=holding_period_days,
                lot_id=lot.lot_id,
            ))

            lot.consume(matched)
            if lot.is_exhausted():
                queue.popleft()
                logger.debug(f"Lot {lot.lot_id} fully consumed")

            remaining -= matched

        if remaining > 0:
            # Acquired outside the observed history: no cost basis, no holding period
            logger.warning(
                f"Orphaned sell: {txn.symbol} on {txn.date.date()} "
                f"- selling {remaining} more than available, using zero cost basis"
            )
            rate = self.jurisdiction.short_term_rate
            pnl = remaining * txn.price

            events.append(TaxableEvent(
                date=txn.date,
                symbol=txn.symbol,
                classification=HoldingPeriod.SHORT_TERM,
                sell_amount=remaining,
                sell_price=txn.price,
                cost_basis=ZERO,
                pnl=pnl,
                tax_rate=rate,
                tax_amount=calculate_tax(pnl, rate),
                is_taxable=pnl > 0,
            ))

        return events


def match(
    transactions: Iterable[TransactionRecord],
    jurisdiction: Union[Jurisdiction, str]
) -> List[TaxableEvent]:
    """
    Run FIFO lot matching and return the taxable events.

    Args:
        transactions: Normalized records (sorted by date; re-sorted stably if not)
        jurisdiction: Rates to apply, or a registered jurisdiction code

    Returns:
        Taxable events in SELL order, lot order within each SELL
    """
    return FIFOLotMatcher(jurisdiction).run(transactions).events


def apply_jurisdiction(
    events: Iterable[TaxableEvent],
    jurisdiction: Union[Jurisdiction, str]
) -> List[TaxableEvent]:
    """
    Re-rate existing events under another jurisdiction.

    Classification and pnl do not depend on rates, so only tax_rate and
    tax_amount change. Returns new events; the inputs are left untouched.
    """
    if isinstance(jurisdiction, str):
        jurisdiction = get_jurisdiction(jurisdiction)

    repriced = []
    with engine_context():
        for event in events:
            rate = jurisdiction.rate_for(event.is_long_term)
            repriced.append(event.model_copy(update={
                'tax_rate': rate,
                'tax_amount': calculate_tax(event.pnl, rate),
            }))

    return repriced
