"""
FIFO Tax Engine - Usage Example

Parses a small CSV export, matches lots FIFO and prints the result under
two jurisdictions.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from lib.export import summary_to_dict
from lib.parsers.csv_parser import CSVParser
from modules.tax.aggregator import aggregate
from modules.tax.engine import FIFOLotMatcher, apply_jurisdiction
from modules.tax.jurisdictions import get_jurisdiction

SAMPLE_CSV = """Timestamp,Transaction Type,Asset,Quantity Transacted,Spot Price,Total
2023-01-01 00:00:00,Buy,BTC,1.0,1000.00,1000.00
2023-06-01 00:00:00,Buy,BTC,1.0,1500.00,1500.00
2023-07-15 09:30:00,Transfer,BTC,0.2,,
2024-02-01 00:00:00,Sell,BTC,1.5,2000.00,3000.00
2024-03-01 00:00:00,Sell,ETH,2.0,3000.00,6000.00
"""


def main():
    """Demonstrate FIFO matching and jurisdiction switching."""

    print("=" * 70)
    print("FIFO Crypto Tax Engine - Demo")
    print("=" * 70)
    print()

    imported = CSVParser().parse_csv(SAMPLE_CSV)
    print(f"Imported {len(imported.records)} transactions, skipped {imported.skipped}")
    for error in imported.errors:
        print(f"  • {error}")
    print()

    jurisdiction = get_jurisdiction("us-short")
    result = FIFOLotMatcher(jurisdiction).run(imported.records)

    print("=" * 70)
    print(f"EVENTS ({jurisdiction.name})")
    print("=" * 70)
    for event in result.events:
        basis = "no lot" if event.is_unmatched else f"{event.holding_period_days} days"
        print(
            f"  {event.date.date()} {event.symbol:<5} {event.sell_amount:>6} @ ${event.sell_price:,.2f} "
            f"basis ${event.cost_basis:,.2f} ({basis}, {event.classification.value}) "
            f"P&L ${event.pnl:,.2f} tax ${event.tax_amount:,.2f}"
        )
    print()

    for code in ("us-short", "flat-20"):
        events = apply_jurisdiction(result.events, code)
        summary = summary_to_dict(aggregate(events))
        print("=" * 70)
        print(f"SUMMARY ({code})")
        print("=" * 70)
        print(f"Short-Term Gains:    ${summary['short_term_gains']:>12}")
        print(f"Long-Term Gains:     ${summary['long_term_gains']:>12}")
        print(f"Total Tax Owed:      ${summary['total_tax']:>12}")
        print(f"Net After Tax:       ${summary['net_after_tax']:>12}")
        print()

    open_lots = result.get_open_lots()
    if open_lots:
        print("=" * 70)
        print("OPEN LOTS")
        print("=" * 70)
        for lot in open_lots:
            print(f"  {lot.lot_id}: {lot.quantity} of {lot.original_quantity} @ ${lot.cost_basis:,.2f}")

    print()
    print("=" * 70)


if __name__ == "__main__":
    main()
