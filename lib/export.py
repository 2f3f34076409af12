"""
Report Export

Presentation-side views of engine output. Values are rounded half-up here
and only here; renderers consume these verbatim and never recompute gains
or tax.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from lib.parsers.transaction import TransactionRecord
from lib.utils.logging_config import setup_logger
from modules.tax.aggregator import aggregate, filter_events_by_year, total_proceeds
from modules.tax.config import MONEY_PLACES, QUANTITY_PLACES
from modules.tax.hashing import seal_calculation
from modules.tax.jurisdictions import Jurisdiction
from modules.tax.precision import round_half_up
from modules.tax.tax_events import TaxableEvent, TaxSummary

logger = setup_logger(__name__)

EVENT_COLUMNS = [
    'date', 'symbol', 'classification', 'acquisition_date', 'holding_period_days',
    'lot_id', 'sell_amount', 'sell_price', 'cost_basis', 'proceeds', 'pnl',
    'tax_rate', 'tax_amount', 'is_taxable',
]


def event_to_row(event: TaxableEvent) -> Dict[str, Any]:
    """Flatten one event into display values (strings for all Decimals)."""
    return {
        'date': event.date.isoformat(),
        'symbol': event.symbol,
        'classification': event.classification.value,
        'acquisition_date': event.acquisition_date.isoformat() if event.acquisition_date else None,
        'holding_period_days': event.holding_period_days,
        'lot_id': event.lot_id,
        'sell_amount': str(round_half_up(event.sell_amount, QUANTITY_PLACES)),
        'sell_price': str(round_half_up(event.sell_price, MONEY_PLACES)),
        'cost_basis': str(round_half_up(event.cost_basis, MONEY_PLACES)),
        'proceeds': str(round_half_up(event.proceeds, MONEY_PLACES)),
        'pnl': str(round_half_up(event.pnl, MONEY_PLACES)),
        'tax_rate': str(event.tax_rate),
        'tax_amount': str(round_half_up(event.tax_amount, MONEY_PLACES)),
        'is_taxable': event.is_taxable,
    }


def events_to_dataframe(events: Iterable[TaxableEvent]) -> pd.DataFrame:
    """One row per taxable event, rounded for display."""
    return pd.DataFrame([event_to_row(e) for e in events], columns=EVENT_COLUMNS)


def summary_to_dict(summary: TaxSummary) -> Dict[str, Any]:
    """Summary figures rounded half-up, including derived net_after_tax."""
    return {
        'short_term_gains': str(round_half_up(summary.short_term_gains)),
        'long_term_gains': str(round_half_up(summary.long_term_gains)),
        'total_gains': str(round_half_up(summary.total_gains)),
        'total_tax': str(round_half_up(summary.total_tax)),
        'net_after_tax': str(round_half_up(summary.net_after_tax)),
        'event_count': summary.event_count,
        'unmatched_count': summary.unmatched_count,
    }


def build_report(
    events: List[TaxableEvent],
    jurisdiction: Jurisdiction,
    transactions: Optional[List[TransactionRecord]] = None,
    tax_year: Optional[int] = None
) -> Dict[str, Any]:
    """
    Assemble a complete report payload.

    The seal is included when the input transactions are supplied.
    """
    if tax_year is not None:
        events = filter_events_by_year(events, tax_year)

    report = {
        'jurisdiction': {
            'code': jurisdiction.code,
            'name': jurisdiction.name,
            'short_term_rate': str(jurisdiction.short_term_rate),
            'long_term_rate': str(jurisdiction.long_term_rate),
        },
        'tax_year': tax_year,
        'summary': summary_to_dict(aggregate(events)),
        'total_proceeds': str(round_half_up(total_proceeds(events))),
        'events': [event_to_row(e) for e in events],
    }

    if transactions is not None:
        report['seal'] = seal_calculation(transactions, jurisdiction, events)

    return report


def export_events_csv(events: Iterable[TaxableEvent], filepath: Union[str, Path]) -> Path:
    """Write events to a CSV file."""
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)

    df = events_to_dataframe(events)
    df.to_csv(path, index=False)

    logger.info(f"Exported {len(df)} events to {path}")
    return path


def export_report_json(report: Dict[str, Any], filepath: Union[str, Path]) -> Path:
    """Write a report built by build_report() to a JSON file."""
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'w', encoding='utf-8') as f:
        json.dump(report, f, indent=2)

    logger.info(f"Exported report with {len(report['events'])} events to {path}")
    return path
